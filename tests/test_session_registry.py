from unittest.mock import AsyncMock, MagicMock

import pytest

from swapagent.api import sessions
from swapagent.api.sessions import SessionRegistry
from swapagent.config import settings
from swapagent.core.chat import ChatSession
from swapagent.core.intent import CommandInterpreter
from swapagent.core.wallet import InMemoryWalletStore
from swapagent.errors import WalletError


class _CountingRpc:
    created = []

    def __init__(self):
        self.closed = False
        _CountingRpc.created.append(self)

    async def close(self):
        self.closed = True


@pytest.fixture
def counting_rpc(monkeypatch):
    _CountingRpc.created = []
    monkeypatch.setattr(sessions, "JsonRpcClient", _CountingRpc)
    monkeypatch.setattr(settings, "llm_provider", "anthropic")
    monkeypatch.setattr(settings, "anthropic_api_key", "")
    return _CountingRpc


def _stub_session(pending: bool = False) -> ChatSession:
    orchestrator = MagicMock()
    orchestrator.has_pending_swap = pending
    rpc = MagicMock()
    rpc.close = AsyncMock()
    return ChatSession(CommandInterpreter(None), orchestrator, rpc=rpc)


@pytest.mark.asyncio
async def test_sessions_share_one_rpc_client(counting_rpc):
    registry = SessionRegistry(store=InMemoryWalletStore())

    for index in range(50):
        await registry.get(f"user{index}")
    with pytest.raises(WalletError):
        await registry.get("bad id!")

    assert len(registry) == 50
    assert len(counting_rpc.created) == 1

    await registry.close_all()
    assert counting_rpc.created[0].closed


@pytest.mark.asyncio
async def test_invalid_account_never_builds_a_session():
    factory = MagicMock()
    registry = SessionRegistry(factory)

    with pytest.raises(WalletError):
        await registry.get("../etc/passwd")

    factory.assert_not_called()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_idle_sessions_are_closed():
    now = [1000.0]
    built = {"idle": _stub_session(), "busy": _stub_session(pending=True)}
    registry = SessionRegistry(
        lambda account_id: built.get(account_id) or _stub_session(),
        idle_seconds=60,
        clock=lambda: now[0],
    )

    await registry.get("idle")
    await registry.get("busy")
    now[0] += 61
    await registry.get("fresh")

    assert "idle" not in registry
    assert "busy" in registry
    assert "fresh" in registry
    built["idle"].rpc.close.assert_awaited_once()
    built["busy"].rpc.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_recently_used_sessions_are_kept():
    now = [0.0]
    registry = SessionRegistry(lambda account_id: _stub_session(), idle_seconds=60, clock=lambda: now[0])

    first = await registry.get("alice")
    now[0] += 45
    await registry.get("alice")
    now[0] += 45

    assert await registry.get("alice") is first


def test_status_reads_do_not_open_sessions():
    factory = MagicMock()
    registry = SessionRegistry(factory, store=InMemoryWalletStore())

    swap = registry.swap_status("zoe")
    wallet = registry.wallet_status("zoe")

    assert swap["state"] == "Idle"
    assert swap["pendingSwap"] is None
    assert wallet == {"accountId": "zoe", "state": "absent", "address": None}
    assert "zoe" not in registry
    factory.assert_not_called()
