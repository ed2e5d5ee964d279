"""
Tests for the chat session routing messages to the swap pipeline.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from swapagent.core.chat import ChatSession, build_session
from swapagent.core.intent import FALLBACK_REPLY, CommandInterpreter
from swapagent.core.swap import (
    AssistantReply,
    ConfirmationRequired,
    ExecutionSettled,
    QuoteReady,
    SwapCancelled,
    SwapOrchestrator,
    SwapRejected,
    SwapState,
)
from swapagent.core.wallet import InMemoryWalletStore, WalletCustody


@pytest.fixture
def session(orchestrator, fast_kdf) -> ChatSession:
    custody = WalletCustody("carol", InMemoryWalletStore(), kdf_params=fast_kdf)
    return ChatSession(CommandInterpreter(None), orchestrator, custody)


@pytest.mark.asyncio
async def test_trade_message_starts_a_swap(session):
    events = await session.handle_message("swap 100 USDC for DAI")

    assert [type(event) for event in events] == [QuoteReady, ConfirmationRequired]
    assert session.status()["state"] == SwapState.AWAITING_CONFIRMATION.value


@pytest.mark.asyncio
async def test_conversation_gets_a_reply(session):
    events = await session.handle_message("what can you do?")
    assert events == [AssistantReply(text=FALLBACK_REPLY)]
    assert session.status()["pendingSwap"] is None


@pytest.mark.asyncio
async def test_second_trade_is_rejected_not_queued(session):
    await session.handle_message("swap 100 USDC for DAI")
    swap_id = session.orchestrator.pending.swap_id

    events = await session.handle_message("swap 1 USDC for DAI")

    assert len(events) == 1
    assert isinstance(events[0], SwapRejected)
    assert events[0].reason == "PendingSwapExists"
    assert session.orchestrator.pending.swap_id == swap_id


@pytest.mark.asyncio
async def test_confirm_settles_and_status_reports_outcome(session):
    await session.handle_message("swap 100 USDC for DAI")
    events = await session.confirm()

    assert isinstance(events[-1], ExecutionSettled)
    status = session.status()
    assert status["state"] == "Idle"
    assert status["lastOutcome"]["state"] == "Settled"
    assert status["lastOutcome"]["txHash"] == events[-1].tx_hash
    assert status["wallet"]["accountId"] == "carol"


@pytest.mark.asyncio
async def test_cancel_from_session(session):
    await session.handle_message("swap 100 USDC for DAI")
    events = session.cancel()
    assert isinstance(events[0], SwapCancelled)
    assert session.status()["lastOutcome"]["state"] == "Cancelled"


@pytest.mark.asyncio
async def test_stale_confirmation_expires_on_next_message(session, clock):
    await session.handle_message("swap 100 USDC for DAI")
    clock.advance(301)

    events = await session.handle_message("hello")

    assert isinstance(events[0], SwapCancelled)
    assert events[0].reason == "timeout"
    assert isinstance(events[1], AssistantReply)


@pytest.mark.asyncio
async def test_close_releases_rpc(orchestrator):
    rpc = MagicMock()
    rpc.close = AsyncMock()
    await ChatSession(CommandInterpreter(None), orchestrator, rpc=rpc).close()
    rpc.close.assert_awaited_once()


def test_build_session_wires_pipeline():
    session = build_session("dave", rpc=MagicMock(), store=InMemoryWalletStore(), use_llm=False)

    assert session.account_id == "dave"
    assert session.interpreter.llm_provider is None
    assert isinstance(session.orchestrator, SwapOrchestrator)
    assert session.orchestrator.signer_provider() is None
    assert session.status()["wallet"]["state"] == "absent"
