"""
HTTP surface tests: chat, swap confirmation and wallet lifecycle routes.
"""

import pytest
from fastapi.testclient import TestClient

from swapagent.api import health
from swapagent.api.sessions import SessionRegistry, get_session_registry
from swapagent.core.chat import ChatSession
from swapagent.core.intent import CommandInterpreter
from swapagent.core.wallet import InMemoryWalletStore, WalletCustody
from swapagent.errors import RpcError
from swapagent.main import app

ACCOUNT = "erin"


@pytest.fixture
def client(orchestrator, fast_kdf):
    store = InMemoryWalletStore()

    def factory(account_id: str) -> ChatSession:
        custody = WalletCustody(account_id, store, kdf_params=fast_kdf)
        return ChatSession(CommandInterpreter(None), orchestrator, custody)

    registry = SessionRegistry(factory=factory, store=store)
    app.dependency_overrides[get_session_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == "Swap Agent API"


def test_chat_then_confirm(client):
    response = client.post("/chat", json={"accountId": ACCOUNT, "message": "swap 100 USDC for DAI"})
    assert response.status_code == 200
    body = response.json()
    assert body["accountId"] == ACCOUNT
    assert body["state"] == "AwaitingConfirmation"
    assert [event["type"] for event in body["events"]] == ["QuoteReady", "ConfirmationRequired"]
    assert body["events"][0]["quote"]["kind"] == "Onchain"
    assert body["events"][1]["minAmountOut"] == str(995 * 10**17)

    response = client.post("/swap/confirm", json={"accountId": ACCOUNT})
    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "Idle"
    settled = body["events"][-1]
    assert settled["type"] == "ExecutionSettled"
    assert settled["explorerUrl"].endswith(settled["txHash"])

    status = client.get(f"/swap/{ACCOUNT}").json()
    assert status["lastOutcome"]["state"] == "Settled"


def test_conversation_reply(client):
    response = client.post("/chat", json={"accountId": ACCOUNT, "message": "hello"})
    assert response.json()["events"][0]["type"] == "AssistantReply"


def test_pending_swap_rejects_new_intent(client):
    client.post("/chat", json={"accountId": ACCOUNT, "message": "swap 100 USDC for DAI"})
    response = client.post("/chat", json={"accountId": ACCOUNT, "message": "swap 3 USDC for DAI"})
    assert response.status_code == 200
    assert response.json()["events"] == [
        {
            "type": "SwapRejected",
            "reason": "PendingSwapExists",
            "message": "A swap is already in progress. Confirm or cancel it first.",
        }
    ]


def test_confirm_without_pending_swap_conflicts(client):
    response = client.post("/swap/confirm", json={"accountId": ACCOUNT})
    assert response.status_code == 409
    assert response.json()["code"] == "InvalidTransition"


def test_cancel_without_pending_swap_conflicts(client):
    response = client.post("/swap/cancel", json={"accountId": ACCOUNT})
    assert response.status_code == 409
    assert response.json()["code"] == "CancellationRejected"


def test_cancel_pending_swap(client):
    client.post("/chat", json={"accountId": ACCOUNT, "message": "swap 100 USDC for DAI"})
    response = client.post("/swap/cancel", json={"accountId": ACCOUNT})
    assert response.status_code == 200
    assert response.json()["events"][0]["type"] == "SwapCancelled"


def test_wallet_lifecycle(client):
    response = client.post("/wallet", json={"accountId": ACCOUNT, "password": "pw"})
    assert response.status_code == 201
    created = response.json()
    assert created["state"] == "unlocked"
    assert created["address"].startswith("0x")

    assert client.post("/wallet", json={"accountId": ACCOUNT, "password": "pw"}).status_code == 409
    assert client.post("/wallet/lock", json={"accountId": ACCOUNT}).json()["state"] == "locked"

    response = client.post("/wallet/unlock", json={"accountId": ACCOUNT, "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["code"] == "InvalidPassword"

    response = client.post("/wallet/unlock", json={"accountId": ACCOUNT, "password": "pw"})
    assert response.json() == {**created, "state": "unlocked"}

    assert client.delete(f"/wallet/{ACCOUNT}").json()["state"] == "deleted"
    assert client.get(f"/wallet/{ACCOUNT}").json()["address"] is None


def test_unlock_missing_wallet_is_not_found(client):
    response = client.post("/wallet/unlock", json={"accountId": ACCOUNT, "password": "pw"})
    assert response.status_code == 404
    assert response.json()["code"] == "WalletNotFound"


def test_import_wallet(client):
    key = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
    response = client.post("/wallet", json={"accountId": ACCOUNT, "password": "pw", "privateKey": key})
    assert response.status_code == 201
    assert key[2:] not in response.text


def test_invalid_account_id_is_bad_request(client):
    response = client.get("/wallet/bad%20id")
    assert response.status_code == 400
    assert response.json()["code"] == "WalletError"


class _HealthyRpc:
    async def block_number(self):
        return 123

    async def close(self):
        pass


class _DownRpc(_HealthyRpc):
    async def block_number(self):
        raise RpcError("eth_blockNumber request error: connection refused")


def test_health_reports_chain(client, monkeypatch):
    monkeypatch.setattr(health, "JsonRpcClient", _HealthyRpc)
    body = client.get("/healthz").json()
    assert body["status"] == "healthy"
    assert body["chain"]["block"] == 123
    assert body["llm"]["status"] in {"configured", "fallback_only"}


def test_health_degrades_when_chain_down(client, monkeypatch):
    monkeypatch.setattr(health, "JsonRpcClient", _DownRpc)
    body = client.get("/healthz").json()
    assert body["status"] == "degraded"
    assert body["chain"]["status"] == "unavailable"


def test_status_reads_leave_no_session(client):
    assert client.get("/swap/frank").json()["state"] == "Idle"
    assert client.get("/wallet/frank").json()["state"] == "absent"

    registry = app.dependency_overrides[get_session_registry]()
    assert "frank" not in registry
