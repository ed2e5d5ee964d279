import structlog

from swapagent.logging_config import REDACTED, bind_session_context, redact_secrets


def test_sensitive_values_are_masked():
    event = {"event": "wallet_created", "password": "hunter2", "privateKey": "0xabc", "address": "0x11"}
    result = redact_secrets(None, "info", event)

    assert result["password"] == REDACTED
    assert result["privateKey"] == REDACTED
    assert result["address"] == "0x11"


def test_session_context_is_bound():
    structlog.contextvars.clear_contextvars()
    bind_session_context("alice", swap_id="swap_1", tx_hash=None)

    context = structlog.contextvars.get_contextvars()

    assert context == {"account_id": "alice", "swap_id": "swap_1"}
    structlog.contextvars.clear_contextvars()
