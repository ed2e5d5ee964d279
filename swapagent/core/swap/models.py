"""
Swap lifecycle models: states, the pending swap, and the events emitted to
the chat surface.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from ...errors import FAILURE_MESSAGES, FailureReason
from ..intent import SwapIntent
from ..quote import Quote


class SwapState(str, Enum):
    IDLE = "Idle"
    QUOTED = "Quoted"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    EXECUTING = "Executing"
    SETTLED = "Settled"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SwapState.SETTLED, SwapState.FAILED, SwapState.CANCELLED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingSwap:
    """The swap in flight for a session. Its presence is the in-flight flag."""

    intent: SwapIntent
    state: SwapState = SwapState.IDLE
    quote: Optional[Quote] = None
    swap_id: str = field(default_factory=lambda: f"swap_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    awaiting_since: Optional[datetime] = None

    approval_tx_hashes: List[str] = field(default_factory=list)
    tx_hash: Optional[str] = None
    failure_reason: Optional[FailureReason] = None
    failure_message: Optional[str] = None
    history: List[Tuple[SwapState, SwapState, datetime]] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "swapId": self.swap_id,
            "state": self.state.value,
            "intent": self.intent.to_dict(),
            "quote": self.quote.to_dict() if self.quote else None,
            "approvalTxHashes": list(self.approval_tx_hashes),
            "txHash": self.tx_hash,
            "failureReason": self.failure_reason.value if self.failure_reason else None,
            "failureMessage": self.failure_message,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SwapEvent:
    event_type: ClassVar[str] = "event"

    def payload(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.event_type, **self.payload()}


@dataclass(frozen=True)
class QuoteReady(SwapEvent):
    event_type: ClassVar[str] = "QuoteReady"

    quote: Quote

    def payload(self) -> Dict[str, Any]:
        return {"quote": self.quote.to_dict()}


@dataclass(frozen=True)
class ConfirmationRequired(SwapEvent):
    event_type: ClassVar[str] = "ConfirmationRequired"

    intent: SwapIntent
    quote: Quote
    min_amount_out: int
    slippage_bps: int
    refreshed: bool = False
    executable: bool = True
    message: str = ""

    def payload(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.to_dict(),
            "quote": self.quote.to_dict(),
            "minAmountOut": str(self.min_amount_out),
            "slippageBps": self.slippage_bps,
            "refreshed": self.refreshed,
            "executable": self.executable,
            "message": self.message,
        }


@dataclass(frozen=True)
class ExecutionStarted(SwapEvent):
    event_type: ClassVar[str] = "ExecutionStarted"

    swap_id: str
    intent: SwapIntent
    quote: Quote

    def payload(self) -> Dict[str, Any]:
        return {"swapId": self.swap_id, "intent": self.intent.to_dict(), "quote": self.quote.to_dict()}


@dataclass(frozen=True)
class ExecutionSettled(SwapEvent):
    event_type: ClassVar[str] = "ExecutionSettled"

    tx_hash: str
    amount_in: str
    amount_out: str
    from_token: str
    to_token: str
    gas_used: Optional[int]
    explorer_url: str
    approval_tx_hashes: Tuple[str, ...] = ()

    def payload(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "amountIn": self.amount_in,
            "amountOut": self.amount_out,
            "fromToken": self.from_token,
            "toToken": self.to_token,
            "gasUsed": self.gas_used,
            "explorerUrl": self.explorer_url,
            "approvalTxHashes": list(self.approval_tx_hashes),
        }


@dataclass(frozen=True)
class ExecutionFailed(SwapEvent):
    event_type: ClassVar[str] = "ExecutionFailed"

    reason: FailureReason
    message: str
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None

    @property
    def user_message(self) -> str:
        text = self.message or FAILURE_MESSAGES.get(self.reason, "")
        if self.tx_hash:
            text = f"{text} Transaction: {self.tx_hash}"
            if self.explorer_url:
                text = f"{text} ({self.explorer_url})"
        return text

    def payload(self) -> Dict[str, Any]:
        return {
            "reason": self.reason.value,
            "message": self.user_message,
            "txHash": self.tx_hash,
            "explorerUrl": self.explorer_url,
        }


@dataclass(frozen=True)
class WalletLockedNotice(SwapEvent):
    event_type: ClassVar[str] = "WalletLockedNotice"

    message: str = FAILURE_MESSAGES[FailureReason.WALLET_LOCKED]

    def payload(self) -> Dict[str, Any]:
        return {"message": self.message}


@dataclass(frozen=True)
class SwapCancelled(SwapEvent):
    event_type: ClassVar[str] = "SwapCancelled"

    swap_id: str
    reason: str = "user"

    def payload(self) -> Dict[str, Any]:
        return {"swapId": self.swap_id, "reason": self.reason}


@dataclass(frozen=True)
class SwapRejected(SwapEvent):
    event_type: ClassVar[str] = "SwapRejected"

    reason: str
    message: str

    def payload(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": self.message}


@dataclass(frozen=True)
class AssistantReply(SwapEvent):
    event_type: ClassVar[str] = "AssistantReply"

    text: str

    def payload(self) -> Dict[str, Any]:
        return {"text": self.text}
