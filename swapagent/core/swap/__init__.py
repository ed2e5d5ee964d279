"""
Swap lifecycle: the per-session state machine and the events it emits.
"""

from .models import (
    AssistantReply,
    ConfirmationRequired,
    ExecutionFailed,
    ExecutionSettled,
    ExecutionStarted,
    PendingSwap,
    QuoteReady,
    SwapCancelled,
    SwapEvent,
    SwapRejected,
    SwapState,
    TERMINAL_STATES,
    WalletLockedNotice,
)
from .orchestrator import TRANSITIONS, SwapOrchestrator

__all__ = [
    # State
    "PendingSwap",
    "SwapState",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "SwapOrchestrator",
    # Events
    "AssistantReply",
    "ConfirmationRequired",
    "ExecutionFailed",
    "ExecutionSettled",
    "ExecutionStarted",
    "QuoteReady",
    "SwapCancelled",
    "SwapEvent",
    "SwapRejected",
    "WalletLockedNotice",
]
