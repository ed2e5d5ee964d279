"""
Error Classification

Every failure the trading pipeline can report. Recoverable errors are
handled where they occur (fallback parser, fallback pricing, "no route");
the rest are terminal for the current swap attempt and are surfaced to the
user verbatim, together with the transaction hash when one exists.
"""

from enum import Enum
from typing import Any, Dict, Optional


class FailureReason(str, Enum):
    """Reasons carried by a failed swap."""

    NO_QUOTE_AVAILABLE = "NoQuoteAvailable"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    WALLET_LOCKED = "WalletLocked"
    STALE_QUOTE = "StaleQuote"
    APPROVAL_FAILED = "ApprovalFailed"
    SWAP_REVERTED = "SwapReverted"
    CONFIRMATION_TIMEOUT = "ConfirmationTimeout"
    EXECUTION_ERROR = "ExecutionError"


class SwapAgentError(Exception):
    """Base class for all pipeline errors."""

    code: str = "SwapAgentError"
    recoverable: bool = False

    def __init__(self, message: str, *, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.tx_hash = tx_hash

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.tx_hash:
            payload["txHash"] = self.tx_hash
        return payload


# Parsing and quoting (recovered locally)
class UnknownToken(SwapAgentError):
    code = "UnknownToken"
    recoverable = True

    def __init__(self, symbol: str):
        super().__init__(f"Token '{symbol}' is not supported")
        self.symbol = symbol


class IntentParseFailure(SwapAgentError):
    """The completion did not honour the JSON-or-null contract."""

    code = "IntentParseFailure"
    recoverable = True


class NoQuoteAvailable(SwapAgentError):
    code = "NoQuoteAvailable"
    recoverable = True


class InsufficientLiquidity(SwapAgentError):
    code = "InsufficientLiquidity"
    recoverable = True


class StaleQuote(SwapAgentError):
    code = "StaleQuote"
    recoverable = True


# Session-level
class PendingSwapExists(SwapAgentError):
    code = "PendingSwapExists"

    def __init__(self, message: str = "A swap is already in progress. Confirm or cancel it first."):
        super().__init__(message)


class InvalidTransition(SwapAgentError):
    code = "InvalidTransition"

    def __init__(self, from_state: Any, to_state: Any, message: Optional[str] = None):
        from_value = getattr(from_state, "value", from_state)
        to_value = getattr(to_state, "value", to_state)
        super().__init__(message or f"Invalid transition from {from_value} to {to_value}")
        self.from_state = from_state
        self.to_state = to_state


class CancellationRejected(InvalidTransition):
    """Cancellation is only honoured while a swap awaits confirmation."""

    code = "CancellationRejected"


# Wallet custody (terminal)
class WalletError(SwapAgentError):
    code = "WalletError"


class WalletNotFound(WalletError):
    code = "WalletNotFound"


class WalletAlreadyExists(WalletError):
    code = "WalletAlreadyExists"


class WalletLocked(WalletError):
    code = "WalletLocked"

    def __init__(self, message: str = "Wallet is locked. Please unlock it first."):
        super().__init__(message)


class InvalidPassword(WalletError):
    code = "InvalidPassword"

    def __init__(self, message: str = "Invalid password or corrupted wallet data"):
        super().__init__(message)


class InvalidKeyMaterial(WalletError):
    code = "InvalidKeyMaterial"


# On-chain execution (terminal)
class ExecutionError(SwapAgentError):
    code = "ExecutionError"


class InsufficientBalance(ExecutionError):
    code = "InsufficientBalance"


class ApprovalFailed(ExecutionError):
    code = "ApprovalFailed"


class SwapReverted(ExecutionError):
    code = "SwapReverted"


class ConfirmationTimeout(ExecutionError):
    code = "ConfirmationTimeout"


class RpcError(SwapAgentError):
    """JSON-RPC endpoint returned an error object or bad payload."""

    code = "RpcError"

    def __init__(
        self,
        message: str,
        *,
        rpc_code: Optional[int] = None,
        data: Any = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message, tx_hash=tx_hash)
        self.rpc_code = rpc_code
        self.data = data


class RpcTimeout(RpcError):
    code = "RpcTimeout"


FAILURE_MESSAGES: Dict[FailureReason, str] = {
    FailureReason.NO_QUOTE_AVAILABLE: "No route is available for this pair right now.",
    FailureReason.INSUFFICIENT_LIQUIDITY: "There is not enough liquidity for this trade.",
    FailureReason.INSUFFICIENT_BALANCE: "The wallet balance is too low for this swap.",
    FailureReason.WALLET_LOCKED: "Wallet is locked. Please unlock it first.",
    FailureReason.STALE_QUOTE: "The quote expired and a fresh price could not be obtained.",
    FailureReason.APPROVAL_FAILED: "The token approval transaction failed.",
    FailureReason.SWAP_REVERTED: "The swap transaction reverted on-chain.",
    FailureReason.CONFIRMATION_TIMEOUT: "The swap was submitted but not confirmed in time. It may still confirm later.",
    FailureReason.EXECUTION_ERROR: "The swap could not be executed.",
}


def reason_for(error: SwapAgentError) -> FailureReason:
    """Map an error instance to the reason reported on a failed swap."""

    try:
        return FailureReason(error.code)
    except ValueError:
        if isinstance(error, WalletLocked):
            return FailureReason.WALLET_LOCKED
        return FailureReason.EXECUTION_ERROR
