"""
Swap Orchestrator

Coordinates one session's swap from intent to settlement:

    Idle -> Quoted -> AwaitingConfirmation -> Executing -> Settled
                                  |              |
                                  +-> Cancelled  +-> Failed

It is the only component that writes to the chain. Every operation returns
the events it emitted, in order, for the chat surface to render.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, List, Optional

import structlog

from ...config import settings
from ...errors import (
    FAILURE_MESSAGES,
    ApprovalFailed,
    CancellationRejected,
    ConfirmationTimeout,
    ExecutionError,
    FailureReason,
    InsufficientBalance,
    InvalidTransition,
    PendingSwapExists,
    SwapAgentError,
    SwapReverted,
    reason_for,
)
from ..execution import TransactionExecutor, TransactionSigner, TransactionStatus
from ..intent import SwapIntent
from ..quote import Quote, QuoteService, is_materially_worse
from ..tokens import TokenDescriptor, format_amount, native_token, to_base_units
from .models import (
    ConfirmationRequired,
    ExecutionFailed,
    ExecutionSettled,
    ExecutionStarted,
    PendingSwap,
    QuoteReady,
    SwapCancelled,
    SwapEvent,
    SwapState,
    WalletLockedNotice,
)

logger = logging.getLogger(__name__)
event_log = structlog.stdlib.get_logger("swap")

# Fee tier used when executing against an estimated quote, which has none.
ESTIMATED_EXECUTION_FEE = 3000

TRANSITIONS: Dict[SwapState, FrozenSet[SwapState]] = {
    SwapState.IDLE: frozenset({SwapState.QUOTED, SwapState.FAILED}),
    SwapState.QUOTED: frozenset({SwapState.AWAITING_CONFIRMATION, SwapState.FAILED}),
    SwapState.AWAITING_CONFIRMATION: frozenset({SwapState.EXECUTING, SwapState.CANCELLED, SwapState.FAILED}),
    SwapState.EXECUTING: frozenset({SwapState.SETTLED, SwapState.FAILED}),
    SwapState.SETTLED: frozenset(),
    SwapState.FAILED: frozenset(),
    SwapState.CANCELLED: frozenset(),
}

SignerProvider = Callable[[], Optional[TransactionSigner]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SwapOrchestrator:
    def __init__(
        self,
        quote_service: QuoteService,
        executor: TransactionExecutor,
        signer_provider: SignerProvider,
        *,
        slippage_bps: Optional[int] = None,
        deadline_minutes: Optional[int] = None,
        confirmation_timeout_seconds: Optional[int] = None,
        allow_estimated_execution: Optional[bool] = None,
        min_gas_balance: Optional[Decimal] = None,
        clock: Optional[Callable[[], datetime]] = None,
        explorer_url: Optional[Callable[[str], str]] = None,
    ):
        self.quote_service = quote_service
        self.executor = executor
        self.signer_provider = signer_provider
        self.slippage_bps = settings.slippage_bps if slippage_bps is None else slippage_bps
        self.deadline_minutes = deadline_minutes or settings.deadline_minutes
        self.confirmation_timeout_seconds = confirmation_timeout_seconds or settings.confirmation_timeout_seconds
        self.allow_estimated_execution = (
            settings.allow_estimated_execution if allow_estimated_execution is None else allow_estimated_execution
        )
        self.min_gas_balance = settings.min_gas_balance if min_gas_balance is None else Decimal(str(min_gas_balance))
        self.clock = clock or _utcnow
        self.explorer_url = explorer_url or settings.explorer_tx_url

        self.pending: Optional[PendingSwap] = None
        self.last_outcome: Optional[PendingSwap] = None
        self._confirming = False

    @property
    def state(self) -> SwapState:
        return self.pending.state if self.pending else SwapState.IDLE

    @property
    def has_pending_swap(self) -> bool:
        return self.pending is not None and not self.pending.is_terminal

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def submit_intent(self, intent: SwapIntent) -> List[SwapEvent]:
        """Quote ``intent`` and ask for confirmation.

        Raises ``PendingSwapExists`` while another swap is in flight; the
        existing swap is left exactly as it was.
        """
        if self.has_pending_swap:
            logger.info("Rejecting %s: swap %s is %s", intent.describe(), self.pending.swap_id, self.pending.state.value)
            raise PendingSwapExists()

        swap = PendingSwap(intent=intent, created_at=self.clock(), updated_at=self.clock())
        self.pending = swap
        event_log.info("swap_started", swap_id=swap.swap_id, intent=intent.describe())

        try:
            quote = await self.quote_service.require_quote(intent.from_token, intent.to_token, intent.amount)
        except SwapAgentError as exc:
            reason = reason_for(exc)
            if reason != FailureReason.INSUFFICIENT_LIQUIDITY:
                reason = FailureReason.NO_QUOTE_AVAILABLE
            return [self._fail(swap, reason, exc.message)]

        swap.quote = quote
        self._transition(swap, SwapState.QUOTED)
        events: List[SwapEvent] = [QuoteReady(quote)]

        self._transition(swap, SwapState.AWAITING_CONFIRMATION)
        swap.awaiting_since = self.clock()
        events.append(self._confirmation_required(swap))
        return events

    async def confirm(self) -> List[SwapEvent]:
        swap = self.pending
        if swap is None or swap.state != SwapState.AWAITING_CONFIRMATION:
            raise InvalidTransition(self.state, SwapState.EXECUTING, "There is no swap awaiting confirmation")
        if self._confirming:
            raise InvalidTransition(swap.state, SwapState.EXECUTING, "This swap is already being confirmed")

        self._confirming = True
        try:
            return await self._confirm(swap)
        finally:
            self._confirming = False

    def cancel(self, reason: str = "user") -> List[SwapEvent]:
        """Cancel a swap awaiting confirmation. Nothing has touched the chain yet."""
        swap = self.pending
        if swap is None or swap.state != SwapState.AWAITING_CONFIRMATION or self._confirming:
            raise CancellationRejected(
                self.state,
                SwapState.CANCELLED,
                "Only a swap that is awaiting confirmation can be cancelled",
            )
        self._transition(swap, SwapState.CANCELLED)
        return [SwapCancelled(swap_id=swap.swap_id, reason=reason)]

    def tick(self, now: Optional[datetime] = None) -> List[SwapEvent]:
        """Expire a confirmation that has waited longer than the timeout."""
        swap = self.pending
        if swap is None or swap.state != SwapState.AWAITING_CONFIRMATION or self._confirming:
            return []
        now = now or self.clock()
        since = swap.awaiting_since or swap.updated_at
        if now - since < timedelta(seconds=self.confirmation_timeout_seconds):
            return []
        logger.info("Confirmation for swap %s timed out", swap.swap_id)
        return self.cancel(reason="timeout")

    # ------------------------------------------------------------------
    # Confirmation and execution
    # ------------------------------------------------------------------

    async def _confirm(self, swap: PendingSwap) -> List[SwapEvent]:
        signer = self.signer_provider()
        if signer is None:
            return [WalletLockedNotice(), self._fail(swap, FailureReason.WALLET_LOCKED)]

        quote = swap.quote
        if quote.is_expired(self.clock()) or not self._executable(quote):
            fresh = await self._refresh_quote(swap)
            if fresh is None:
                return [self._fail(swap, FailureReason.STALE_QUOTE)]
            swap.quote = fresh
            if is_materially_worse(quote, fresh, self.slippage_bps):
                logger.info("Refreshed quote for swap %s is materially worse; asking again", swap.swap_id)
                swap.awaiting_since = self.clock()
                return [QuoteReady(fresh), self._confirmation_required(swap, refreshed=True)]
            quote = fresh

        if not self._executable(quote):
            return [
                self._fail(
                    swap,
                    FailureReason.NO_QUOTE_AVAILABLE,
                    "Only an indicative estimate is available for this pair, so the swap was not executed.",
                )
            ]
        if quote.is_expired(self.clock()):
            return [self._fail(swap, FailureReason.STALE_QUOTE)]

        self._transition(swap, SwapState.EXECUTING)
        events: List[SwapEvent] = [ExecutionStarted(swap_id=swap.swap_id, intent=swap.intent, quote=quote)]

        try:
            events.append(await self._execute(swap, quote, signer))
        except SwapAgentError as exc:
            events.append(self._fail(swap, reason_for(exc), exc.message, tx_hash=exc.tx_hash or swap.tx_hash))
        except Exception:
            logger.exception("Unexpected error executing swap %s", swap.swap_id)
            events.append(self._fail(swap, FailureReason.EXECUTION_ERROR, tx_hash=swap.tx_hash))
        return events

    async def _execute(self, swap: PendingSwap, quote: Quote, signer: TransactionSigner) -> ExecutionSettled:
        source = quote.from_token
        target = quote.to_token
        amount_in = quote.amount_in_base_units
        venue = self.quote_service.venue

        await self._check_balances(signer.address, source, amount_in)

        deadline = int(self.clock().timestamp()) + self.deadline_minutes * 60
        for approval in await venue.approval_transactions(signer.address, source, amount_in, deadline):
            result = await self.executor.execute(approval, signer)
            if result.tx_hash:
                swap.approval_tx_hashes.append(result.tx_hash)
            if not result.is_success:
                raise ApprovalFailed(
                    f"{FAILURE_MESSAGES[FailureReason.APPROVAL_FAILED]} ({result.error or result.status.value})",
                    tx_hash=result.tx_hash,
                )

        min_amount_out = quote.min_amount_out(self.slippage_bps)
        tx = venue.build_swap(
            signer.address,
            source,
            target,
            amount_in,
            min_amount_out,
            quote.fee_tier_used or ESTIMATED_EXECUTION_FEE,
            deadline,
        )
        result = await self.executor.execute(tx, signer)
        swap.tx_hash = result.tx_hash

        if result.status == TransactionStatus.REVERTED:
            raise SwapReverted(FAILURE_MESSAGES[FailureReason.SWAP_REVERTED], tx_hash=result.tx_hash)
        if result.status == TransactionStatus.TIMEOUT:
            raise ConfirmationTimeout(FAILURE_MESSAGES[FailureReason.CONFIRMATION_TIMEOUT], tx_hash=result.tx_hash)
        if not result.is_success:
            raise ExecutionError(
                result.error or FAILURE_MESSAGES[FailureReason.EXECUTION_ERROR],
                tx_hash=result.tx_hash,
            )

        self._transition(swap, SwapState.SETTLED)
        return ExecutionSettled(
            tx_hash=result.tx_hash,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out_display,
            from_token=source.symbol,
            to_token=target.symbol,
            gas_used=result.gas_used,
            explorer_url=self.explorer_url(result.tx_hash),
            approval_tx_hashes=tuple(swap.approval_tx_hashes),
        )

    async def _check_balances(self, owner: str, source: TokenDescriptor, amount_in: int) -> None:
        gas_token = native_token()
        gas_reserve = to_base_units(self.min_gas_balance, gas_token.decimals)
        native_balance = await self.executor.get_native_balance(owner)

        if source.is_native:
            needed = amount_in + gas_reserve
            if native_balance < needed:
                raise InsufficientBalance(
                    f"Need {format_amount(needed, gas_token.decimals)} {gas_token.symbol} including gas, "
                    f"have {format_amount(native_balance, gas_token.decimals)}"
                )
            return

        if native_balance < gas_reserve:
            raise InsufficientBalance(
                f"Need at least {self.min_gas_balance} {gas_token.symbol} for gas, "
                f"have {format_amount(native_balance, gas_token.decimals)}"
            )
        balance = await self.executor.get_token_balance(source.address, owner)
        if balance < amount_in:
            raise InsufficientBalance(
                f"Need {format_amount(amount_in, source.decimals)} {source.symbol}, "
                f"have {format_amount(balance, source.decimals)}"
            )

    async def _refresh_quote(self, swap: PendingSwap) -> Optional[Quote]:
        intent = swap.intent
        try:
            return await self.quote_service.get_quote(intent.from_token, intent.to_token, intent.amount)
        except SwapAgentError as exc:
            logger.warning("Quote refresh failed for swap %s: %s", swap.swap_id, exc.message)
            return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _executable(self, quote: Quote) -> bool:
        return quote.is_binding or self.allow_estimated_execution

    def _confirmation_required(self, swap: PendingSwap, refreshed: bool = False) -> ConfirmationRequired:
        quote = swap.quote
        min_amount_out = quote.min_amount_out(self.slippage_bps)
        target = quote.to_token

        lines = []
        if refreshed:
            lines.append("The price moved since your last quote.")
        lines.append(
            f"Swap {quote.amount_in} {quote.from_token.symbol} for about "
            f"{quote.amount_out_display} {target.symbol} "
            f"(at least {format_amount(min_amount_out, target.decimals)} after "
            f"{Decimal(self.slippage_bps) / 100}% slippage)."
        )
        lines.append(f"Route: {quote.route}. Price impact: {quote.price_impact_display}.")
        if not quote.is_binding:
            lines.append("This is an indicative estimate, not a live on-chain price.")
        lines.append("Reply 'confirm' to proceed or 'cancel' to abort.")

        return ConfirmationRequired(
            intent=swap.intent,
            quote=quote,
            min_amount_out=min_amount_out,
            slippage_bps=self.slippage_bps,
            refreshed=refreshed,
            executable=self._executable(quote),
            message=" ".join(lines),
        )

    def _fail(
        self,
        swap: PendingSwap,
        reason: FailureReason,
        message: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ) -> ExecutionFailed:
        swap.failure_reason = reason
        swap.failure_message = message or FAILURE_MESSAGES[reason]
        if tx_hash:
            swap.tx_hash = tx_hash
        self._transition(swap, SwapState.FAILED)
        return ExecutionFailed(
            reason=reason,
            message=swap.failure_message,
            tx_hash=tx_hash,
            explorer_url=self.explorer_url(tx_hash) if tx_hash else None,
        )

    def _transition(self, swap: PendingSwap, to_state: SwapState) -> None:
        from_state = swap.state
        if to_state not in TRANSITIONS[from_state]:
            raise InvalidTransition(from_state, to_state)

        now = self.clock()
        swap.state = to_state
        swap.updated_at = now
        swap.history.append((from_state, to_state, now))
        event_log.info(
            "swap_state_transition",
            swap_id=swap.swap_id,
            from_state=from_state.value,
            to_state=to_state.value,
            tx_hash=swap.tx_hash,
            failure_reason=swap.failure_reason.value if swap.failure_reason else None,
        )

        if to_state.is_terminal:
            self.last_outcome = swap
            self.pending = None
