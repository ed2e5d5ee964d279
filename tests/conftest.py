"""
Shared fakes for the quote, swap and chat tests.

Nothing here talks to a network: the venue prices from a rate table, the
executor returns scripted receipts and the clock only moves when told to.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from swapagent.core.execution import PreparedTransaction, TransactionBuilder, TransactionResult, TransactionStatus
from swapagent.core.quote import QuoteService, SwapVenue, TierQuote
from swapagent.core.swap import SwapOrchestrator
from swapagent.core.wallet import KdfParams
from swapagent.errors import RpcError

OWNER = "0x1111111111111111111111111111111111111111"
ROUTER = "0x2222222222222222222222222222222222222222"

# Argon2 cost low enough for unit tests.
FAST_KDF = KdfParams(time_cost=1, memory_cost=8, parallelism=1)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeVenue(SwapVenue):
    """Prices each fee tier from ``rates`` (output base units per input base unit)."""

    name = "fake"
    label = "Fake DEX"

    def __init__(self, rates: Optional[Dict[int, Decimal]] = None, errors: Optional[Dict[int, Exception]] = None):
        super().__init__(rpc=None, chain_id=137)
        self.rates: Dict[int, Decimal] = dict(rates or {})
        self.errors: Dict[int, Exception] = dict(errors or {})
        self.delay = 0.0
        self.approvals: List[PreparedTransaction] = []
        self.quote_calls: List[tuple] = []
        self.swaps: List[dict] = []

    @property
    def spender(self) -> str:
        return ROUTER

    async def quote_exact_input(self, token_in, token_out, amount_in, fee) -> TierQuote:
        self.quote_calls.append((token_in.symbol, token_out.symbol, amount_in, fee))
        if self.delay:
            await asyncio.sleep(self.delay)
        if fee in self.errors:
            raise self.errors[fee]
        if fee not in self.rates:
            raise RpcError(f"no pool at fee {fee}")
        return TierQuote(amount_out=int(amount_in * self.rates[fee]), gas_estimate=110_000)

    async def approval_transactions(self, owner, token, amount, deadline) -> List[PreparedTransaction]:
        if token.is_native:
            return []
        return list(self.approvals)

    def build_swap(self, owner, source, target, amount_in, min_amount_out, fee, deadline) -> PreparedTransaction:
        self.swaps.append(
            {
                "owner": owner,
                "source": source.symbol,
                "target": target.symbol,
                "amount_in": amount_in,
                "min_amount_out": min_amount_out,
                "fee": fee,
                "deadline": deadline,
            }
        )
        return TransactionBuilder.build_swap(
            chain_id=self.chain_id,
            from_address=owner,
            to_address=ROUTER,
            calldata="0x",
            value=amount_in if source.is_native else 0,
        )


class FakeExecutor:
    """Duck-typed ``TransactionExecutor`` with scripted outcomes."""

    def __init__(self):
        self.native_balance = 10**21
        self.token_balance = 10**30
        self.statuses: List[TransactionStatus] = []
        self.executed: List[PreparedTransaction] = []
        self.gate: Optional[asyncio.Event] = None

    async def get_native_balance(self, address: str) -> int:
        return self.native_balance

    async def get_token_balance(self, token_address: str, owner_address: str) -> int:
        return self.token_balance

    async def execute(self, tx: PreparedTransaction, signer) -> TransactionResult:
        self.executed.append(tx)
        if self.gate is not None:
            await self.gate.wait()
        status = self.statuses.pop(0) if self.statuses else TransactionStatus.CONFIRMED
        tx_hash = None if status == TransactionStatus.FAILED else f"0x{len(self.executed):064x}"
        return TransactionResult(
            tx_id=tx.tx_id,
            tx_type=tx.tx_type,
            tx_hash=tx_hash,
            status=status,
            gas_used=120_000 if tx_hash else None,
            error=None if status == TransactionStatus.CONFIRMED else f"scripted {status.value}",
        )


class FakeSigner:
    address = OWNER

    async def send_transaction(self, tx) -> str:
        raise AssertionError("FakeExecutor never signs")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def venue() -> FakeVenue:
    # 1 USDC (6 decimals) buys 1 DAI (18 decimals) at the 0.3% tier
    return FakeVenue(rates={3000: Decimal(10**12)})


@pytest.fixture
def quote_service(venue, clock) -> QuoteService:
    return QuoteService(venue, fee_tiers=[500, 3000, 10000], price_ratios={}, ttl_seconds=30, timeout=1.0, clock=clock)


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def signer_slot() -> dict:
    """Mutable holder so a test can lock the wallet by clearing it."""
    return {"signer": FakeSigner()}


@pytest.fixture
def orchestrator(quote_service, executor, signer_slot, clock) -> SwapOrchestrator:
    return SwapOrchestrator(
        quote_service,
        executor,
        lambda: signer_slot["signer"],
        slippage_bps=50,
        deadline_minutes=20,
        confirmation_timeout_seconds=300,
        allow_estimated_execution=False,
        min_gas_balance=Decimal("0.001"),
        clock=clock,
        explorer_url=lambda tx_hash: f"https://polygonscan.com/tx/{tx_hash}",
    )


@pytest.fixture
def fast_kdf() -> KdfParams:
    return FAST_KDF
