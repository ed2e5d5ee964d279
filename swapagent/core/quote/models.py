"""Quote models.

A quote is either binding (priced by an on-chain quoter) or an indicative
estimate from the static ratio table. The two are separate types so a
caller has to look at ``kind`` / ``is_binding`` before treating a number as
executable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from ..tokens import TokenDescriptor

BPS_DENOMINATOR = 10_000

INDICATIVE_PRICE_IMPACT = "indicative only"


class QuoteKind(str, Enum):
    ONCHAIN = "Onchain"
    ESTIMATED = "Estimated"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def min_acceptable_out(amount_out: int, slippage_bps: int) -> int:
    """Lowest output accepted on execution: floor(amount_out * (1 - slippage))."""

    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"slippage_bps out of range: {slippage_bps}")
    return (int(amount_out) * (BPS_DENOMINATOR - slippage_bps)) // BPS_DENOMINATOR


@dataclass(frozen=True)
class TierQuote:
    """Raw answer from a venue quoter for one fee tier."""

    amount_out: int
    gas_estimate: Optional[int] = None


@dataclass(frozen=True)
class Quote:
    from_token: TokenDescriptor
    to_token: TokenDescriptor
    amount_in: str
    amount_in_base_units: int
    amount_out_base_units: int
    amount_out_display: str
    route: str
    venue: str
    gas_estimate: Optional[int] = None
    price_impact_display: str = INDICATIVE_PRICE_IMPACT
    fee_tier_used: Optional[int] = None
    issued_at: datetime = field(default_factory=_utcnow)
    ttl_seconds: int = 30

    kind: ClassVar[QuoteKind]
    is_binding: ClassVar[bool]

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _utcnow()) >= self.expires_at

    def min_amount_out(self, slippage_bps: int) -> int:
        return min_acceptable_out(self.amount_out_base_units, slippage_bps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "binding": self.is_binding,
            "fromToken": self.from_token.symbol,
            "toToken": self.to_token.symbol,
            "amountIn": self.amount_in,
            "amountInBaseUnits": str(self.amount_in_base_units),
            "amountOutBaseUnits": str(self.amount_out_base_units),
            "amountOutDisplay": self.amount_out_display,
            "gasEstimate": self.gas_estimate,
            "priceImpact": self.price_impact_display,
            "route": self.route,
            "feeTierUsed": self.fee_tier_used,
            "venue": self.venue,
            "issuedAt": self.issued_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "ttlSeconds": self.ttl_seconds,
        }


@dataclass(frozen=True)
class OnchainQuote(Quote):
    """Priced by the venue's quoting contract at ``fee_tier_used``."""

    kind: ClassVar[QuoteKind] = QuoteKind.ONCHAIN
    is_binding: ClassVar[bool] = True


@dataclass(frozen=True)
class EstimatedQuote(Quote):
    """Derived from the static ratio table. Not a price anyone has committed to."""

    kind: ClassVar[QuoteKind] = QuoteKind.ESTIMATED
    is_binding: ClassVar[bool] = False

    def __post_init__(self):
        if self.price_impact_display != INDICATIVE_PRICE_IMPACT:
            object.__setattr__(self, "price_impact_display", INDICATIVE_PRICE_IMPACT)


def is_materially_worse(previous: Quote, fresh: Quote, slippage_bps: int) -> bool:
    """A refreshed quote needs re-confirmation when it lost bindingness or dropped past slippage."""

    if previous.is_binding and not fresh.is_binding:
        return True
    return fresh.amount_out_base_units < previous.min_amount_out(slippage_bps)
