"""
Quote Service

Prices a prospective swap. Fee tiers are probed smallest fee first against
the venue's quoting contract; the first strictly positive answer wins and
produces an ``OnchainQuote``. When no tier can be quoted at all the static
ratio table produces an ``EstimatedQuote``. ``None`` means no route.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from ...config import settings
from ...errors import InsufficientLiquidity, NoQuoteAvailable, SwapAgentError
from ..tokens import TokenDescriptor, format_amount, resolve, to_base_units, wrapped_equivalent
from .models import EstimatedQuote, OnchainQuote, Quote, TierQuote
from .venues import SwapVenue, fee_label

logger = logging.getLogger(__name__)

# Gas budget quoted for estimated swaps, when no quoter reported one.
ESTIMATED_SWAP_GAS = 150_000

# Reference probe size as a fraction of the trade, for price impact.
REFERENCE_PROBE_DIVISOR = 1_000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _ProbeOutcome:
    fee: Optional[int] = None
    tier_quote: Optional[TierQuote] = None
    answered_zero: bool = False


class QuoteService:
    def __init__(
        self,
        venue: SwapVenue,
        *,
        fee_tiers: Optional[List[int]] = None,
        price_ratios: Optional[Mapping[str, Mapping[str, Decimal]]] = None,
        ttl_seconds: Optional[int] = None,
        timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.venue = venue
        self.fee_tiers = sorted(fee_tiers or settings.fee_tiers)
        self.price_ratios = price_ratios if price_ratios is not None else settings.fallback_price_ratios
        self.ttl_seconds = ttl_seconds or settings.quote_ttl_seconds
        self.timeout = timeout or settings.rpc_timeout_seconds
        self.clock = clock or _utcnow

    async def get_quote(
        self,
        from_symbol: str,
        to_symbol: str,
        amount: Union[str, Decimal],
    ) -> Optional[Quote]:
        """Quote ``amount`` of ``from_symbol`` into ``to_symbol``, or ``None`` when no route exists."""
        quote, _ = await self._quote(from_symbol, to_symbol, amount)
        return quote

    async def require_quote(
        self,
        from_symbol: str,
        to_symbol: str,
        amount: Union[str, Decimal],
    ) -> Quote:
        """Like ``get_quote`` but raises when there is no route."""
        quote, answered_zero = await self._quote(from_symbol, to_symbol, amount)
        if quote is not None:
            return quote
        pair = f"{from_symbol.upper()} → {to_symbol.upper()}"
        if answered_zero:
            raise InsufficientLiquidity(f"Pools for {pair} returned no output for this amount")
        raise NoQuoteAvailable(f"No route available for {pair}")

    async def _quote(self, from_symbol, to_symbol, amount) -> Tuple[Optional[Quote], bool]:
        source = resolve(from_symbol)
        target = resolve(to_symbol)
        route_in = wrapped_equivalent(source)
        route_out = wrapped_equivalent(target)

        try:
            amount_decimal = Decimal(str(amount))
        except InvalidOperation:
            logger.warning("Refusing to quote non-numeric amount %r", amount)
            return None, False
        amount_in = to_base_units(amount_decimal, source.decimals) if amount_decimal.is_finite() else 0
        if amount_in <= 0 or route_in.address.lower() == route_out.address.lower():
            return None, False

        probe = await self._probe_tiers(route_in, route_out, amount_in)
        if probe.tier_quote is not None and probe.fee is not None:
            impact = await self._price_impact(route_in, route_out, amount_in, probe.tier_quote.amount_out, probe.fee)
            amount_out = probe.tier_quote.amount_out
            logger.info(
                "Onchain quote %s %s -> %s %s at %s tier",
                amount_decimal, source.symbol, format_amount(amount_out, target.decimals), target.symbol, fee_label(probe.fee),
            )
            return OnchainQuote(
                from_token=source,
                to_token=target,
                amount_in=str(amount_decimal),
                amount_in_base_units=amount_in,
                amount_out_base_units=amount_out,
                amount_out_display=format_amount(amount_out, target.decimals),
                route=self.venue.describe_route(source, target, probe.fee),
                venue=self.venue.name,
                gas_estimate=probe.tier_quote.gas_estimate or None,
                price_impact_display=impact,
                fee_tier_used=probe.fee,
                issued_at=self.clock(),
                ttl_seconds=self.ttl_seconds,
            ), False

        if probe.answered_zero:
            # The pools exist but cannot fill this size; a static ratio would misprice it.
            logger.info("All reachable tiers returned zero for %s -> %s", route_in.symbol, route_out.symbol)
            return None, True

        return self._estimate(source, target, route_in, route_out, amount_decimal, amount_in), False

    async def _probe_tiers(self, token_in: TokenDescriptor, token_out: TokenDescriptor, amount_in: int) -> _ProbeOutcome:
        outcome = _ProbeOutcome()
        for fee in self.fee_tiers:
            tier_quote = await self._probe(token_in, token_out, amount_in, fee)
            if tier_quote is None:
                continue
            if tier_quote.amount_out > 0:
                outcome.fee = fee
                outcome.tier_quote = tier_quote
                return outcome
            outcome.answered_zero = True
        return outcome

    async def _probe(self, token_in: TokenDescriptor, token_out: TokenDescriptor, amount_in: int, fee: int) -> Optional[TierQuote]:
        try:
            return await asyncio.wait_for(
                self.venue.quote_exact_input(token_in, token_out, amount_in, fee),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.info("Quote probe timed out for %s tier", fee_label(fee))
        except SwapAgentError as exc:
            logger.info("No %s liquidity at %s tier: %s", self.venue.label, fee_label(fee), exc.message)
        return None

    async def _price_impact(
        self,
        token_in: TokenDescriptor,
        token_out: TokenDescriptor,
        amount_in: int,
        amount_out: int,
        fee: int,
    ) -> str:
        reference_in = amount_in // REFERENCE_PROBE_DIVISOR
        if reference_in <= 0:
            return "< 0.01%"
        reference = await self._probe(token_in, token_out, reference_in, fee)
        if reference is None or reference.amount_out <= 0:
            return "unknown"

        # Compare the marginal rate of a tiny trade with the rate actually received.
        reference_rate = Decimal(reference.amount_out) / Decimal(reference_in)
        trade_rate = Decimal(amount_out) / Decimal(amount_in)
        impact = max(Decimal(0), (Decimal(1) - trade_rate / reference_rate) * 100)
        if impact < Decimal("0.01"):
            return "< 0.01%"
        return f"{impact.quantize(Decimal('0.01'))}%"

    def _ratio(self, route_in: TokenDescriptor, route_out: TokenDescriptor) -> Optional[Decimal]:
        ratios: Dict[str, Decimal] = dict(self.price_ratios.get(route_in.symbol, {}))
        ratio = ratios.get(route_out.symbol)
        if ratio is None:
            return None
        ratio = Decimal(str(ratio))
        return ratio if ratio > 0 else None

    def _estimate(
        self,
        source: TokenDescriptor,
        target: TokenDescriptor,
        route_in: TokenDescriptor,
        route_out: TokenDescriptor,
        amount: Decimal,
        amount_in: int,
    ) -> Optional[EstimatedQuote]:
        ratio = self._ratio(route_in, route_out)
        if ratio is None:
            logger.info("No fallback ratio for %s -> %s", route_in.symbol, route_out.symbol)
            return None

        amount_out = to_base_units(amount * ratio, target.decimals)
        if amount_out <= 0:
            return None

        route = f"{route_in.symbol} → {route_out.symbol} (estimated from static price table, non-binding)"
        if route_in.symbol != source.symbol:
            route += f" [{source.symbol} wrapped as {route_in.symbol}]"
        logger.info("Estimated quote %s %s -> %s %s", amount, source.symbol, format_amount(amount_out, target.decimals), target.symbol)
        return EstimatedQuote(
            from_token=source,
            to_token=target,
            amount_in=str(amount),
            amount_in_base_units=amount_in,
            amount_out_base_units=amount_out,
            amount_out_display=format_amount(amount_out, target.decimals),
            route=route,
            venue=self.venue.name,
            gas_estimate=ESTIMATED_SWAP_GAS,
            issued_at=self.clock(),
            ttl_seconds=self.ttl_seconds,
        )
