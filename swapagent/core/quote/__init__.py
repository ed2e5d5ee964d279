from ..tokens import to_base_units
from .models import (
    BPS_DENOMINATOR,
    INDICATIVE_PRICE_IMPACT,
    EstimatedQuote,
    OnchainQuote,
    Quote,
    QuoteKind,
    TierQuote,
    is_materially_worse,
    min_acceptable_out,
)
from .service import ESTIMATED_SWAP_GAS, QuoteService
from .venues import (
    VENUE_REGISTRY,
    SwapVenue,
    UniswapV3Venue,
    UniswapV4Venue,
    create_venue,
)

__all__ = [
    "BPS_DENOMINATOR",
    "ESTIMATED_SWAP_GAS",
    "INDICATIVE_PRICE_IMPACT",
    "EstimatedQuote",
    "OnchainQuote",
    "Quote",
    "QuoteKind",
    "QuoteService",
    "SwapVenue",
    "TierQuote",
    "UniswapV3Venue",
    "UniswapV4Venue",
    "VENUE_REGISTRY",
    "create_venue",
    "is_materially_worse",
    "min_acceptable_out",
    "to_base_units",
]
