"""Static token registry for the deployment chain (Polygon PoS)."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple, Union

from ...errors import UnknownToken

# Address the chain reports for its native gas asset.
NATIVE_TOKEN_ADDRESS = '0x0000000000000000000000000000000000001010'

# uint256 needs 78 significant digits.
_AMOUNT_PRECISION = 80


@dataclass(frozen=True)
class TokenDescriptor:
    symbol: str
    canonical_symbol: str
    address: str
    decimals: int
    display_name: str
    is_native: bool = False

    @property
    def is_alias(self) -> bool:
        return self.symbol != self.canonical_symbol


# symbol -> (address, decimals, display name, is_native)
_CANONICAL_TOKENS: Dict[str, Tuple[str, int, str, bool]] = {
    'POL': (NATIVE_TOKEN_ADDRESS, 18, 'Polygon', True),
    'WPOL': ('0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270', 18, 'Wrapped Polygon', False),
    'USDC': ('0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174', 6, 'USD Coin', False),
    'USDT': ('0xc2132D05D31c914a87C6611C10748AEb04B58e8F', 6, 'Tether USD', False),
    'WETH': ('0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619', 18, 'Wrapped Ethereum', False),
    'WBTC': ('0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6', 8, 'Wrapped Bitcoin', False),
    'DAI': ('0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063', 18, 'Dai Stablecoin', False),
    'LINK': ('0x53E0bca35eC356BD5ddDFebbD1Fc0fD03FaBad39', 18, 'ChainLink Token', False),
}

# Legacy and alias symbols. MATIC was renamed to POL; bridged ETH only
# exists on this chain in its wrapped form.
_ALIASES: Dict[str, str] = {
    'MATIC': 'POL',
    'WMATIC': 'WPOL',
    'ETH': 'WETH',
}

# Native gas asset -> wrapped routing equivalent.
_WRAPPED: Dict[str, str] = {
    'POL': 'WPOL',
}


def _build_registry() -> Mapping[str, TokenDescriptor]:
    entries: Dict[str, TokenDescriptor] = {}
    for symbol, (address, decimals, name, is_native) in _CANONICAL_TOKENS.items():
        entries[symbol] = TokenDescriptor(
            symbol=symbol,
            canonical_symbol=symbol,
            address=address,
            decimals=decimals,
            display_name=name,
            is_native=is_native,
        )
    for alias, target in _ALIASES.items():
        canonical = entries[target]
        entries[alias] = TokenDescriptor(
            symbol=alias,
            canonical_symbol=target,
            address=canonical.address,
            decimals=canonical.decimals,
            display_name=f'{canonical.display_name} (legacy {alias})' if alias != 'ETH' else canonical.display_name,
            is_native=canonical.is_native,
        )
    return MappingProxyType(entries)


TOKEN_REGISTRY: Mapping[str, TokenDescriptor] = _build_registry()


def _normalize(symbol: str) -> str:
    return (symbol or '').strip().lstrip('$').upper()


def canonicalize(symbol: str) -> str:
    """Map a legacy or alias symbol to its canonical registry symbol.

    Unknown symbols are returned upper-cased so callers can still report them.
    """

    normalized = _normalize(symbol)
    return _ALIASES.get(normalized, normalized)


def is_registered(symbol: str) -> bool:
    return canonicalize(symbol) in _CANONICAL_TOKENS


def resolve(symbol: str) -> TokenDescriptor:
    """Return the canonical descriptor for ``symbol`` or raise ``UnknownToken``."""

    canonical = canonicalize(symbol)
    if canonical not in _CANONICAL_TOKENS:
        raise UnknownToken(_normalize(symbol) or symbol)
    return TOKEN_REGISTRY[canonical]


def wrapped_equivalent(token: TokenDescriptor) -> TokenDescriptor:
    """Routing form of ``token``: the wrapped asset for the native gas token."""

    wrapped = _WRAPPED.get(token.canonical_symbol)
    if wrapped is None:
        return token
    return TOKEN_REGISTRY[wrapped]


def native_token() -> TokenDescriptor:
    return next(token for token in TOKEN_REGISTRY.values() if token.is_native and not token.is_alias)


def supported_symbols(include_aliases: bool = False) -> List[str]:
    if include_aliases:
        return list(TOKEN_REGISTRY.keys())
    return list(_CANONICAL_TOKENS.keys())


def to_base_units(amount: Union[Decimal, str, int], decimals: int) -> int:
    """Scale a human amount to integer base units, truncating excess precision."""

    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        value = Decimal(str(amount))
        scaled = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_base_units(amount: int, decimals: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        return Decimal(int(amount)) / (Decimal(10) ** decimals)


def format_amount(amount: int, decimals: int, places: int = 6) -> str:
    """Human display string for a base-unit amount (trailing zeros trimmed)."""

    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        value = from_base_units(amount, decimals).quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


__all__ = [
    'NATIVE_TOKEN_ADDRESS',
    'TOKEN_REGISTRY',
    'TokenDescriptor',
    'canonicalize',
    'format_amount',
    'from_base_units',
    'is_registered',
    'native_token',
    'resolve',
    'supported_symbols',
    'to_base_units',
    'wrapped_equivalent',
]
