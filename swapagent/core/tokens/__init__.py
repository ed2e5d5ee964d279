"""Token registry: symbol -> on-chain descriptor with alias canonicalization."""

from .registry import (
    NATIVE_TOKEN_ADDRESS,
    TOKEN_REGISTRY,
    TokenDescriptor,
    canonicalize,
    format_amount,
    from_base_units,
    is_registered,
    native_token,
    resolve,
    supported_symbols,
    to_base_units,
    wrapped_equivalent,
)

__all__ = [
    "NATIVE_TOKEN_ADDRESS",
    "TOKEN_REGISTRY",
    "TokenDescriptor",
    "canonicalize",
    "format_amount",
    "from_base_units",
    "is_registered",
    "native_token",
    "resolve",
    "supported_symbols",
    "to_base_units",
    "wrapped_equivalent",
]
