"""
Tests for the static token registry and amount scaling.
"""

from decimal import Decimal

import pytest

from swapagent.core.tokens import (
    NATIVE_TOKEN_ADDRESS,
    TOKEN_REGISTRY,
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
from swapagent.errors import UnknownToken


def test_resolve_canonical_symbol():
    usdc = resolve("USDC")
    assert usdc.symbol == "USDC"
    assert usdc.decimals == 6
    assert usdc.address == "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
    assert not usdc.is_native


@pytest.mark.parametrize(
    "alias,canonical",
    [("MATIC", "POL"), ("matic", "POL"), ("WMATIC", "WPOL"), ("ETH", "WETH"), ("$usdc", "USDC"), (" dai ", "DAI")],
)
def test_canonicalize_aliases(alias, canonical):
    assert canonicalize(alias) == canonical
    assert resolve(alias).canonical_symbol == canonical


def test_alias_shares_canonical_address():
    assert TOKEN_REGISTRY["MATIC"].address == TOKEN_REGISTRY["POL"].address
    assert TOKEN_REGISTRY["ETH"].address == TOKEN_REGISTRY["WETH"].address
    assert TOKEN_REGISTRY["MATIC"].is_alias
    assert not TOKEN_REGISTRY["POL"].is_alias


def test_unknown_symbol_raises():
    with pytest.raises(UnknownToken) as exc_info:
        resolve("DOGE")
    assert exc_info.value.symbol == "DOGE"
    assert not is_registered("DOGE")
    assert canonicalize("doge") == "DOGE"


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        TOKEN_REGISTRY["FOO"] = TOKEN_REGISTRY["USDC"]


def test_native_token_wraps_for_routing():
    pol = native_token()
    assert pol.symbol == "POL"
    assert pol.is_native
    assert pol.address == NATIVE_TOKEN_ADDRESS
    assert wrapped_equivalent(pol).symbol == "WPOL"
    assert wrapped_equivalent(resolve("USDC")).symbol == "USDC"


def test_supported_symbols():
    assert "MATIC" not in supported_symbols()
    assert "MATIC" in supported_symbols(include_aliases=True)
    assert set(supported_symbols()) == {"POL", "WPOL", "USDC", "USDT", "WETH", "WBTC", "DAI", "LINK"}


def test_to_base_units_truncates():
    assert to_base_units("1.5", 6) == 1_500_000
    assert to_base_units("0.1234567", 6) == 123_456
    assert to_base_units(Decimal("0.0000009"), 6) == 0
    assert to_base_units("1", 18) == 10**18


def test_to_base_units_keeps_uint256_precision():
    huge = "123456789012345678901234567890.123456789012345678"
    assert to_base_units(huge, 18) == 123456789012345678901234567890123456789012345678


def test_from_base_units_and_format():
    assert from_base_units(1_500_000, 6) == Decimal("1.5")
    assert format_amount(1_500_000, 6) == "1.5"
    assert format_amount(10**18, 18) == "1"
    assert format_amount(1, 18) == "0"
    assert format_amount(123_456_789, 8, places=4) == "1.2345"
