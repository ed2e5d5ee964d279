"""
Tests for venue calldata: quoting, approvals and swap encoding.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from swapagent.core.execution.abi import decode_words, encode_uint, selector
from swapagent.core.execution import TransactionType
from swapagent.core.quote import UniswapV3Venue, UniswapV4Venue, create_venue
from swapagent.core.tokens import resolve
from swapagent.errors import ExecutionError, RpcError

OWNER = "0x1111111111111111111111111111111111111111"
V3_ROUTER = "0xE592427A0AEce92De3Edee1F18E0157C05861564"
V4_ROUTER = "0x1095692A6237d83C6a72F3F5eFEdb9A670C49223"
V4_QUOTER = "0xb3d5c3dfc3a7aebff71895a7191796bffc2c81b9"
DEADLINE = 1_717_245_600


def _rpc(*results: str) -> MagicMock:
    rpc = MagicMock()
    rpc.eth_call = AsyncMock(side_effect=list(results))
    return rpc


def _words(data: str):
    """Decode calldata words after the 4-byte selector."""
    return decode_words(data[10:])


def test_known_selectors():
    assert selector("approve(address,uint256)") == "0x095ea7b3"
    assert selector(UniswapV3Venue.EXACT_INPUT_SINGLE) == "0x414bf389"
    assert selector(UniswapV3Venue.MULTICALL) == "0xac9650d8"
    assert selector(UniswapV4Venue.EXECUTE) == "0x3593564c"


def test_create_venue_from_name():
    assert isinstance(create_venue("uniswap_v3", _rpc()), UniswapV3Venue)
    assert isinstance(create_venue("Uniswap_V4", _rpc()), UniswapV4Venue)
    with pytest.raises(ValueError):
        create_venue("sushiswap", _rpc())


@pytest.mark.asyncio
async def test_v3_quote_decodes_quoter_result():
    result = "0x" + encode_uint(2_500_000) + encode_uint(1) + encode_uint(2) + encode_uint(95_000)
    rpc = _rpc(result)
    venue = UniswapV3Venue(rpc, chain_id=137)

    tier = await venue.quote_exact_input(resolve("WETH"), resolve("USDC"), 10**15, 500)

    assert tier.amount_out == 2_500_000
    assert tier.gas_estimate == 95_000
    quoter, data = rpc.eth_call.await_args.args
    assert quoter == venue.quoter
    words = _words(data)
    assert words[0] == int(resolve("WETH").address, 16)
    assert words[1] == int(resolve("USDC").address, 16)
    assert words[2] == 10**15
    assert words[3] == 500


@pytest.mark.asyncio
async def test_v3_quote_rejects_short_result():
    venue = UniswapV3Venue(_rpc("0x" + encode_uint(1)), chain_id=137)
    with pytest.raises(RpcError):
        await venue.quote_exact_input(resolve("WETH"), resolve("USDC"), 10**15, 500)


@pytest.mark.asyncio
async def test_v3_approval_only_when_allowance_short():
    venue = UniswapV3Venue(_rpc("0x" + encode_uint(0), "0x" + encode_uint(10**6)), chain_id=137)
    usdc = resolve("USDC")

    approvals = await venue.approval_transactions(OWNER, usdc, 10**6, DEADLINE)
    assert len(approvals) == 1
    approval = approvals[0]
    assert approval.tx_type == TransactionType.APPROVE
    assert approval.to_address == usdc.address.lower()
    assert approval.data.startswith("0x095ea7b3")
    assert _words(approval.data) == [int(V3_ROUTER, 16), 10**6]

    assert await venue.approval_transactions(OWNER, usdc, 10**6, DEADLINE) == []


@pytest.mark.asyncio
async def test_v3_native_source_needs_no_approval():
    rpc = _rpc()
    venue = UniswapV3Venue(rpc, chain_id=137)
    assert await venue.approval_transactions(OWNER, resolve("POL"), 10**18, DEADLINE) == []
    rpc.eth_call.assert_not_awaited()


def test_v3_swap_encodes_exact_input_single():
    venue = UniswapV3Venue(_rpc(), chain_id=137)
    tx = venue.build_swap(OWNER, resolve("USDC"), resolve("WETH"), 10**6, 995, 3000, DEADLINE)

    assert tx.tx_type == TransactionType.SWAP
    assert tx.to_address == V3_ROUTER.lower()
    assert tx.value == 0
    assert tx.data.startswith("0x414bf389")
    words = _words(tx.data)
    assert words[2] == 3000
    assert words[3] == int(OWNER, 16)
    assert words[4] == DEADLINE
    assert words[5] == 10**6
    assert words[6] == 995


def test_v3_native_source_sends_value():
    venue = UniswapV3Venue(_rpc(), chain_id=137)
    tx = venue.build_swap(OWNER, resolve("POL"), resolve("USDC"), 10**18, 399_000, 500, DEADLINE)
    assert tx.value == 10**18
    assert _words(tx.data)[0] == int(resolve("WPOL").address, 16)


def test_v3_native_target_unwraps_through_multicall():
    venue = UniswapV3Venue(_rpc(), chain_id=137)
    tx = venue.build_swap(OWNER, resolve("USDC"), resolve("POL"), 10**6, 2 * 10**18, 500, DEADLINE)
    assert tx.value == 0
    assert tx.data.startswith("0xac9650d8")
    assert selector(UniswapV3Venue.UNWRAP_WETH9)[2:] in tx.data


@pytest.mark.asyncio
async def test_v4_without_quoter_cannot_quote():
    venue = UniswapV4Venue(_rpc(), chain_id=137, quoter="", universal_router="")
    with pytest.raises(RpcError):
        await venue.quote_exact_input(resolve("WETH"), resolve("USDC"), 10**15, 500)


def test_v4_without_router_cannot_swap():
    venue = UniswapV4Venue(_rpc(), chain_id=137, quoter="", universal_router="")
    with pytest.raises(ExecutionError):
        venue.build_swap(OWNER, resolve("USDC"), resolve("WETH"), 10**6, 1, 500, DEADLINE)


@pytest.mark.asyncio
async def test_v4_quote_decodes_amount_and_gas():
    rpc = _rpc("0x" + encode_uint(777) + encode_uint(88_000))
    venue = UniswapV4Venue(rpc, chain_id=137, quoter=V4_QUOTER, universal_router=V4_ROUTER)
    tier = await venue.quote_exact_input(resolve("WETH"), resolve("USDC"), 10**15, 3000)
    assert (tier.amount_out, tier.gas_estimate) == (777, 88_000)


@pytest.mark.asyncio
async def test_v4_approves_token_and_permit2():
    rpc = _rpc("0x" + encode_uint(0), "0x" + encode_uint(0) * 3)
    venue = UniswapV4Venue(rpc, chain_id=137, quoter=V4_QUOTER, universal_router=V4_ROUTER)
    usdc = resolve("USDC")

    approvals = await venue.approval_transactions(OWNER, usdc, 10**6, DEADLINE)

    assert [tx.to_address for tx in approvals] == [usdc.address.lower(), venue.permit2.lower()]
    permit = _words(approvals[1].data)
    assert permit == [int(usdc.address, 16), int(V4_ROUTER, 16), 10**6, DEADLINE]


def test_v4_native_source_wraps_before_swap():
    venue = UniswapV4Venue(_rpc(), chain_id=137, quoter=V4_QUOTER, universal_router=V4_ROUTER)
    tx = venue.build_swap(OWNER, resolve("POL"), resolve("USDC"), 10**18, 399_000, 500, DEADLINE)

    assert tx.to_address == V4_ROUTER.lower()
    assert tx.value == 10**18
    assert tx.data.startswith("0x3593564c")
    words = _words(tx.data)
    assert words[2] == DEADLINE
    # commands bytes: length 2, WRAP_ETH then V4_SWAP
    commands_offset = words[0] // 32
    assert words[commands_offset] == 2
    assert tx.data[10 + (commands_offset + 1) * 64:][:4] == "0b10"
