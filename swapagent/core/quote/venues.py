"""
On-chain venue backends.

A venue knows how to price one fee tier, which approvals its router needs,
and how to encode the swap call. Slippage, deadline and approval sequencing
are decided by the orchestrator so every backend behaves the same way.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from ...config import settings
from ...errors import ExecutionError, RpcError
from ..execution.abi import (
    decode_words,
    dynamic,
    encode_address,
    encode_bool,
    encode_bytes,
    encode_bytes_array,
    encode_call,
    encode_int,
    encode_tuple,
    encode_uint,
    static,
)
from ..execution.models import PreparedTransaction, TransactionType
from ..execution.rpc import JsonRpcClient
from ..execution.tx_builder import TransactionBuilder, decode_uint256
from ..tokens import TokenDescriptor, wrapped_equivalent
from .models import TierQuote

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def fee_label(fee: int) -> str:
    return f"{fee / 10_000:g}%"


class SwapVenue(ABC):
    """Pluggable swap backend."""

    name: str = ""
    label: str = ""

    def __init__(self, rpc: JsonRpcClient, *, chain_id: Optional[int] = None):
        self.rpc = rpc
        self.chain_id = chain_id or settings.chain_id

    @property
    @abstractmethod
    def spender(self) -> str:
        """Address that must hold an ERC-20 allowance for the swap to pull funds."""

    @abstractmethod
    async def quote_exact_input(
        self,
        token_in: TokenDescriptor,
        token_out: TokenDescriptor,
        amount_in: int,
        fee: int,
    ) -> TierQuote:
        """Price ``amount_in`` at one fee tier. Raises ``RpcError`` when the tier cannot be quoted."""

    @abstractmethod
    async def approval_transactions(
        self,
        owner: str,
        token: TokenDescriptor,
        amount: int,
        deadline: int,
    ) -> List[PreparedTransaction]:
        """Approvals still missing before the router can spend ``amount`` of ``token``."""

    @abstractmethod
    def build_swap(
        self,
        owner: str,
        source: TokenDescriptor,
        target: TokenDescriptor,
        amount_in: int,
        min_amount_out: int,
        fee: int,
        deadline: int,
    ) -> PreparedTransaction:
        """Encode the swap. ``source``/``target`` may be the native gas asset."""

    def describe_route(self, source: TokenDescriptor, target: TokenDescriptor, fee: int) -> str:
        route_in = wrapped_equivalent(source)
        route_out = wrapped_equivalent(target)
        route = f"{route_in.symbol} → {route_out.symbol} ({self.label} {fee_label(fee)} fee)"
        if route_in.symbol != source.symbol:
            route += f" [{source.symbol} wrapped as {route_in.symbol}]"
        if route_out.symbol != target.symbol:
            route += f" [{route_out.symbol} unwrapped to {target.symbol}]"
        return route

    async def _erc20_allowance(self, token: str, owner: str, spender: str) -> int:
        return decode_uint256(await self.rpc.eth_call(token, TransactionBuilder.encode_allowance(owner, spender)))

    @staticmethod
    def _words(result: str, expected: int, method: str) -> List[int]:
        try:
            words = decode_words(result)
        except ValueError as exc:
            raise RpcError(f"{method} returned malformed data") from exc
        if len(words) < expected:
            raise RpcError(f"{method} returned {len(words)} words, expected {expected}")
        return words


class UniswapV3Venue(SwapVenue):
    """QuoterV2 for pricing, SwapRouter ``exactInputSingle`` for execution."""

    name = "uniswap_v3"
    label = "Uniswap V3"

    QUOTE_EXACT_INPUT_SINGLE = "quoteExactInputSingle((address,address,uint256,uint24,uint160))"
    EXACT_INPUT_SINGLE = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))"
    MULTICALL = "multicall(bytes[])"
    UNWRAP_WETH9 = "unwrapWETH9(uint256,address)"

    def __init__(
        self,
        rpc: JsonRpcClient,
        *,
        chain_id: Optional[int] = None,
        router: Optional[str] = None,
        quoter: Optional[str] = None,
    ):
        super().__init__(rpc, chain_id=chain_id)
        self.router = router or settings.uniswap_v3_router
        self.quoter = quoter or settings.uniswap_v3_quoter

    @property
    def spender(self) -> str:
        return self.router

    async def quote_exact_input(self, token_in, token_out, amount_in, fee) -> TierQuote:
        data = encode_call(
            self.QUOTE_EXACT_INPUT_SINGLE,
            [
                static(
                    encode_address(token_in.address),
                    encode_address(token_out.address),
                    encode_uint(amount_in),
                    encode_uint(fee),
                    encode_uint(0),  # no price limit
                )
            ],
        )
        result = await self.rpc.eth_call(self.quoter, data)
        amount_out, _sqrt_price_after, _ticks_crossed, gas_estimate = self._words(result, 4, "quoteExactInputSingle")[:4]
        return TierQuote(amount_out=amount_out, gas_estimate=gas_estimate)

    async def approval_transactions(self, owner, token, amount, deadline) -> List[PreparedTransaction]:
        if token.is_native:
            return []
        allowance = await self._erc20_allowance(token.address, owner, self.router)
        if allowance >= amount:
            return []
        return [
            TransactionBuilder.build_erc20_approve(
                chain_id=self.chain_id,
                owner_address=owner,
                token_address=token.address,
                spender_address=self.router,
                amount=amount,
                description=f"Approve {self.label} router to spend {token.symbol}",
            )
        ]

    def build_swap(self, owner, source, target, amount_in, min_amount_out, fee, deadline) -> PreparedTransaction:
        token_in = wrapped_equivalent(source)
        token_out = wrapped_equivalent(target)
        unwrap = target.is_native
        # The router holds the wrapped output until unwrapWETH9 pays it out natively.
        recipient = self.router if unwrap else owner

        swap_call = encode_call(
            self.EXACT_INPUT_SINGLE,
            [
                static(
                    encode_address(token_in.address),
                    encode_address(token_out.address),
                    encode_uint(fee),
                    encode_address(recipient),
                    encode_uint(deadline),
                    encode_uint(amount_in),
                    encode_uint(min_amount_out),
                    encode_uint(0),
                )
            ],
        )

        calldata = swap_call
        if unwrap:
            unwrap_call = encode_call(
                self.UNWRAP_WETH9,
                [static(encode_uint(min_amount_out), encode_address(owner))],
            )
            calldata = encode_call(self.MULTICALL, [dynamic(encode_bytes_array([swap_call, unwrap_call]))])

        return TransactionBuilder.build_swap(
            chain_id=self.chain_id,
            from_address=owner,
            to_address=self.router,
            calldata=calldata,
            value=amount_in if source.is_native else 0,
            description=f"Swap {source.symbol} for {target.symbol} on {self.label}",
        )


class UniswapV4Venue(SwapVenue):
    """V4 Quoter for pricing, UniversalRouter ``V4_SWAP`` for execution, Permit2 for allowances."""

    name = "uniswap_v4"
    label = "Uniswap V4"

    QUOTE_EXACT_INPUT_SINGLE = "quoteExactInputSingle(((address,address,uint24,int24,address),bool,uint128,bytes))"
    EXECUTE = "execute(bytes,bytes[],uint256)"
    PERMIT2_APPROVE = "approve(address,address,uint160,uint48)"
    PERMIT2_ALLOWANCE = "allowance(address,address,address)"

    TICK_SPACINGS: Dict[int, int] = {100: 1, 500: 10, 3000: 60, 10000: 200}

    # UniversalRouter commands
    CMD_WRAP_ETH = 0x0B
    CMD_UNWRAP_WETH = 0x0C
    CMD_V4_SWAP = 0x10

    # V4 router actions
    SWAP_EXACT_IN_SINGLE = 0x06
    SETTLE = 0x0B
    SETTLE_ALL = 0x0C
    TAKE = 0x0E
    TAKE_ALL = 0x0F

    OPEN_DELTA = 0
    ADDRESS_THIS = "0x0000000000000000000000000000000000000002"

    def __init__(
        self,
        rpc: JsonRpcClient,
        *,
        chain_id: Optional[int] = None,
        quoter: Optional[str] = None,
        universal_router: Optional[str] = None,
        permit2: Optional[str] = None,
    ):
        super().__init__(rpc, chain_id=chain_id)
        self.quoter = quoter if quoter is not None else settings.uniswap_v4_quoter
        self.universal_router = universal_router if universal_router is not None else settings.uniswap_v4_universal_router
        self.permit2 = permit2 or settings.permit2_address

    @property
    def spender(self) -> str:
        return self.permit2

    def _pool_key(self, token_in: TokenDescriptor, token_out: TokenDescriptor, fee: int):
        zero_for_one = int(token_in.address, 16) < int(token_out.address, 16)
        currency0, currency1 = (token_in, token_out) if zero_for_one else (token_out, token_in)
        key = static(
            encode_address(currency0.address),
            encode_address(currency1.address),
            encode_uint(fee),
            encode_int(self.TICK_SPACINGS.get(fee, 60)),
            encode_address(ZERO_ADDRESS),
        )
        return key, zero_for_one

    async def quote_exact_input(self, token_in, token_out, amount_in, fee) -> TierQuote:
        if not self.quoter:
            raise RpcError("Uniswap V4 quoter is not configured for this chain")

        key, zero_for_one = self._pool_key(token_in, token_out, fee)
        params = encode_tuple([
            key,
            static(encode_bool(zero_for_one)),
            static(encode_uint(amount_in)),
            dynamic(encode_bytes(b"")),
        ])
        result = await self.rpc.eth_call(self.quoter, encode_call(self.QUOTE_EXACT_INPUT_SINGLE, [dynamic(params)]))
        amount_out, gas_estimate = self._words(result, 2, "quoteExactInputSingle")[:2]
        return TierQuote(amount_out=amount_out, gas_estimate=gas_estimate)

    async def approval_transactions(self, owner, token, amount, deadline) -> List[PreparedTransaction]:
        if token.is_native:
            return []
        self._require_router()

        approvals: List[PreparedTransaction] = []
        if await self._erc20_allowance(token.address, owner, self.permit2) < amount:
            approvals.append(
                TransactionBuilder.build_erc20_approve(
                    chain_id=self.chain_id,
                    owner_address=owner,
                    token_address=token.address,
                    spender_address=self.permit2,
                    amount=amount,
                    description=f"Approve Permit2 to spend {token.symbol}",
                )
            )

        data = encode_call(
            self.PERMIT2_ALLOWANCE,
            [static(encode_address(owner), encode_address(token.address), encode_address(self.universal_router))],
        )
        permitted, expiration, _nonce = self._words(await self.rpc.eth_call(self.permit2, data), 3, "allowance")[:3]
        if permitted < amount or expiration < deadline:
            calldata = encode_call(
                self.PERMIT2_APPROVE,
                [static(
                    encode_address(token.address),
                    encode_address(self.universal_router),
                    encode_uint(amount),
                    encode_uint(deadline),
                )],
            )
            approvals.append(
                PreparedTransaction(
                    tx_id=TransactionBuilder.generate_tx_id(),
                    tx_type=TransactionType.APPROVE,
                    chain_id=self.chain_id,
                    from_address=owner.lower(),
                    to_address=self.permit2.lower(),
                    data=calldata,
                    description=f"Permit {self.label} router to spend {token.symbol}",
                )
            )
        return approvals

    def build_swap(self, owner, source, target, amount_in, min_amount_out, fee, deadline) -> PreparedTransaction:
        self._require_router()
        token_in = wrapped_equivalent(source)
        token_out = wrapped_equivalent(target)
        key, zero_for_one = self._pool_key(token_in, token_out, fee)

        swap_params = encode_tuple([
            key,
            static(encode_bool(zero_for_one)),
            static(encode_uint(amount_in)),
            static(encode_uint(min_amount_out)),
            dynamic(encode_bytes(b"")),
        ])
        actions = [self.SWAP_EXACT_IN_SINGLE]
        params = [encode_tuple([dynamic(swap_params)])]

        commands: List[int] = []
        inputs: List[str] = []

        if source.is_native:
            # Router wraps msg.value and pays the pool from its own balance.
            commands.append(self.CMD_WRAP_ETH)
            inputs.append(encode_address(self.ADDRESS_THIS) + encode_uint(amount_in))
            actions.append(self.SETTLE)
            params.append(encode_address(token_in.address) + encode_uint(self.OPEN_DELTA) + encode_bool(False))
        else:
            actions.append(self.SETTLE_ALL)
            params.append(encode_address(token_in.address) + encode_uint(amount_in))

        if target.is_native:
            actions.append(self.TAKE)
            params.append(encode_address(token_out.address) + encode_address(self.ADDRESS_THIS) + encode_uint(self.OPEN_DELTA))
        else:
            actions.append(self.TAKE_ALL)
            params.append(encode_address(token_out.address) + encode_uint(min_amount_out))

        commands.append(self.CMD_V4_SWAP)
        inputs.append(encode_tuple([dynamic(encode_bytes(bytes(actions))), dynamic(encode_bytes_array(params))]))

        if target.is_native:
            commands.append(self.CMD_UNWRAP_WETH)
            inputs.append(encode_address(owner) + encode_uint(min_amount_out))

        calldata = encode_call(
            self.EXECUTE,
            [
                dynamic(encode_bytes(bytes(commands))),
                dynamic(encode_bytes_array(inputs)),
                static(encode_uint(deadline)),
            ],
        )
        return TransactionBuilder.build_swap(
            chain_id=self.chain_id,
            from_address=owner,
            to_address=self.universal_router,
            calldata=calldata,
            value=amount_in if source.is_native else 0,
            description=f"Swap {source.symbol} for {target.symbol} on {self.label}",
        )

    def _require_router(self) -> None:
        if not self.universal_router:
            raise ExecutionError("Uniswap V4 UniversalRouter is not configured for this chain")


VENUE_REGISTRY: Dict[str, Type[SwapVenue]] = {
    UniswapV3Venue.name: UniswapV3Venue,
    UniswapV4Venue.name: UniswapV4Venue,
}


def create_venue(name: Optional[str], rpc: JsonRpcClient, **kwargs) -> SwapVenue:
    """Instantiate the venue backend selected by configuration."""

    key = (name or settings.swap_venue).strip().lower()
    if key not in VENUE_REGISTRY:
        available = ", ".join(VENUE_REGISTRY)
        raise ValueError(f"Unsupported swap venue '{name}'. Available venues: {available}")
    return VENUE_REGISTRY[key](rpc, **kwargs)
