"""
Transaction builder for ERC-20 plumbing and venue swaps.
"""

import secrets
from typing import Optional

from .abi import encode_address, encode_uint
from .models import PreparedTransaction, TransactionType


# Common contract ABIs (minimal for encoding)
ERC20_APPROVE_SELECTOR = "0x095ea7b3"    # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)

# Maximum uint256 for unlimited approval
MAX_UINT256 = 2**256 - 1


def decode_uint256(result: Optional[str]) -> int:
    """Decode the first word of an ``eth_call`` result; empty data reads as zero."""
    if not result or result == "0x":
        return 0
    return int(result[2:66] if result.startswith("0x") else result[:64], 16)


class TransactionBuilder:
    """
    Builds transactions and read calls.

    Handles:
    - ERC20 approvals, allowance and balance reads
    - Venue swaps (calldata supplied by the venue backend)
    """

    @staticmethod
    def generate_tx_id() -> str:
        """Generate a unique transaction ID."""
        return f"tx_{secrets.token_hex(16)}"

    @staticmethod
    def build_erc20_approve(
        chain_id: int,
        owner_address: str,
        token_address: str,
        spender_address: str,
        amount: int = MAX_UINT256,
        description: str = "",
    ) -> PreparedTransaction:
        """
        Build an ERC20 approval transaction.

        Args:
            chain_id: The chain ID
            owner_address: The token owner (sender)
            token_address: The ERC20 token contract
            spender_address: The address being approved to spend
            amount: The amount to approve (default: unlimited)
            description: Human-readable description
        """
        calldata = (
            ERC20_APPROVE_SELECTOR +
            encode_address(spender_address) +
            encode_uint(amount)
        )

        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.APPROVE,
            chain_id=chain_id,
            from_address=owner_address.lower(),
            to_address=token_address.lower(),
            data=calldata,
            value=0,
            description=description or f"Approve {spender_address[:10]}... to spend tokens",
        )

    @staticmethod
    def build_swap(
        chain_id: int,
        from_address: str,
        to_address: str,
        calldata: str,
        value: int = 0,
        description: str = "",
    ) -> PreparedTransaction:
        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.SWAP,
            chain_id=chain_id,
            from_address=from_address.lower(),
            to_address=to_address.lower(),
            data=calldata,
            value=value,
            description=description or "Swap",
        )

    @staticmethod
    def encode_allowance(owner_address: str, spender_address: str) -> str:
        return ERC20_ALLOWANCE_SELECTOR + encode_address(owner_address) + encode_address(spender_address)

    @staticmethod
    def encode_balance_of(owner_address: str) -> str:
        return ERC20_BALANCE_OF_SELECTOR + encode_address(owner_address)
