"""
Transaction execution models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from eth_utils import to_checksum_address


class TransactionType(str, Enum):
    """Types of transactions."""
    SWAP = "swap"
    APPROVE = "approve"


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""
    PENDING = "pending"          # Created, not yet submitted
    SUBMITTED = "submitted"      # Broadcast to network
    CONFIRMED = "confirmed"      # Successfully confirmed
    FAILED = "failed"            # Never made it on-chain
    REVERTED = "reverted"        # On-chain revert
    TIMEOUT = "timeout"          # No receipt within the polling budget


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GasEstimate:
    """Gas estimation for a transaction."""
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    estimated_cost_wei: int = 0

    def __post_init__(self):
        if self.estimated_cost_wei == 0:
            self.estimated_cost_wei = self.gas_limit * self.max_fee_per_gas


@dataclass
class PreparedTransaction:
    """A transaction ready to be signed and broadcast."""
    tx_id: str                                  # Internal tracking ID
    tx_type: TransactionType
    chain_id: int
    from_address: str
    to_address: str
    data: str                                   # Encoded calldata (hex)
    value: int = 0                              # Wei to send
    gas_estimate: Optional[GasEstimate] = None
    nonce: Optional[int] = None
    description: str = ""
    created_at: datetime = field(default_factory=_utcnow)

    def call_object(self) -> Dict[str, Any]:
        """JSON-RPC call object for eth_call / eth_estimateGas."""
        call = {
            "from": self.from_address,
            "to": self.to_address,
            "data": self.data,
        }
        if self.value > 0:
            call["value"] = hex(self.value)
        return call

    def to_signable(self) -> Dict[str, Any]:
        """EIP-1559 transaction dict accepted by ``eth_account``."""
        if self.gas_estimate is None or self.nonce is None:
            raise ValueError("Transaction needs gas and nonce before signing")
        return {
            "type": 2,
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "to": to_checksum_address(self.to_address),
            "value": self.value,
            "data": self.data,
            "gas": self.gas_estimate.gas_limit,
            "maxFeePerGas": self.gas_estimate.max_fee_per_gas,
            "maxPriorityFeePerGas": self.gas_estimate.max_priority_fee_per_gas,
        }


@dataclass
class TransactionResult:
    """Result of a transaction execution."""
    tx_id: str
    tx_type: TransactionType
    tx_hash: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING

    # Confirmation details
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    attempts: int = 0

    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.CONFIRMED

    @property
    def is_final(self) -> bool:
        return self.status in {
            TransactionStatus.CONFIRMED,
            TransactionStatus.FAILED,
            TransactionStatus.REVERTED,
            TransactionStatus.TIMEOUT,
        }
