"""
Chain access: JSON-RPC reads, transaction building and execution.
"""

from .models import (
    GasEstimate,
    PreparedTransaction,
    TransactionResult,
    TransactionStatus,
    TransactionType,
)
from .rpc import JsonRpcClient
from .tx_builder import MAX_UINT256, TransactionBuilder, decode_uint256
from .executor import GasEstimationError, TransactionExecutor, TransactionSigner

__all__ = [
    # Models
    "GasEstimate",
    "PreparedTransaction",
    "TransactionResult",
    "TransactionStatus",
    "TransactionType",
    # RPC
    "JsonRpcClient",
    # Builder
    "MAX_UINT256",
    "TransactionBuilder",
    "decode_uint256",
    # Executor
    "GasEstimationError",
    "TransactionExecutor",
    "TransactionSigner",
]
