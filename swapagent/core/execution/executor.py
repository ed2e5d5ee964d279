"""
Transaction executor for on-chain execution.

Handles the lifecycle of a single transaction:
- Gas estimation (EIP-1559 fees from fee history)
- Nonce lookup
- Signing and submission through the wallet signer
- Receipt polling with bounded retries and increasing backoff
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from ...config import settings
from ...errors import ExecutionError, RpcError, SwapAgentError
from .models import GasEstimate, PreparedTransaction, TransactionResult, TransactionStatus, TransactionType
from .rpc import JsonRpcClient
from .tx_builder import TransactionBuilder, decode_uint256


logger = logging.getLogger(__name__)

GWEI = 10**9


class GasEstimationError(ExecutionError):
    """Gas estimation failed (usually a revert during simulation)."""
    code = "GasEstimationError"


class TransactionSigner(Protocol):
    address: str

    async def send_transaction(self, tx: Dict[str, Any]) -> str: ...


class TransactionExecutor:
    """
    Executes transactions on the configured chain.

    Responsibilities:
    - Estimate gas costs
    - Submit signed transactions
    - Poll for the receipt within a bounded budget
    - Read balances for pre-flight checks
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        *,
        chain_id: Optional[int] = None,
        gas_multiplier: Optional[float] = None,
        default_priority_fee_gwei: Optional[float] = None,
        receipt_max_attempts: Optional[int] = None,
        receipt_initial_backoff_seconds: Optional[float] = None,
        receipt_backoff_factor: Optional[float] = None,
        receipt_max_backoff_seconds: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.rpc = rpc
        self.chain_id = chain_id or settings.chain_id
        self.gas_multiplier = gas_multiplier or settings.gas_multiplier
        self.default_priority_fee_gwei = (
            settings.default_priority_fee_gwei if default_priority_fee_gwei is None else default_priority_fee_gwei
        )
        self.receipt_max_attempts = receipt_max_attempts or settings.receipt_max_attempts
        self.receipt_initial_backoff_seconds = (
            settings.receipt_initial_backoff_seconds
            if receipt_initial_backoff_seconds is None
            else receipt_initial_backoff_seconds
        )
        self.receipt_backoff_factor = receipt_backoff_factor or settings.receipt_backoff_factor
        self.receipt_max_backoff_seconds = (
            settings.receipt_max_backoff_seconds if receipt_max_backoff_seconds is None else receipt_max_backoff_seconds
        )
        self._sleep = sleep or asyncio.sleep

    async def estimate_gas(self, tx: PreparedTransaction) -> GasEstimate:
        """Estimate gas limit (with safety multiplier) and EIP-1559 fees."""
        try:
            gas_limit = await self.rpc.estimate_gas(tx.call_object())
            gas_limit = int(gas_limit * self.gas_multiplier)

            fee_history = await self.rpc.fee_history(1, "latest", [50])
            base_fee = int(fee_history["baseFeePerGas"][-1], 16)
            rewards = fee_history.get("reward") or []
            if rewards and rewards[0]:
                priority_fee = int(rewards[0][0], 16)
            else:
                priority_fee = int(self.default_priority_fee_gwei * GWEI)
        except RpcError as e:
            logger.error(f"Gas estimation failed: {e}")
            raise GasEstimationError(f"Failed to estimate gas: {e.message}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GasEstimationError(f"Unexpected fee history payload: {e}") from e

        max_fee = base_fee * 2 + priority_fee
        return GasEstimate(
            gas_limit=gas_limit,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    async def execute(self, tx: PreparedTransaction, signer: TransactionSigner) -> TransactionResult:
        """Estimate, sign, submit and wait for ``tx``.

        Never raises for chain-side problems: the outcome is reported through
        ``TransactionResult.status``. Once submitted the result always carries
        the hash, including on timeout.
        """
        result = TransactionResult(tx_id=tx.tx_id, tx_type=tx.tx_type)

        try:
            if not tx.gas_estimate:
                tx.gas_estimate = await self.estimate_gas(tx)
            if tx.nonce is None:
                tx.nonce = await self.rpc.get_transaction_count(signer.address, "pending")
            tx_hash = await signer.send_transaction(tx.to_signable())
        except (SwapAgentError, ValueError, TypeError) as e:
            # A hash on the error means the broadcast may have reached the node.
            tx_hash = getattr(e, "tx_hash", None)
            if not tx_hash:
                logger.error(f"{tx.tx_type.value} transaction failed before submission: {e}")
                result.status = TransactionStatus.FAILED
                result.error = getattr(e, "message", None) or str(e)
                return result
            logger.warning(f"{tx.tx_type.value} broadcast unconfirmed ({e}); polling for {tx_hash}")

        result.tx_hash = tx_hash
        result.status = TransactionStatus.SUBMITTED
        result.submitted_at = datetime.now(timezone.utc)
        logger.info(f"{tx.tx_type.value} submitted: {tx_hash} (nonce={tx.nonce}, gas={tx.gas_estimate.gas_limit})")

        return await self.wait_for_receipt(tx_hash, result)

    def backoff_schedule(self) -> List[float]:
        """Delays slept between receipt polls."""
        delays: List[float] = []
        delay = self.receipt_initial_backoff_seconds
        for _ in range(self.receipt_max_attempts - 1):
            delays.append(delay)
            delay = min(delay * self.receipt_backoff_factor, self.receipt_max_backoff_seconds)
        return delays

    async def wait_for_receipt(self, tx_hash: str, result: Optional[TransactionResult] = None) -> TransactionResult:
        """Poll for a receipt until confirmed, reverted, or the attempt budget runs out."""
        if result is None:
            result = TransactionResult(
                tx_id=tx_hash,
                tx_type=TransactionType.SWAP,
                tx_hash=tx_hash,
                status=TransactionStatus.SUBMITTED,
            )

        delays = self.backoff_schedule()
        for attempt in range(1, self.receipt_max_attempts + 1):
            result.attempts = attempt
            try:
                receipt = await self.rpc.get_transaction_receipt(tx_hash)
            except RpcError as e:
                logger.warning(f"Error checking transaction status: {e}")
                receipt = None

            if receipt:
                return self._apply_receipt(result, receipt)

            if attempt <= len(delays):
                await self._sleep(delays[attempt - 1])

        result.status = TransactionStatus.TIMEOUT
        result.error = f"No receipt after {self.receipt_max_attempts} attempts"
        logger.warning(f"Transaction {tx_hash} not confirmed after {self.receipt_max_attempts} polls")
        return result

    def _apply_receipt(self, result: TransactionResult, receipt: Dict[str, Any]) -> TransactionResult:
        result.block_number = int(receipt.get("blockNumber") or "0x0", 16)
        result.gas_used = int(receipt.get("gasUsed") or "0x0", 16)
        result.effective_gas_price = int(receipt.get("effectiveGasPrice") or "0x0", 16)

        # 0x1 = success, 0x0 = revert
        status = int(receipt.get("status") or "0x1", 16)
        if status == 0:
            result.status = TransactionStatus.REVERTED
            result.error = "Transaction reverted"
            logger.warning(f"Transaction reverted: {result.tx_hash} (block {result.block_number})")
            return result

        result.status = TransactionStatus.CONFIRMED
        result.confirmed_at = datetime.now(timezone.utc)
        logger.info(f"Transaction confirmed: {result.tx_hash} (block {result.block_number})")
        return result

    async def get_native_balance(self, address: str) -> int:
        return await self.rpc.get_balance(address)

    async def get_token_balance(self, token_address: str, owner_address: str) -> int:
        data = TransactionBuilder.encode_balance_of(owner_address)
        return decode_uint256(await self.rpc.eth_call(token_address, data))
