"""Signer bound to the chain's transaction submission endpoint."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from eth_utils import to_hex

from ...config import settings
from ...errors import RpcTimeout
from ..execution.rpc import JsonRpcClient
from .custody import WalletCustody, WalletState
from .keys import UnlockedKey

logger = logging.getLogger(__name__)


class Signer:
    """Authorizes transactions with an unlocked key. Never serializes the key."""

    def __init__(self, key: UnlockedKey, rpc: JsonRpcClient, chain_id: Optional[int] = None):
        self._key = key
        self.rpc = rpc
        self.chain_id = chain_id or settings.chain_id

    @property
    def address(self) -> str:
        return self._key.address

    def sign_transaction(self, tx: Dict[str, Any]) -> str:
        return to_hex(self._sign(tx).raw_transaction)

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        signed = self._sign(tx)
        tx_hash = to_hex(signed.hash)
        try:
            return await self.rpc.send_raw_transaction(to_hex(signed.raw_transaction))
        except RpcTimeout as exc:
            # The node may have accepted the transaction before the timeout.
            logger.warning("Broadcast of %s timed out; the transaction may still be pending", tx_hash)
            raise RpcTimeout(exc.message, tx_hash=tx_hash) from exc

    def _sign(self, tx: Dict[str, Any]):
        if int(tx.get("chainId", self.chain_id)) != self.chain_id:
            raise ValueError(f"Refusing to sign for chain {tx.get('chainId')}; signer is bound to {self.chain_id}")
        return self._key.account.sign_transaction({**tx, "chainId": self.chain_id})

    def __repr__(self) -> str:
        return f"Signer(address={self.address}, chain_id={self.chain_id})"


def create_signer(custody: WalletCustody, rpc: JsonRpcClient, chain_id: Optional[int] = None) -> Optional[Signer]:
    """A signer for the custody's wallet, or ``None`` while it is locked, absent or deleted."""

    if custody.state != WalletState.UNLOCKED:
        return None
    key = custody.key
    if not isinstance(key, UnlockedKey):
        return None
    return Signer(key, rpc, chain_id=chain_id)
