"""
Wallet Custody

Owns the key slot for one account and drives the wallet lifecycle:

    ABSENT -> UNLOCKED (created) -> LOCKED -> UNLOCKED ... -> DELETED

Plaintext key material only ever lives in the ``UnlockedKey`` slot and is
dropped on lock or delete. ``create`` is the only way out of ABSENT and
DELETED.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

from eth_account import Account

from ...errors import InvalidPassword, WalletAlreadyExists, WalletError, WalletLocked, WalletNotFound
from . import crypto
from .keys import LOCKED, KeySlot, UnlockedKey
from .store import EncryptedWalletRecord, WalletRecordStore, validate_account_id

logger = logging.getLogger(__name__)


class WalletState(str, Enum):
    ABSENT = "absent"
    UNLOCKED = "unlocked"
    LOCKED = "locked"
    DELETED = "deleted"


class WalletCustody:
    def __init__(
        self,
        account_id: str,
        store: WalletRecordStore,
        *,
        kdf_params: Optional[crypto.KdfParams] = None,
    ):
        self.account_id = validate_account_id(account_id)
        self.store = store
        self.kdf_params = kdf_params
        self._key: KeySlot = LOCKED
        self._deleted = False

    @property
    def record(self) -> Optional[EncryptedWalletRecord]:
        return self.store.get(self.account_id)

    @property
    def state(self) -> WalletState:
        if self._deleted:
            return WalletState.DELETED
        if self.record is None:
            return WalletState.ABSENT
        if isinstance(self._key, UnlockedKey):
            return WalletState.UNLOCKED
        return WalletState.LOCKED

    @property
    def address(self) -> Optional[str]:
        record = self.record
        return record.address if record else None

    @property
    def key(self) -> KeySlot:
        return self._key

    def create(self, password: str, private_key: Optional[Union[bytes, str]] = None) -> str:
        """Create (or import) the wallet and leave it unlocked. Returns the address."""

        if self.state in (WalletState.UNLOCKED, WalletState.LOCKED):
            raise WalletAlreadyExists(f"A wallet already exists for account {self.account_id}")
        if not password:
            raise WalletError("Password must not be empty")

        if private_key is None:
            account = Account.create()
            key_bytes = bytes(account.key)
        else:
            key_bytes = crypto.normalize_private_key(private_key)
            account = Account.from_key(key_bytes)

        record = EncryptedWalletRecord(
            account_id=self.account_id,
            address=account.address,
            encrypted_private_key=crypto.encrypt(key_bytes, password, params=self.kdf_params),
        )
        self.store.create(record)

        self._key = UnlockedKey(account)
        self._deleted = False
        logger.info("Wallet %s for account %s", "imported" if private_key is not None else "created", self.account_id)
        return account.address

    def lock(self) -> None:
        if self.state in (WalletState.ABSENT, WalletState.DELETED):
            raise WalletNotFound(f"No wallet for account {self.account_id}")
        self._key = LOCKED
        logger.info("Wallet locked for account %s", self.account_id)

    def unlock(self, password: str) -> str:
        """Re-derive the key from ``password``. Returns the address."""

        if self.state in (WalletState.ABSENT, WalletState.DELETED):
            raise WalletNotFound(f"No wallet for account {self.account_id}")
        record = self.record

        key_bytes = crypto.decrypt(record.encrypted_private_key, password)
        account = Account.from_key(key_bytes)
        if account.address.lower() != record.address.lower():
            logger.warning("Decrypted key does not match stored address for account %s", self.account_id)
            raise InvalidPassword()

        self._key = UnlockedKey(account)
        logger.info("Wallet unlocked for account %s", self.account_id)
        return account.address

    def delete(self) -> None:
        """Remove the record. Terminal until ``create`` is called again."""

        if self.state in (WalletState.ABSENT, WalletState.DELETED):
            raise WalletNotFound(f"No wallet for account {self.account_id}")
        self.store.delete(self.account_id)
        self._key = LOCKED
        self._deleted = True
        logger.info("Wallet deleted for account %s", self.account_id)

    def require_unlocked(self) -> UnlockedKey:
        if not isinstance(self._key, UnlockedKey) or self.state != WalletState.UNLOCKED:
            raise WalletLocked()
        return self._key

    def status(self) -> Dict[str, Any]:
        return {
            "accountId": self.account_id,
            "state": self.state.value,
            "address": self.address,
        }
