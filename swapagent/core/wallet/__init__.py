"""
Wallet custody: password-encrypted signing key, lock state and signer.
"""

from .crypto import CipherEnvelope, KdfParams, address_for, decrypt, encrypt, normalize_private_key
from .custody import WalletCustody, WalletState
from .keys import LOCKED, LOCKED_MARKER, KeySlot, LockedKey, UnlockedKey
from .signer import Signer, create_signer
from .store import (
    EncryptedWalletRecord,
    InMemoryWalletStore,
    JsonFileWalletStore,
    WalletRecordStore,
)

__all__ = [
    # Crypto
    "CipherEnvelope",
    "KdfParams",
    "address_for",
    "decrypt",
    "encrypt",
    "normalize_private_key",
    # Key slot
    "LOCKED",
    "LOCKED_MARKER",
    "KeySlot",
    "LockedKey",
    "UnlockedKey",
    # Custody
    "WalletCustody",
    "WalletState",
    "Signer",
    "create_signer",
    # Storage
    "EncryptedWalletRecord",
    "InMemoryWalletStore",
    "JsonFileWalletStore",
    "WalletRecordStore",
]
