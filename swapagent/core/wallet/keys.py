"""In-memory key slot: either the locked sentinel or an unlocked account."""

from __future__ import annotations

from typing import Any, Union

from eth_account.signers.local import LocalAccount

# Marker stored in place of key material while a wallet is locked.
LOCKED_MARKER = "***encrypted***"


class LockedKey:
    """Sentinel for a present-but-locked wallet. Not key material, never truthy."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "LOCKED"

    def __str__(self) -> str:
        return LOCKED_MARKER


LOCKED = LockedKey()


class UnlockedKey:
    """Decrypted account held only for the lifetime of the session."""

    __slots__ = ("_account",)

    def __init__(self, account: LocalAccount):
        self._account = account

    @property
    def account(self) -> LocalAccount:
        return self._account

    @property
    def address(self) -> str:
        return self._account.address

    def __repr__(self) -> str:
        return f"UnlockedKey(address={self.address}, key=<redacted>)"

    __str__ = __repr__

    def __getstate__(self) -> Any:
        raise TypeError("Unlocked key material cannot be serialized")

    def __reduce__(self):
        raise TypeError("Unlocked key material cannot be serialized")


KeySlot = Union[LockedKey, UnlockedKey]
