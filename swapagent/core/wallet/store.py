"""Persistence for the single encrypted wallet record per account."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...errors import WalletAlreadyExists, WalletError

logger = logging.getLogger(__name__)

_ACCOUNT_ID = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EncryptedWalletRecord(BaseModel):
    """What is persisted: the address and the encrypted key envelope, nothing else."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account_id: str = Field(alias="accountId")
    address: str
    encrypted_private_key: str = Field(alias="encryptedPrivateKey")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")


def validate_account_id(account_id: str) -> str:
    if not isinstance(account_id, str) or not _ACCOUNT_ID.match(account_id):
        raise WalletError("Account id must be 1-128 characters of letters, digits, '.', '_' or '-'")
    return account_id


class WalletRecordStore(ABC):
    """Storage seam. Records are written whole and never partially mutated."""

    @abstractmethod
    def get(self, account_id: str) -> Optional[EncryptedWalletRecord]:
        ...

    @abstractmethod
    def create(self, record: EncryptedWalletRecord) -> None:
        """Persist a new record; raises ``WalletAlreadyExists`` if one is present."""

    @abstractmethod
    def delete(self, account_id: str) -> bool:
        ...


class InMemoryWalletStore(WalletRecordStore):
    def __init__(self):
        self._records: Dict[str, EncryptedWalletRecord] = {}

    def get(self, account_id: str) -> Optional[EncryptedWalletRecord]:
        return self._records.get(account_id)

    def create(self, record: EncryptedWalletRecord) -> None:
        if record.account_id in self._records:
            raise WalletAlreadyExists(f"A wallet already exists for account {record.account_id}")
        self._records[record.account_id] = record

    def delete(self, account_id: str) -> bool:
        return self._records.pop(account_id, None) is not None


class JsonFileWalletStore(WalletRecordStore):
    """One JSON file per account, replaced atomically."""

    def __init__(self, directory: os.PathLike | str):
        self.directory = Path(directory)

    def _path(self, account_id: str) -> Path:
        return self.directory / f"{validate_account_id(account_id)}.json"

    def get(self, account_id: str) -> Optional[EncryptedWalletRecord]:
        path = self._path(account_id)
        if not path.exists():
            return None
        return EncryptedWalletRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def create(self, record: EncryptedWalletRecord) -> None:
        path = self._path(record.account_id)
        if path.exists():
            raise WalletAlreadyExists(f"A wallet already exists for account {record.account_id}")
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".wallet-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(record.model_dump_json(by_alias=True))
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.info("Wallet record written for account %s", record.account_id)

    def delete(self, account_id: str) -> bool:
        path = self._path(account_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
