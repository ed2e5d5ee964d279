"""Wallet lifecycle endpoints: create/import, unlock, lock, delete, status."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ..core.wallet import WalletCustody
from .sessions import SessionRegistry, get_session_registry

router = APIRouter(prefix="/wallet")


class WalletRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: str = Field(alias="accountId", min_length=1, max_length=128)


class PasswordRequest(WalletRequest):
    password: SecretStr = Field(min_length=1)


class CreateWalletRequest(PasswordRequest):
    private_key: Optional[SecretStr] = Field(default=None, alias="privateKey", description="Import instead of generating")


async def _custody(registry: SessionRegistry, account_id: str) -> WalletCustody:
    return (await registry.get(account_id)).custody


@router.post("", status_code=201)
async def create_wallet(
    request: CreateWalletRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    custody = await _custody(registry, request.account_id)
    private_key = request.private_key.get_secret_value() if request.private_key else None
    custody.create(request.password.get_secret_value(), private_key=private_key)
    return custody.status()


@router.post("/unlock")
async def unlock_wallet(
    request: PasswordRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    custody = await _custody(registry, request.account_id)
    custody.unlock(request.password.get_secret_value())
    return custody.status()


@router.post("/lock")
async def lock_wallet(
    request: WalletRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    custody = await _custody(registry, request.account_id)
    custody.lock()
    return custody.status()


@router.delete("/{account_id}")
async def delete_wallet(
    account_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    custody = await _custody(registry, account_id)
    custody.delete()
    return custody.status()


@router.get("/{account_id}")
async def wallet_status(
    account_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    return registry.wallet_status(account_id)
