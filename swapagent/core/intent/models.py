"""Structured trade request extracted from a chat message."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...errors import UnknownToken
from ..tokens import TokenDescriptor, canonicalize, resolve, to_base_units, wrapped_equivalent

SwapAction = Literal["swap", "trade", "exchange"]


class SwapIntent(BaseModel):
    """A validated swap request.

    Symbols are stored canonicalized (``MATIC`` -> ``POL``, ``ETH`` -> ``WETH``)
    and must exist in the token registry. ``amount`` is kept as the decimal
    string the user typed so nothing is lost before base-unit conversion.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    action: SwapAction = "swap"
    from_token: str = Field(alias="fromToken")
    to_token: str = Field(alias="toToken")
    amount: str
    amount_unit: Optional[str] = Field(default=None, alias="amountUnit")

    @field_validator("action", mode="before")
    @classmethod
    def _normalize_action(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("from_token", "to_token", mode="before")
    @classmethod
    def _canonical_symbol(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("token symbol is required")
        try:
            return resolve(value).canonical_symbol
        except UnknownToken as exc:
            raise ValueError(exc.message) from exc

    @field_validator("amount_unit", mode="before")
    @classmethod
    def _canonical_unit(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(value, str):
            return canonicalize(value)
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_text(cls, value: Any) -> str:
        if isinstance(value, bool) or value is None:
            raise ValueError("amount must be a number")
        if isinstance(value, (int, float, Decimal)):
            value = str(value)
        if not isinstance(value, str):
            raise ValueError("amount must be a decimal string")
        text = value.strip().replace(",", "")
        try:
            parsed = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"amount '{value}' is not a number") from exc
        if not parsed.is_finite() or parsed <= 0:
            raise ValueError("amount must be greater than zero")
        return text

    @model_validator(mode="after")
    def _check_pair(self) -> "SwapIntent":
        if self.amount_unit is None:
            object.__setattr__(self, "amount_unit", self.from_token)
        elif self.amount_unit != self.from_token:
            raise ValueError("amount must be expressed in the source token")

        source = self.source
        if wrapped_equivalent(source).canonical_symbol == wrapped_equivalent(self.target).canonical_symbol:
            raise ValueError("cannot swap a token for itself")
        if to_base_units(self.amount, source.decimals) <= 0:
            raise ValueError(f"amount {self.amount} is below the precision of {source.symbol}")
        return self

    @property
    def source(self) -> TokenDescriptor:
        return resolve(self.from_token)

    @property
    def target(self) -> TokenDescriptor:
        return resolve(self.to_token)

    @property
    def amount_decimal(self) -> Decimal:
        return Decimal(self.amount)

    @property
    def amount_base_units(self) -> int:
        return to_base_units(self.amount, self.source.decimals)

    def describe(self) -> str:
        return f"{self.amount} {self.from_token} -> {self.to_token}"

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
