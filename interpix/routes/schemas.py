"""Schemas pydantic das rotas: validação e coerção na borda da API."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from interpix.payments.gateway.base import (
    ChargeRequest,
    DueDateChargeRequest,
    Payer,
    PayerAddress,
)


class PayerAddressIn(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)
    postal_code: Optional[str] = None


class PayerIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    cpf: Optional[str] = None
    cnpj: Optional[str] = None
    address: Optional[PayerAddressIn] = None

    @model_validator(mode="after")
    def _require_tax_id(self) -> "PayerIn":
        if not (self.cpf or "").strip() and not (self.cnpj or "").strip():
            raise ValueError("CPF ou CNPJ do pagador é obrigatório")
        return self

    def to_payer(self) -> Payer:
        address = None
        if self.address is not None:
            address = PayerAddress(**self.address.model_dump())
        return Payer(name=self.name.strip(), cpf=self.cpf, cnpj=self.cnpj, address=address)


class ImmediateChargeIn(BaseModel):
    tenant_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    payer: PayerIn
    description: Optional[str] = Field(default=None, max_length=140)
    expiry_seconds: int = Field(default=3600, gt=0)
    invoice_id: Optional[str] = None

    def to_request(self) -> ChargeRequest:
        return ChargeRequest(
            amount=self.amount,
            payer=self.payer.to_payer(),
            description=self.description,
            expiry_seconds=self.expiry_seconds,
        )


class DueDateChargeIn(BaseModel):
    tenant_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    payer: PayerIn
    due_date: date
    days_after_due: int = Field(default=30, gt=0)
    description: Optional[str] = Field(default=None, max_length=140)
    invoice_id: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _accept_brazilian_format(cls, value: Any) -> Any:
        """Aceita DD/MM/YYYY além de YYYY-MM-DD."""
        if isinstance(value, str) and "/" in value:
            parts = value.strip().split("/")
            if len(parts) == 3:
                day, month, year = parts
                return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
        return value

    def to_request(self) -> DueDateChargeRequest:
        return DueDateChargeRequest(
            amount=self.amount,
            payer=self.payer.to_payer(),
            due_date=self.due_date,
            description=self.description,
            days_after_due=self.days_after_due,
        )


class ChargeOut(BaseModel):
    success: bool = True
    txid: str
    status: str
    qr_code: Optional[str] = None
    qr_code_image: Optional[str] = None
    amount: Optional[str] = None
    expires_in: Optional[int] = None
    due_date: Optional[str] = None


class ChargeQueryOut(BaseModel):
    txid: str
    status: str
    native_status: Optional[str] = None
    amount: Optional[str] = None
    received_payments: list[dict[str, Any]] = Field(default_factory=list)


class StoredChargeOut(BaseModel):
    txid: str
    kind: str
    invoice_id: Optional[str] = None
    amount: Decimal
    description: Optional[str] = None
    payer_name: Optional[str] = None
    status: str
    qr_code: Optional[str] = None
    due_date: Optional[date] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    paid_amount: Optional[Decimal] = None
