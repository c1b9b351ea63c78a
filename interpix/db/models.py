"""Modelos SQLModel: configuração bancária por empresa e cobranças."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from interpix.payments.gateway.base import TenantBankConfig


def utc_now() -> datetime:
    """Agora em UTC, com fuso (colunas de data/hora guardam horários cientes)."""
    return datetime.now(timezone.utc)


class BankConfig(SQLModel, table=True):
    """Credenciais e certificados do Banco Inter de uma empresa (1 por empresa)."""

    __tablename__ = "bank_config"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(unique=True, index=True, max_length=128)
    bank: str = Field(default="inter", max_length=32)
    client_id: Optional[str] = Field(default=None, max_length=1024)  # criptografado
    client_secret: Optional[str] = Field(default=None, max_length=1024)  # criptografado
    pix_key: Optional[str] = Field(default=None, max_length=128)
    sandbox: bool = Field(default=False)
    cert_base64: Optional[str] = Field(default=None)
    key_base64: Optional[str] = Field(default=None)
    use_certificate_files: bool = Field(default=False)
    active: bool = Field(default=False)
    last_test_at: Optional[datetime] = Field(default=None)
    last_test_status: Optional[str] = Field(default=None, max_length=16)  # sucesso, falha
    last_test_error: Optional[str] = Field(default=None, max_length=1024)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_config(self) -> TenantBankConfig:
        return TenantBankConfig(
            tenant_id=self.tenant_id,
            encrypted_client_id=self.client_id,
            encrypted_client_secret=self.client_secret,
            pix_key=self.pix_key,
            sandbox=self.sandbox,
            certificate_b64=self.cert_base64,
            private_key_b64=self.key_base64,
            use_certificate_files=self.use_certificate_files,
            active=self.active,
            last_test_status=self.last_test_status,
            last_test_error=self.last_test_error,
            last_test_at=self.last_test_at,
            updated_at=self.updated_at,
        )


class Charge(SQLModel, table=True):
    """Cobrança PIX emitida para uma empresa (txid é único só dentro da empresa)."""

    __tablename__ = "charge"
    __table_args__ = (UniqueConstraint("tenant_id", "txid", name="uq_charge_tenant_txid"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True, max_length=128)
    txid: str = Field(index=True, max_length=35)
    kind: str = Field(max_length=8)  # cob, cobv
    invoice_id: Optional[str] = Field(default=None, max_length=128)
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=140)
    payer_name: Optional[str] = Field(default=None, max_length=200)
    payer_tax_id: Optional[str] = Field(default=None, max_length=14)
    status: str = Field(default="pending", max_length=16)  # pending, paid, cancelled
    qr_code: Optional[str] = Field(default=None)
    qr_code_image: Optional[str] = Field(default=None)
    due_date: Optional[date] = Field(default=None)
    expires_in: Optional[int] = Field(default=None)
    bank: str = Field(default="inter", max_length=32)
    created_at: datetime = Field(default_factory=utc_now)
    paid_at: Optional[datetime] = Field(default=None)
    paid_amount: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    payer_info: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    received_payments: Optional[list] = Field(default=None, sa_column=Column(JSON))
    webhook_received_at: Optional[datetime] = Field(default=None)
