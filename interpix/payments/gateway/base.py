"""Tipos do domínio de cobranças PIX e interface do gateway bancário."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol


class ChargeStatus(str, Enum):
    """Status interno de uma cobrança."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class ChargeKind(str, Enum):
    """Tipo de cobrança PIX: imediata (cob) ou com vencimento (cobv)."""

    IMMEDIATE = "cob"
    DUE_DATE = "cobv"


@dataclass(frozen=True)
class TenantBankConfig:
    """Configuração bancária de uma empresa, já carregada pelo chamador."""

    tenant_id: str
    encrypted_client_id: str | None = None
    encrypted_client_secret: str | None = None
    pix_key: str | None = None
    sandbox: bool = False
    certificate_b64: str | None = None
    private_key_b64: str | None = None
    use_certificate_files: bool = False
    active: bool = False
    last_test_status: str | None = None
    last_test_error: str | None = None
    last_test_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.encrypted_client_id and self.encrypted_client_secret)

    @property
    def has_inline_certificates(self) -> bool:
        return bool(self.certificate_b64 and self.private_key_b64)


@dataclass(frozen=True)
class PayerAddress:
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None


@dataclass(frozen=True)
class Payer:
    """Devedor da cobrança: nome + CPF ou CNPJ (CNPJ tem prioridade)."""

    name: str
    cpf: str | None = None
    cnpj: str | None = None
    address: PayerAddress | None = None


@dataclass(frozen=True)
class ChargeRequest:
    """Cobrança imediata: expira em expiry_seconds após a criação."""

    amount: Decimal
    payer: Payer
    description: str | None = None
    expiry_seconds: int = 3600


@dataclass(frozen=True)
class DueDateChargeRequest:
    """Cobrança com vencimento: válida até days_after_due dias após due_date."""

    amount: Decimal
    payer: Payer
    due_date: date
    description: str | None = None
    days_after_due: int = 30


@dataclass
class ChargeResult:
    """Resultado da criação ou consulta de uma cobrança PIX."""

    transaction_id: str
    status: ChargeStatus
    native_status: str | None = None
    qr_code_payload: str | None = None
    qr_code_image: str | None = None
    amount: str | None = None
    created_at: str | None = None
    expires_in: int | None = None
    due_date: str | None = None
    received_payments: list[dict[str, Any]] = field(default_factory=list)


class PaymentGatewayProtocol(Protocol):
    """Protocolo do gateway bancário PIX."""

    def create_immediate_charge(
        self, config: TenantBankConfig, request: ChargeRequest
    ) -> ChargeResult:
        """Cria cobrança imediata (cob) e retorna dados para pagamento (QR)."""
        ...

    def create_due_date_charge(
        self, config: TenantBankConfig, request: DueDateChargeRequest
    ) -> ChargeResult:
        """Cria cobrança com vencimento (cobv)."""
        ...

    def query_charge(
        self,
        config: TenantBankConfig,
        transaction_id: str,
        kind: ChargeKind = ChargeKind.IMMEDIATE,
    ) -> ChargeResult:
        """Consulta o status atual da cobrança."""
        ...

    def test_connection(self, config: TenantBankConfig) -> None:
        """Valida credenciais e certificados obtendo um token."""
        ...

    def invalidate(self, tenant_id: str) -> None:
        """Descarta o token em cache da empresa."""
        ...
