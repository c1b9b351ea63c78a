"""Gateway de pagamento PIX (tipos base + implementação Banco Inter)."""

from interpix.payments.gateway.base import (
    ChargeKind,
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    DueDateChargeRequest,
    Payer,
    PayerAddress,
    PaymentGatewayProtocol,
    TenantBankConfig,
)
from interpix.payments.gateway.factory import build_inter_gateway, get_codec, get_gateway
from interpix.payments.gateway.inter import InterGateway
from interpix.payments.gateway.token_manager import CachedToken, TokenManager, TokenState

__all__ = [
    "CachedToken",
    "ChargeKind",
    "ChargeRequest",
    "ChargeResult",
    "ChargeStatus",
    "DueDateChargeRequest",
    "InterGateway",
    "Payer",
    "PayerAddress",
    "PaymentGatewayProtocol",
    "TenantBankConfig",
    "TokenManager",
    "TokenState",
    "build_inter_gateway",
    "get_codec",
    "get_gateway",
]
