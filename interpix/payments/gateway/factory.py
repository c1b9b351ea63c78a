"""Factory do gateway bancário (uma instância por processo, conforme config)."""

import logging
import os
from typing import Optional

import httpx

from interpix.payments.crypto import CredentialCodec
from interpix.payments.gateway.inter import InterGateway
from interpix.payments.gateway.token_manager import TokenManager
from interpix.payments.mtls import CertificateLoader, TransportBuilder
from interpix.payments.settings import InterSettings

logger = logging.getLogger(__name__)

_gateway: Optional[InterGateway] = None
_codec: Optional[CredentialCodec] = None


def build_inter_gateway(
    settings: InterSettings,
    codec: CredentialCodec,
    transport: Optional[httpx.BaseTransport] = None,
) -> InterGateway:
    """Monta gateway + TokenManager compartilhando loader e builder de transporte."""
    certificates = CertificateLoader(settings.certs_dir)
    transports = TransportBuilder(settings, transport=transport)
    tokens = TokenManager(settings, codec, certificates, transports)
    return InterGateway(settings, tokens, certificates, transports)


def get_codec() -> CredentialCodec:
    global _codec
    if _codec is None:
        _codec = CredentialCodec(InterSettings.from_env().encryption_key)
    return _codec


def get_gateway() -> InterGateway:
    """
    Retorna o gateway conforme PAYMENT_GATEWAY.
    Só 'inter' existe; outros valores caem no Inter com aviso.
    """
    global _gateway
    if _gateway is None:
        name = (os.getenv("PAYMENT_GATEWAY") or "inter").strip().lower()
        if name != "inter":
            logger.warning("PAYMENT_GATEWAY=%s não suportado; usando inter", name)
        _gateway = build_inter_gateway(InterSettings.from_env(), get_codec())
    return _gateway
