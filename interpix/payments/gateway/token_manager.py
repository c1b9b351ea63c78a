"""Tokens OAuth2 (client credentials + mTLS) do Banco Inter, em cache por empresa."""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import httpx

from interpix.payments.crypto import CredentialCodec
from interpix.payments.errors import AuthenticationFailedError
from interpix.payments.gateway.base import TenantBankConfig
from interpix.payments.gateway.payloads import bank_error, response_body
from interpix.payments.mtls import CertificateLoader, TransportBuilder
from interpix.payments.settings import InterSettings

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/v2/token"
# Renova 1 minuto antes do expires_in informado pelo banco
EXPIRY_MARGIN_SECONDS = 60


class TokenState(str, Enum):
    UNCACHED = "uncached"
    VALID = "valid"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"


@dataclass(frozen=True)
class CachedToken:
    tenant_id: str
    access_token: str
    expires_at_ms: int

    def is_valid(self, now_ms: int) -> bool:
        return now_ms < self.expires_at_ms


class TokenManager:
    """
    Dono do cache de tokens (um por empresa, por processo).

    O lock protege apenas o dicionário; a troca de token acontece fora dele.
    Duas chamadas simultâneas para a mesma empresa com cache vazio podem
    gerar duas trocas: o último token gravado vence e ambos são válidos.
    """

    def __init__(
        self,
        settings: InterSettings,
        codec: CredentialCodec,
        certificates: CertificateLoader,
        transports: TransportBuilder,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._codec = codec
        self._certificates = certificates
        self._transports = transports
        self._clock = clock
        self._cache: dict[str, CachedToken] = {}
        self._invalidated: set[str] = set()
        self._lock = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def peek(self, tenant_id: str) -> Optional[CachedToken]:
        with self._lock:
            return self._cache.get(tenant_id)

    def state(self, tenant_id: str) -> TokenState:
        with self._lock:
            cached = self._cache.get(tenant_id)
            invalidated = tenant_id in self._invalidated
        if cached is None:
            return TokenState.INVALIDATED if invalidated else TokenState.UNCACHED
        return TokenState.VALID if cached.is_valid(self._now_ms()) else TokenState.EXPIRED

    def get_access_token(
        self, config: TenantBankConfig, client: Optional[httpx.Client] = None
    ) -> str:
        """
        Retorna token válido do cache ou faz a troca client_credentials.
        `client` permite reaproveitar o transporte mTLS já montado pelo chamador.
        """
        cached = self.peek(config.tenant_id)
        if cached is not None and cached.is_valid(self._now_ms()):
            return cached.access_token

        token = self._exchange(config, client)
        with self._lock:
            self._cache[config.tenant_id] = token
            self._invalidated.discard(config.tenant_id)
        logger.info("Token obtido para empresa %s", config.tenant_id)
        return token.access_token

    def invalidate(self, tenant_id: str) -> None:
        """Remove o token da empresa (credenciais alteradas ou 401). Sem entrada: no-op."""
        with self._lock:
            removed = self._cache.pop(tenant_id, None)
            if removed is not None:
                self._invalidated.add(tenant_id)
        if removed is not None:
            logger.info("Cache de token limpo para empresa %s", tenant_id)

    def _credential(self, stored: Optional[str], label: str, tenant_id: str) -> str:
        value = stored or ""
        if value and self._codec.is_configured():
            decrypted = self._codec.decrypt(value)
            if decrypted is None:
                # Valor possivelmente salvo antes da criptografia: usa como está
                logger.warning(
                    "Falha ao descriptografar %s da empresa %s; usando valor armazenado",
                    label,
                    tenant_id,
                )
            else:
                value = decrypted
        value = value.strip()
        if not value:
            raise AuthenticationFailedError(
                f"Falha na autenticação com Banco Inter: {label} não configurado",
                code="missing_credentials",
            )
        return value

    def _exchange(
        self, config: TenantBankConfig, client: Optional[httpx.Client]
    ) -> CachedToken:
        logger.info("Iniciando autenticação Inter para empresa %s", config.tenant_id)
        client_id = self._credential(config.encrypted_client_id, "client_id", config.tenant_id)
        client_secret = self._credential(
            config.encrypted_client_secret, "client_secret", config.tenant_id
        )
        logger.debug(
            "Credenciais: client_id=%d chars, client_secret=%d chars, sandbox=%s",
            len(client_id),
            len(client_secret),
            config.sandbox,
        )
        if client is not None:
            return self._request_token(client, config, client_id, client_secret)
        pair = self._certificates.load(config)
        with self._transports.build(pair) as own_client:
            return self._request_token(own_client, config, client_id, client_secret)

    def _request_token(
        self,
        client: httpx.Client,
        config: TenantBankConfig,
        client_id: str,
        client_secret: str,
    ) -> CachedToken:
        url = f"{self._settings.base_url(config.sandbox)}{TOKEN_PATH}"
        form = {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "client_credentials",
            "scope": self._settings.scope,
        }
        try:
            response = client.post(
                url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.TimeoutException as e:
            logger.warning("Timeout ao obter token (empresa %s): %s", config.tenant_id, e)
            raise AuthenticationFailedError(
                "Falha na autenticação com Banco Inter: timeout", transient=True
            ) from e
        except httpx.HTTPError as e:
            logger.error("Erro de rede ao obter token (empresa %s): %s", config.tenant_id, e)
            raise AuthenticationFailedError(
                f"Falha na autenticação com Banco Inter: {e}", transient=True
            ) from e

        body = response_body(response)
        if response.status_code != 200:
            code, description = bank_error(body)
            logger.error(
                "Erro ao obter token para empresa %s: HTTP %s %s",
                config.tenant_id,
                response.status_code,
                code or "",
            )
            raise AuthenticationFailedError(
                "Falha na autenticação com Banco Inter: "
                f"{description or f'HTTP {response.status_code}'}",
                code=code,
                detail=body,
            )

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise AuthenticationFailedError(
                "Falha na autenticação com Banco Inter: resposta sem access_token"
            )
        try:
            expires_in = int(body.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        lifetime_ms = max(expires_in - EXPIRY_MARGIN_SECONDS, 0) * 1000
        return CachedToken(
            tenant_id=config.tenant_id,
            access_token=access_token,
            expires_at_ms=self._now_ms() + lifetime_ms,
        )
