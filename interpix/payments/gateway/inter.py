"""Gateway Banco Inter: cobranças PIX imediatas (cob) e com vencimento (cobv)."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import httpx

from interpix.payments.errors import (
    AuthenticationFailedError,
    ChargeCreationFailedError,
    ChargeQueryFailedError,
    InterPixError,
    InvalidChargeRequestError,
)
from interpix.payments.gateway.base import (
    ChargeKind,
    ChargeRequest,
    ChargeResult,
    DueDateChargeRequest,
    TenantBankConfig,
)
from interpix.payments.gateway.payloads import (
    TXID_ALPHABET,
    bank_error,
    due_date_charge_payload,
    generate_txid,
    immediate_charge_payload,
    parse_charge,
    response_body,
)
from interpix.payments.gateway.token_manager import TokenManager, TokenState
from interpix.payments.mtls import CertificateLoader, TransportBuilder
from interpix.payments.settings import InterSettings

logger = logging.getLogger(__name__)


@dataclass
class Success:
    data: dict[str, Any]


@dataclass
class Unauthorized:
    body: Any = None


@dataclass
class OtherFailure:
    status_code: Optional[int]
    body: Any = None
    transient: bool = False


BankOutcome = Union[Success, Unauthorized, OtherFailure]


class InterGateway:
    """
    Cliente da API Pix do Inter. Cada operação: certificados -> transporte mTLS
    -> token -> uma chamada. Em 401 com token do cache, invalida e repete uma única vez.
    """

    def __init__(
        self,
        settings: InterSettings,
        tokens: TokenManager,
        certificates: CertificateLoader,
        transports: TransportBuilder,
        txid_factory: Callable[[], str] = generate_txid,
    ):
        self._settings = settings
        self._tokens = tokens
        self._certificates = certificates
        self._transports = transports
        self._txid_factory = txid_factory

    def create_immediate_charge(
        self, config: TenantBankConfig, request: ChargeRequest
    ) -> ChargeResult:
        pix_key = self._pix_key(config)
        payload = immediate_charge_payload(request, pix_key, self._settings.default_description)
        txid = self._txid_factory()
        data = self._call(
            config,
            "PUT",
            f"/pix/v2/cob/{txid}",
            payload,
            ChargeCreationFailedError,
            "Falha ao criar cobrança PIX",
        )
        result = parse_charge(data)
        result.transaction_id = result.transaction_id or txid
        logger.info("Cobrança PIX imediata %s criada (empresa %s)", txid, config.tenant_id)
        return result

    def create_due_date_charge(
        self, config: TenantBankConfig, request: DueDateChargeRequest
    ) -> ChargeResult:
        pix_key = self._pix_key(config)
        payload = due_date_charge_payload(request, pix_key, self._settings.default_description)
        txid = self._txid_factory()
        data = self._call(
            config,
            "PUT",
            f"/pix/v2/cobv/{txid}",
            payload,
            ChargeCreationFailedError,
            "Falha ao criar cobrança PIX com vencimento",
        )
        result = parse_charge(data)
        result.transaction_id = result.transaction_id or txid
        logger.info(
            "Cobrança PIX com vencimento %s criada (empresa %s, vencimento %s)",
            txid,
            config.tenant_id,
            request.due_date,
        )
        return result

    def query_charge(
        self,
        config: TenantBankConfig,
        transaction_id: str,
        kind: ChargeKind = ChargeKind.IMMEDIATE,
    ) -> ChargeResult:
        txid = (transaction_id or "").strip()
        if not txid or any(c not in TXID_ALPHABET for c in txid):
            raise InvalidChargeRequestError(f"txid inválido: {transaction_id!r}")
        data = self._call(
            config,
            "GET",
            f"/pix/v2/{ChargeKind(kind).value}/{txid}",
            None,
            ChargeQueryFailedError,
            "Falha ao consultar cobrança",
        )
        return parse_charge(data)

    def test_connection(self, config: TenantBankConfig) -> None:
        """Força uma troca de token nova: valida credenciais + certificados."""
        self._tokens.invalidate(config.tenant_id)
        self._tokens.get_access_token(config)

    def invalidate(self, tenant_id: str) -> None:
        self._tokens.invalidate(tenant_id)

    def _pix_key(self, config: TenantBankConfig) -> str:
        pix_key = (config.pix_key or "").strip()
        if not pix_key:
            raise InvalidChargeRequestError("Chave PIX da empresa não configurada")
        return pix_key

    def _call(
        self,
        config: TenantBankConfig,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]],
        error_cls: type[InterPixError],
        error_prefix: str,
    ) -> dict[str, Any]:
        pair = self._certificates.load(config)
        url = f"{self._settings.base_url(config.sandbox)}{path}"
        with self._transports.build(pair) as client:
            # Só um token vindo do cache pode estar vencido do lado do banco
            from_cache = self._tokens.state(config.tenant_id) is TokenState.VALID
            token = self._tokens.get_access_token(config, client=client)
            outcome = self._send(client, method, url, token, payload)

            if isinstance(outcome, Unauthorized) and from_cache:
                logger.warning(
                    "401 do Banco Inter em %s %s (empresa %s); renovando token e repetindo",
                    method,
                    path,
                    config.tenant_id,
                )
                self._tokens.invalidate(config.tenant_id)
                token = self._tokens.get_access_token(config, client=client)
                outcome = self._send(client, method, url, token, payload)

            if isinstance(outcome, Unauthorized):
                self._tokens.invalidate(config.tenant_id)
                code, description = bank_error(outcome.body)
                raise AuthenticationFailedError(
                    f"{error_prefix}: token recusado pelo Banco Inter"
                    + (f" ({description})" if description else ""),
                    code=code,
                    detail=outcome.body,
                )

        if isinstance(outcome, OtherFailure):
            code, description = bank_error(outcome.body)
            logger.error(
                "%s (empresa %s): HTTP %s %s",
                error_prefix,
                config.tenant_id,
                outcome.status_code,
                outcome.body,
            )
            raise error_cls(
                f"{error_prefix}: {description or f'HTTP {outcome.status_code}'}",
                code=code,
                detail=outcome.body,
                transient=outcome.transient,
            )
        return outcome.data

    def _send(
        self,
        client: httpx.Client,
        method: str,
        url: str,
        token: str,
        payload: Optional[dict[str, Any]],
    ) -> BankOutcome:
        headers = {"Authorization": f"Bearer {token}"}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        try:
            response = client.request(method, url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            return OtherFailure(status_code=None, body=f"timeout: {e}", transient=True)
        except httpx.HTTPError as e:
            return OtherFailure(status_code=None, body=str(e), transient=True)

        body = response_body(response)
        if response.status_code == 401:
            return Unauthorized(body=body)
        if response.is_success and isinstance(body, dict):
            return Success(data=body)
        return OtherFailure(status_code=response.status_code, body=body)
