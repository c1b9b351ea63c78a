"""Erros tipados da integração bancária (Banco Inter) e da camada de serviço."""

from typing import Any, Optional


class InterPixError(Exception):
    """Erro base: carrega código/descrição do banco quando disponíveis."""

    kind = "InterPixError"
    http_status = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        detail: Any = None,
        transient: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail
        self.transient = transient

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.kind,
            "bank_code": self.code,
            "detail": self.detail,
        }


class CertificatesMissingError(InterPixError):
    """Empresa sem certificado/chave mTLS configurados."""

    kind = "CertificatesMissing"
    http_status = 400


class AuthenticationFailedError(InterPixError):
    """Banco recusou as credenciais ou a troca de token falhou."""

    kind = "AuthenticationFailed"
    http_status = 502


class TransportConstructionError(InterPixError):
    """Bytes de certificado/chave não formam um par PEM válido."""

    kind = "TransportConstructionError"
    http_status = 400


class ChargeCreationFailedError(InterPixError):
    kind = "ChargeCreationFailed"
    http_status = 502


class ChargeQueryFailedError(InterPixError):
    kind = "ChargeQueryFailed"
    http_status = 502


class InvalidChargeRequestError(InterPixError, ValueError):
    """Dados da cobrança inválidos (valor, pagador)."""

    kind = "InvalidChargeRequest"
    http_status = 400


class BankConfigNotFoundError(InterPixError):
    kind = "BankConfigNotFound"
    http_status = 404


class BankIntegrationDisabledError(InterPixError):
    kind = "BankIntegrationDisabled"
    http_status = 400


class InvalidBankConfigError(InterPixError, ValueError):
    kind = "InvalidBankConfig"
    http_status = 400
