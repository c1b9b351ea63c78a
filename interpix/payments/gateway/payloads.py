"""Montagem dos payloads da API Pix do Inter e leitura das respostas."""

import re
import secrets
import string
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from interpix.payments.errors import InvalidChargeRequestError
from interpix.payments.gateway.base import (
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    DueDateChargeRequest,
    Payer,
)

TXID_LENGTH = 32
TXID_ALPHABET = string.ascii_letters + string.digits

_NON_DIGITS = re.compile(r"\D")
_CENTS = Decimal("0.01")

# Status nativos do Inter que não são "pendente"
_NATIVE_STATUS_MAP = {
    "CONCLUIDA": ChargeStatus.PAID,
    "REMOVIDA_PELO_USUARIO_RECEBEDOR": ChargeStatus.CANCELLED,
    "REMOVIDA_PELO_PSP": ChargeStatus.CANCELLED,
}


def generate_txid() -> str:
    """
    Gera txid de 32 caracteres [a-zA-Z0-9].
    Não há verificação de colisão: unicidade é apenas probabilística.
    """
    return "".join(secrets.choice(TXID_ALPHABET) for _ in range(TXID_LENGTH))


def only_digits(value: Optional[str]) -> str:
    """Remove tudo que não é dígito: '123.456.789-00' -> '12345678900'."""
    return _NON_DIGITS.sub("", value or "")


def format_amount(amount: Decimal) -> str:
    """Formata com duas casas, arredondando meio para cima (10.005 -> '10.01')."""
    if isinstance(amount, bool) or not isinstance(amount, (Decimal, int)):
        raise InvalidChargeRequestError(f"Valor deve ser Decimal, recebido {type(amount).__name__}")
    try:
        quantized = Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidChargeRequestError(f"Valor inválido: {amount!r}") from e
    if quantized <= 0:
        raise InvalidChargeRequestError("Valor inválido: deve ser maior que zero")
    return f"{quantized:.2f}"


def map_status(native_status: Optional[str]) -> ChargeStatus:
    """Traduz o status do Inter; qualquer valor desconhecido vira pending."""
    return _NATIVE_STATUS_MAP.get((native_status or "").strip().upper(), ChargeStatus.PENDING)


def debtor_payload(payer: Payer) -> dict[str, Any]:
    if payer is None:
        raise InvalidChargeRequestError("Pagador é obrigatório")
    debtor: dict[str, Any] = {"nome": payer.name}
    cnpj = only_digits(payer.cnpj)
    cpf = only_digits(payer.cpf)
    if cnpj:
        debtor["cnpj"] = cnpj
    elif cpf:
        debtor["cpf"] = cpf
    else:
        raise InvalidChargeRequestError("CPF ou CNPJ do pagador é obrigatório")
    address = payer.address
    if address is not None:
        if address.street:
            debtor["logradouro"] = address.street
        if address.city:
            debtor["cidade"] = address.city
        if address.state:
            debtor["uf"] = address.state.upper()
        if address.postal_code:
            debtor["cep"] = only_digits(address.postal_code)
    return debtor


def immediate_charge_payload(
    request: ChargeRequest, pix_key: str, default_description: str
) -> dict[str, Any]:
    if request.expiry_seconds <= 0:
        raise InvalidChargeRequestError("Expiração deve ser maior que zero")
    return {
        "calendario": {"expiracao": int(request.expiry_seconds)},
        "devedor": debtor_payload(request.payer),
        "valor": {"original": format_amount(request.amount)},
        "chave": pix_key,
        "solicitacaoPagador": request.description or default_description,
    }


def due_date_charge_payload(
    request: DueDateChargeRequest, pix_key: str, default_description: str
) -> dict[str, Any]:
    if request.due_date is None:
        raise InvalidChargeRequestError("Data de vencimento é obrigatória")
    return {
        "calendario": {
            "dataDeVencimento": request.due_date.isoformat(),
            "validadeAposVencimento": int(request.days_after_due or 30),
        },
        "devedor": debtor_payload(request.payer),
        "valor": {"original": format_amount(request.amount)},
        "chave": pix_key,
        "solicitacaoPagador": request.description or default_description,
    }


def parse_charge(data: dict[str, Any]) -> ChargeResult:
    """Converte o JSON de cob/cobv do Inter em ChargeResult."""
    calendar = data.get("calendario") or {}
    value = data.get("valor") or {}
    image = data.get("imagemQrcode")
    native_status = data.get("status")
    return ChargeResult(
        transaction_id=data.get("txid") or "",
        status=map_status(native_status),
        native_status=native_status,
        qr_code_payload=data.get("pixCopiaECola"),
        qr_code_image=f"data:image/png;base64,{image}" if image else None,
        amount=value.get("original"),
        created_at=calendar.get("criacao"),
        expires_in=calendar.get("expiracao"),
        due_date=calendar.get("dataDeVencimento"),
        received_payments=list(data.get("pix") or []),
    )


def response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def bank_error(body: Any) -> tuple[Optional[str], Optional[str]]:
    """Extrai (código, descrição) de um corpo de erro OAuth ou Pix (RFC 7807)."""
    if not isinstance(body, dict):
        return None, (str(body)[:500] or None) if body else None
    code = body.get("error") or body.get("type")
    description = (
        body.get("error_description")
        or body.get("detail")
        or body.get("title")
        or body.get("message")
    )
    return code, description
