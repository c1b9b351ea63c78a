"""Serviço de domínio: configuração bancária por empresa, cobranças PIX e webhook."""

import base64
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from sqlmodel import select

from interpix.db.models import BankConfig, Charge, utc_now
from interpix.db.session import get_session
from interpix.payments.crypto import CredentialCodec
from interpix.payments.errors import (
    BankConfigNotFoundError,
    BankIntegrationDisabledError,
    InterPixError,
    InvalidBankConfigError,
)
from interpix.payments.gateway.base import (
    ChargeKind,
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    DueDateChargeRequest,
    PaymentGatewayProtocol,
    TenantBankConfig,
)
from interpix.payments.gateway.payloads import only_digits

logger = logging.getLogger(__name__)

TEST_STATUS_SUCCESS = "sucesso"
TEST_STATUS_FAILURE = "falha"


def _parse_payment_time(raw: Any) -> datetime:
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Horário de pagamento inválido no webhook: %r", raw)
        else:
            # Sem fuso informado: horário já em UTC
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    return utc_now()


def _parse_amount(raw: Any) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        logger.warning("Valor inválido no webhook: %r", raw)
        return None


class ChargeService:
    """Serviço síncrono (rotas FastAPI o chamam em threadpool)."""

    def __init__(
        self,
        gateway: Optional[PaymentGatewayProtocol] = None,
        codec: Optional[CredentialCodec] = None,
        engine=None,
    ):
        from interpix.payments.gateway.factory import get_codec, get_gateway
        self._gateway = gateway or get_gateway()
        self._codec = codec or get_codec()
        self._engine = engine

    # ------------------------------------------------------------------
    # Configuração bancária
    # ------------------------------------------------------------------

    def get_bank_config(self, tenant_id: str) -> Optional[BankConfig]:
        with get_session(self._engine) as session:
            return session.exec(
                select(BankConfig).where(BankConfig.tenant_id == tenant_id)
            ).first()

    def describe_bank_config(self, tenant_id: str) -> dict[str, Any]:
        """Dados públicos da configuração (sem segredos) + diagnóstico por tamanho."""
        record = self.get_bank_config(tenant_id)
        if record is None:
            return {"configured": False, "bank": None}
        return {
            "configured": True,
            "bank": record.bank,
            "active": record.active,
            "pix_key": record.pix_key,
            "sandbox": record.sandbox,
            "has_certificate": bool(record.cert_base64 and record.key_base64),
            "has_credentials": bool(record.client_id and record.client_secret),
            "last_test_at": record.last_test_at,
            "updated_at": record.updated_at,
            "diagnostics": {
                "client_id_length": len(record.client_id or ""),
                "client_secret_length": len(record.client_secret or ""),
                "cert_base64_length": len(record.cert_base64 or ""),
                "key_base64_length": len(record.key_base64 or ""),
                "last_test_status": record.last_test_status,
                "last_test_error": record.last_test_error,
            },
        }

    def save_bank_config(
        self,
        tenant_id: str,
        *,
        pix_key: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        sandbox: bool = False,
        certificate: Optional[bytes] = None,
        private_key: Optional[bytes] = None,
    ) -> BankConfig:
        """
        Cria/atualiza a configuração. Campos não enviados mantêm o valor salvo.
        A integração fica inativa até um novo teste de conexão.
        """
        pix_key = (pix_key or "").strip()
        if not pix_key:
            raise InvalidBankConfigError("Chave PIX é obrigatória")
        client_id = (client_id or "").strip() or None
        client_secret = (client_secret or "").strip() or None

        with get_session(self._engine) as session:
            record = session.exec(
                select(BankConfig).where(BankConfig.tenant_id == tenant_id)
            ).first()
            if record is None:
                record = BankConfig(tenant_id=tenant_id)
            has_saved_credentials = bool(record.client_id and record.client_secret)
            if not client_id and not has_saved_credentials:
                raise InvalidBankConfigError("Client ID é obrigatório")
            if not client_secret and not has_saved_credentials:
                raise InvalidBankConfigError("Client Secret é obrigatório")

            if client_id:
                record.client_id = self._codec.encrypt(client_id)
            if client_secret:
                record.client_secret = self._codec.encrypt(client_secret)
            if certificate:
                record.cert_base64 = base64.b64encode(certificate).decode("ascii")
            if private_key:
                record.key_base64 = base64.b64encode(private_key).decode("ascii")
            record.pix_key = pix_key
            record.sandbox = sandbox
            record.active = False
            record.updated_at = utc_now()
            session.add(record)
            session.commit()
            session.refresh(record)

        self._gateway.invalidate(tenant_id)
        logger.info("Configuração bancária salva para empresa %s (sandbox=%s)", tenant_id, sandbox)
        return record

    def test_connection(self, tenant_id: str) -> BankConfig:
        """
        Obtém um token novo (valida credenciais e certificados). Sucesso ativa a
        integração; falha desativa, registra o erro e relança.
        """
        record = self.get_bank_config(tenant_id)
        if record is None:
            raise BankConfigNotFoundError("Configuração não encontrada")
        error: Optional[InterPixError] = None
        try:
            self._gateway.test_connection(record.to_config())
        except InterPixError as e:
            error = e
            logger.warning("Teste de conexão falhou para empresa %s: %s", tenant_id, e)

        with get_session(self._engine) as session:
            record = session.get(BankConfig, record.id)
            record.active = error is None
            record.last_test_at = utc_now()
            record.last_test_status = TEST_STATUS_SUCCESS if error is None else TEST_STATUS_FAILURE
            record.last_test_error = None if error is None else str(error)[:1024]
            session.add(record)
            session.commit()
            session.refresh(record)
        if error is not None:
            raise error
        logger.info("Conexão com Banco Inter validada para empresa %s", tenant_id)
        return record

    def debug_bank_config(self, tenant_id: str) -> dict[str, Any]:
        """Diagnóstico de descriptografia, sem expor os segredos."""
        record = self.get_bank_config(tenant_id)
        if record is None:
            raise BankConfigNotFoundError("Configuração não encontrada")
        client_id = self._codec.decrypt(record.client_id) if record.client_id else None
        client_secret = self._codec.decrypt(record.client_secret) if record.client_secret else None
        return {
            "encryption_key_configured": self._codec.is_configured(),
            "client_id": {
                "stored_length": len(record.client_id or ""),
                "decrypted_length": len(client_id or ""),
                "decrypted_preview": f"{client_id[:8]}..." if client_id else None,
            },
            "client_secret": {
                "stored_length": len(record.client_secret or ""),
                "decrypted_length": len(client_secret or ""),
                "decrypt_success": bool(client_secret),
            },
            "certificates": {
                "cert_base64_length": len(record.cert_base64 or ""),
                "key_base64_length": len(record.key_base64 or ""),
            },
            "pix_key": record.pix_key,
            "sandbox": record.sandbox,
        }

    def delete_bank_config(self, tenant_id: str) -> bool:
        with get_session(self._engine) as session:
            record = session.exec(
                select(BankConfig).where(BankConfig.tenant_id == tenant_id)
            ).first()
            if record is None:
                return False
            session.delete(record)
            session.commit()
        self._gateway.invalidate(tenant_id)
        logger.info("Configuração bancária removida para empresa %s", tenant_id)
        return True

    def load_active_config(self, tenant_id: str) -> TenantBankConfig:
        record = self.get_bank_config(tenant_id)
        if record is None:
            raise BankConfigNotFoundError(
                "Configuração bancária não encontrada para esta empresa"
            )
        if not record.active:
            raise BankIntegrationDisabledError("Integração bancária está desativada")
        return record.to_config()

    # ------------------------------------------------------------------
    # Cobranças
    # ------------------------------------------------------------------

    def create_immediate_charge(
        self,
        tenant_id: str,
        request: ChargeRequest,
        invoice_id: Optional[str] = None,
    ) -> tuple[Charge, ChargeResult]:
        config = self.load_active_config(tenant_id)
        result = self._gateway.create_immediate_charge(config, request)
        charge = self._store_charge(tenant_id, ChargeKind.IMMEDIATE, request, result, invoice_id)
        return charge, result

    def create_due_date_charge(
        self,
        tenant_id: str,
        request: DueDateChargeRequest,
        invoice_id: Optional[str] = None,
    ) -> tuple[Charge, ChargeResult]:
        config = self.load_active_config(tenant_id)
        result = self._gateway.create_due_date_charge(config, request)
        charge = self._store_charge(tenant_id, ChargeKind.DUE_DATE, request, result, invoice_id)
        return charge, result

    def _store_charge(
        self,
        tenant_id: str,
        kind: ChargeKind,
        request: Union[ChargeRequest, DueDateChargeRequest],
        result: ChargeResult,
        invoice_id: Optional[str],
    ) -> Charge:
        payer = request.payer
        with get_session(self._engine) as session:
            charge = Charge(
                tenant_id=tenant_id,
                txid=result.transaction_id,
                kind=kind.value,
                invoice_id=invoice_id or result.transaction_id,
                amount=request.amount,
                description=request.description,
                payer_name=payer.name,
                payer_tax_id=only_digits(payer.cnpj) or only_digits(payer.cpf),
                status=ChargeStatus.PENDING.value,
                qr_code=result.qr_code_payload,
                qr_code_image=result.qr_code_image,
                due_date=getattr(request, "due_date", None),
                expires_in=result.expires_in,
            )
            session.add(charge)
            session.commit()
            session.refresh(charge)
        return charge

    def query_charge(
        self,
        tenant_id: str,
        transaction_id: str,
        kind: ChargeKind = ChargeKind.IMMEDIATE,
    ) -> ChargeResult:
        """Consulta no banco e atualiza o registro local se pago ou cancelado."""
        transaction_id = (transaction_id or "").strip()
        config = self.load_active_config(tenant_id)
        result = self._gateway.query_charge(config, transaction_id, kind)
        if result.status == ChargeStatus.PENDING:
            return result
        with get_session(self._engine) as session:
            charge = session.exec(
                select(Charge).where(
                    Charge.tenant_id == tenant_id,
                    Charge.txid == transaction_id,
                )
            ).first()
            if charge is not None and charge.status != result.status.value:
                charge.status = result.status.value
                if result.status == ChargeStatus.PAID:
                    charge.paid_at = charge.paid_at or utc_now()
                    charge.received_payments = result.received_payments
                session.add(charge)
                session.commit()
                logger.info("Cobrança %s atualizada para %s", transaction_id, result.status.value)
        return result

    def list_charges(self, tenant_id: str, limit: int = 100) -> list[Charge]:
        with get_session(self._engine) as session:
            return list(
                session.exec(
                    select(Charge)
                    .where(Charge.tenant_id == tenant_id)
                    .order_by(Charge.created_at.desc())
                    .limit(limit)
                )
            )

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def confirm_pix_payments(self, payments: list[dict[str, Any]]) -> dict[str, int]:
        """
        Marca como pagas as cobranças notificadas pelo webhook do Inter.

        O payload não traz a empresa: o txid é procurado em todas. Se mais de uma
        empresa tiver o mesmo txid, nada é alterado (ambíguo) e o caso é logado.
        """
        summary = {"confirmed": 0, "not_found": 0, "ambiguous": 0}
        for payment in payments:
            if not isinstance(payment, dict):
                continue
            txid = payment.get("txid")
            if not txid or not isinstance(txid, str):
                continue
            with get_session(self._engine) as session:
                matches = list(session.exec(select(Charge).where(Charge.txid == txid)))
                if not matches:
                    logger.warning("Webhook PIX: cobrança %s não encontrada", txid)
                    summary["not_found"] += 1
                    continue
                if len(matches) > 1:
                    logger.error(
                        "Webhook PIX: txid %s existe em %d empresas (%s); nada atualizado",
                        txid,
                        len(matches),
                        ", ".join(sorted(c.tenant_id for c in matches)),
                    )
                    summary["ambiguous"] += 1
                    continue
                charge = matches[0]
                charge.status = ChargeStatus.PAID.value
                charge.paid_at = _parse_payment_time(payment.get("horario"))
                charge.paid_amount = _parse_amount(payment.get("valor"))
                charge.payer_info = payment.get("pagador") or None
                charge.webhook_received_at = utc_now()
                session.add(charge)
                session.commit()
                summary["confirmed"] += 1
                logger.info(
                    "Cobrança %s marcada como PAGA (empresa %s, valor %s)",
                    txid,
                    charge.tenant_id,
                    payment.get("valor"),
                )
        return summary
