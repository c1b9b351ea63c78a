"""Webhook do Banco Inter para notificações de pagamento PIX."""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from interpix.payments.service import ChargeService
from interpix.routes.dependencies import get_charge_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhook"])


@router.post("/inter/pix", response_class=PlainTextResponse)
async def inter_pix_webhook(
    request: Request,
    service: ChargeService = Depends(get_charge_service),
) -> str:
    """
    Recebe {"pix": [{"txid", "valor", "horario", "pagador"}, ...]}.
    Sempre responde 200: o Inter retenta em qualquer outro status.
    """
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Webhook PIX com corpo inválido (%d bytes)", len(await request.body()))
        return "OK"
    payments = body.get("pix") if isinstance(body, dict) else None
    if not payments or not isinstance(payments, list):
        logger.info("Webhook PIX sem pagamentos")
        return "OK"
    try:
        summary = await run_in_threadpool(service.confirm_pix_payments, payments)
        logger.info("Webhook PIX processado: %s", summary)
    except Exception as e:
        logger.exception("Erro ao processar webhook PIX: %s", e)
    return "OK"


@router.get("/health")
def webhook_health() -> dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": {"inter/pix": "ativo"},
    }
