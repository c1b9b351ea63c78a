"""Rotas de PIX: criação e consulta de cobranças."""

import logging

from fastapi import APIRouter, Depends, Query

from interpix.payments.gateway.base import ChargeKind, ChargeResult
from interpix.payments.service import ChargeService
from interpix.routes.dependencies import get_charge_service
from interpix.routes.schemas import (
    ChargeOut,
    ChargeQueryOut,
    DueDateChargeIn,
    ImmediateChargeIn,
    StoredChargeOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pix", tags=["pix"])


def _charge_out(result: ChargeResult) -> ChargeOut:
    return ChargeOut(
        txid=result.transaction_id,
        status=result.status.value,
        qr_code=result.qr_code_payload,
        qr_code_image=result.qr_code_image,
        amount=result.amount,
        expires_in=result.expires_in,
        due_date=result.due_date,
    )


@router.get("/", response_model=list[StoredChargeOut])
def list_charges(
    tenant_id: str = Query(min_length=1),
    limit: int = Query(default=100, gt=0, le=500),
    service: ChargeService = Depends(get_charge_service),
):
    return [StoredChargeOut.model_validate(c, from_attributes=True) for c in service.list_charges(tenant_id, limit)]


@router.post("/cob", response_model=ChargeOut)
def create_immediate_charge(
    body: ImmediateChargeIn, service: ChargeService = Depends(get_charge_service)
):
    _, result = service.create_immediate_charge(
        body.tenant_id, body.to_request(), invoice_id=body.invoice_id
    )
    return _charge_out(result)


@router.post("/cobv", response_model=ChargeOut)
def create_due_date_charge(
    body: DueDateChargeIn, service: ChargeService = Depends(get_charge_service)
):
    logger.info("Cobrança com vencimento solicitada (empresa %s, vencimento %s)", body.tenant_id, body.due_date)
    _, result = service.create_due_date_charge(
        body.tenant_id, body.to_request(), invoice_id=body.invoice_id
    )
    return _charge_out(result)


@router.get("/{txid}", response_model=ChargeQueryOut)
def query_charge(
    txid: str,
    tenant_id: str = Query(min_length=1),
    kind: ChargeKind = Query(default=ChargeKind.IMMEDIATE),
    service: ChargeService = Depends(get_charge_service),
):
    result = service.query_charge(tenant_id, txid, kind)
    return ChargeQueryOut(
        txid=result.transaction_id,
        status=result.status.value,
        native_status=result.native_status,
        amount=result.amount,
        received_payments=result.received_payments,
    )
