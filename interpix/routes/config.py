"""Rotas de configuração bancária por empresa (credenciais + certificados)."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from interpix.payments.errors import BankConfigNotFoundError, InterPixError
from interpix.payments.service import ChargeService
from interpix.routes.dependencies import get_charge_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])

MAX_CERTIFICATE_SIZE = 50 * 1024
ALLOWED_CERTIFICATE_EXTENSIONS = (".crt", ".key", ".pem")

AVAILABLE_BANKS = [
    {
        "id": "inter",
        "name": "Banco Inter",
        "features": ["pix"],
        "status": "disponivel",
        "requires_certificate": True,
    },
]


def _read_certificate(upload: Optional[UploadFile], label: str) -> Optional[bytes]:
    """Valida extensão e tamanho do arquivo enviado; retorna os bytes ou None."""
    if upload is None or not upload.filename:
        return None
    name = upload.filename.lower()
    if not name.endswith(ALLOWED_CERTIFICATE_EXTENSIONS):
        raise HTTPException(
            status_code=400,
            detail=f"{label}: tipo de arquivo não permitido. Use .crt, .key ou .pem",
        )
    raw = upload.file.read(MAX_CERTIFICATE_SIZE + 1)
    if len(raw) > MAX_CERTIFICATE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"{label}: arquivo muito grande (máximo {MAX_CERTIFICATE_SIZE // 1024} KB)",
        )
    if not raw:
        raise HTTPException(status_code=400, detail=f"{label}: arquivo vazio")
    return raw


@router.get("/{tenant_id}/bancaria")
def get_bank_config(
    tenant_id: str, service: ChargeService = Depends(get_charge_service)
) -> dict[str, Any]:
    return service.describe_bank_config(tenant_id)


@router.post("/{tenant_id}/bancaria/inter")
def save_inter_config(
    tenant_id: str,
    pix_key: str = Form(default=""),
    client_id: Optional[str] = Form(default=None),
    client_secret: Optional[str] = Form(default=None),
    sandbox: bool = Form(default=False),
    certificate: Optional[UploadFile] = File(default=None),
    private_key: Optional[UploadFile] = File(default=None),
    service: ChargeService = Depends(get_charge_service),
) -> dict[str, Any]:
    """Salva credenciais e certificados; a integração só ativa após /testar."""
    record = service.save_bank_config(
        tenant_id,
        pix_key=pix_key,
        client_id=client_id,
        client_secret=client_secret,
        sandbox=sandbox,
        certificate=_read_certificate(certificate, "Certificado"),
        private_key=_read_certificate(private_key, "Chave privada"),
    )
    return {
        "success": True,
        "message": "Configuração salva. Execute o teste de conexão para ativar.",
        "has_certificate": bool(record.cert_base64 and record.key_base64),
    }


@router.post("/{tenant_id}/bancaria/testar")
def test_connection(
    tenant_id: str, service: ChargeService = Depends(get_charge_service)
) -> dict[str, Any]:
    try:
        record = service.test_connection(tenant_id)
    except BankConfigNotFoundError:
        raise
    except InterPixError as e:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": e.message,
                "code": e.kind,
                "details": "Verifique Client ID, Client Secret e certificados",
            },
        )
    return {
        "success": True,
        "message": "Conexão com Banco Inter estabelecida com sucesso!",
        "active": record.active,
    }


@router.get("/{tenant_id}/bancaria/debug")
def debug_bank_config(
    tenant_id: str, service: ChargeService = Depends(get_charge_service)
) -> dict[str, Any]:
    return service.debug_bank_config(tenant_id)


@router.delete("/{tenant_id}/bancaria/inter")
def delete_inter_config(
    tenant_id: str, service: ChargeService = Depends(get_charge_service)
) -> dict[str, Any]:
    removed = service.delete_bank_config(tenant_id)
    return {
        "success": True,
        "message": "Configuração removida com sucesso" if removed else "Nenhuma configuração encontrada",
    }


@router.get("/{tenant_id}/bancos-disponiveis")
def available_banks(tenant_id: str) -> dict[str, Any]:
    return {"banks": AVAILABLE_BANKS}
