"""Rotas HTTP (FastAPI): configuração bancária, PIX e webhook."""

from interpix.routes.config import router as config_router
from interpix.routes.pix import router as pix_router
from interpix.routes.webhook import router as webhook_router

__all__ = ["config_router", "pix_router", "webhook_router"]
