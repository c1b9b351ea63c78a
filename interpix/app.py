"""App FastAPI: rotas de configuração, PIX e webhook do Banco Inter."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from interpix.db.session import create_all_tables
from interpix.payments.errors import InterPixError
from interpix.routes import config_router, pix_router, webhook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_all_tables()
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="InterPix Banking API", lifespan=lifespan)
    app.include_router(config_router)
    app.include_router(pix_router)
    app.include_router(webhook_router)

    @app.exception_handler(InterPixError)
    async def interpix_error_handler(request: Request, exc: InterPixError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s em %s %s: %s", exc.kind, request.method, request.url.path, exc)
        else:
            logger.warning("%s em %s %s: %s", exc.kind, request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
