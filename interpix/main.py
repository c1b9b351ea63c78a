"""Entrypoint: carrega .env, configura logging e sobe a API (uvicorn)."""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

# Não emite logs de cada requisição HTTP do httpx (token e cobranças)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def main() -> None:
    import uvicorn

    from interpix.app import app

    host = (os.getenv("API_HOST") or "0.0.0.0").strip()
    try:
        port = int((os.getenv("API_PORT") or "8080").strip())
    except ValueError:
        raise SystemExit("API_PORT deve ser um número inteiro")
    if not (os.getenv("ENCRYPTION_KEY") or "").strip():
        logger.warning("ENCRYPTION_KEY ausente: credenciais bancárias serão salvas em texto puro")
    logger.info("API InterPix escutando em %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    main()
