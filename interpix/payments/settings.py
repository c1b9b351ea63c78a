"""Configuração da integração com o Banco Inter (lida do ambiente / .env)."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SANDBOX_URL = "https://cdpj-sandbox.partners.uatinter.co"
DEFAULT_PRODUCTION_URL = "https://cdpj.partners.bancointer.com.br"
DEFAULT_SCOPE = "cob.write cob.read cobv.write cobv.read pix.read"
DEFAULT_DESCRIPTION = "Cobrança PIX"


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in ("0", "false", "no", "off")


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s inválido (%r); usando %s", name, raw, default)
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class InterSettings:
    """Parâmetros de deploy: URLs, escopo OAuth, modo TLS e timeout."""

    sandbox_url: str = DEFAULT_SANDBOX_URL
    production_url: str = DEFAULT_PRODUCTION_URL
    scope: str = DEFAULT_SCOPE
    verify_server_certificate: bool = True
    request_timeout: float = 30.0
    certs_dir: Path = Path("./certs")
    default_description: str = DEFAULT_DESCRIPTION
    encryption_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "InterSettings":
        return cls(
            sandbox_url=_env_str("INTER_API_URL_SANDBOX", DEFAULT_SANDBOX_URL).rstrip("/"),
            production_url=_env_str("INTER_API_URL_PRODUCTION", DEFAULT_PRODUCTION_URL).rstrip("/"),
            scope=_env_str("INTER_SCOPE", DEFAULT_SCOPE),
            verify_server_certificate=_env_bool("INTER_TLS_VERIFY", True),
            request_timeout=_env_float("INTER_REQUEST_TIMEOUT", 30.0),
            certs_dir=Path(_env_str("CERTS_DIR", "./certs")).expanduser(),
            default_description=_env_str("PIX_DEFAULT_DESCRIPTION", DEFAULT_DESCRIPTION),
            encryption_key=_env_str("ENCRYPTION_KEY") or None,
        )

    def base_url(self, sandbox: bool) -> str:
        return self.sandbox_url if sandbox else self.production_url
