"""Certificados mTLS por empresa e construção do cliente HTTPS."""

import base64
import binascii
import logging
import ssl
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple, Optional

import httpx

from interpix.payments.errors import CertificatesMissingError, TransportConstructionError
from interpix.payments.settings import InterSettings

if TYPE_CHECKING:
    from interpix.payments.gateway.base import TenantBankConfig

logger = logging.getLogger(__name__)

CERT_FILENAME = "cert.crt"
KEY_FILENAME = "cert.key"


class CertificatePair(NamedTuple):
    """Certificado e chave privada em bytes (PEM)."""
    certificate: bytes
    private_key: bytes


class CertificateLoader:
    """
    Resolve o par certificado/chave da empresa. Ordem:
    1) base64 armazenado na configuração (ambos presentes);
    2) arquivos locais em {certs_dir}/{tenant_id}/cert.crt e cert.key.
    Sem cache: a configuração pode mudar entre chamadas.
    """

    def __init__(self, certs_dir: Path):
        self._certs_dir = certs_dir

    def load(self, config: "TenantBankConfig") -> CertificatePair:
        if config.has_inline_certificates:
            try:
                pair = CertificatePair(
                    certificate=base64.b64decode(config.certificate_b64, validate=True),
                    private_key=base64.b64decode(config.private_key_b64, validate=True),
                )
            except (binascii.Error, ValueError) as e:
                raise TransportConstructionError(
                    "Certificados armazenados não estão em base64 válido"
                ) from e
            logger.info(
                "Certificados carregados da configuração (empresa %s, cert=%d bytes, key=%d bytes)",
                config.tenant_id,
                len(pair.certificate),
                len(pair.private_key),
            )
            return pair

        if config.use_certificate_files:
            tenant_dir = self._certs_dir / config.tenant_id
            cert_path = tenant_dir / CERT_FILENAME
            key_path = tenant_dir / KEY_FILENAME
            if cert_path.is_file() and key_path.is_file():
                logger.info("Certificados carregados de arquivos locais em %s", tenant_dir)
                return CertificatePair(cert_path.read_bytes(), key_path.read_bytes())
            logger.warning("Arquivos de certificado ausentes em %s", tenant_dir)

        raise CertificatesMissingError("Certificados não configurados para esta empresa")


class TransportBuilder:
    """Cria httpx.Client com certificado de cliente (mTLS) e timeout de deploy."""

    def __init__(
        self,
        settings: InterSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._verify = settings.verify_server_certificate
        self._timeout = settings.request_timeout
        self._transport = transport
        if not self._verify:
            logger.warning("Validação do certificado do servidor DESATIVADA (INTER_TLS_VERIFY=false)")

    def ssl_context(self, pair: CertificatePair) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        # load_cert_chain só aceita caminhos; os bytes vivem em arquivos temporários
        with tempfile.TemporaryDirectory(prefix="interpix_mtls_") as tmp_dir:
            cert_path = Path(tmp_dir) / CERT_FILENAME
            key_path = Path(tmp_dir) / KEY_FILENAME
            cert_path.write_bytes(pair.certificate)
            key_path.write_bytes(pair.private_key)
            key_path.chmod(0o600)
            try:
                # Chave cifrada falha na hora em vez de pedir senha no terminal
                context.load_cert_chain(
                    certfile=str(cert_path), keyfile=str(key_path), password=lambda: b""
                )
            except (ssl.SSLError, OSError) as e:
                raise TransportConstructionError(
                    "Certificado ou chave privada inválidos",
                    detail=str(e),
                ) from e
        return context

    def build(self, pair: CertificatePair) -> httpx.Client:
        return httpx.Client(
            verify=self.ssl_context(pair),
            timeout=self._timeout,
            transport=self._transport,
        )
