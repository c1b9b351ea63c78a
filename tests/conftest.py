"""
Fixtures compartilhadas: certificado autoassinado, banco falso (httpx.MockTransport),
gateway montado com relógio controlável e banco SQLite em memória.
"""

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from interpix.db.session import create_all_tables, make_engine
from interpix.payments.crypto import CredentialCodec
from interpix.payments.gateway.base import TenantBankConfig
from interpix.payments.gateway.inter import InterGateway
from interpix.payments.gateway.token_manager import TokenManager
from interpix.payments.mtls import CertificateLoader, CertificatePair, TransportBuilder
from interpix.payments.settings import InterSettings

SANDBOX_URL = "https://sandbox.inter.test"
PRODUCTION_URL = "https://api.inter.test"
TOKEN_PATH = "/oauth/v2/token"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBank:
    """Simula o Inter: endpoint de token + cob/cobv. Respostas enfileiradas têm prioridade."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_responses: list[Responder] = []
        self.api_responses: list[Responder] = []
        self._tokens_issued = 0

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == TOKEN_PATH]

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != TOKEN_PATH]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            if self.token_responses:
                return self._resolve(self.token_responses.pop(0), request)
            self._tokens_issued += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{self._tokens_issued}",
                    "token_type": "Bearer",
                    "expires_in": 3600,
                    "scope": "cob.write cob.read",
                },
            )
        if self.api_responses:
            return self._resolve(self.api_responses.pop(0), request)
        return self._default_charge(request)

    @staticmethod
    def _resolve(responder: Responder, request: httpx.Request) -> httpx.Response:
        return responder(request) if callable(responder) else responder

    @staticmethod
    def _default_charge(request: httpx.Request) -> httpx.Response:
        txid = request.url.path.rsplit("/", 1)[-1]
        if request.method == "PUT":
            payload = json.loads(request.content)
            calendar = dict(payload["calendario"])
            calendar["criacao"] = "2026-10-17T12:00:00.000Z"
            return httpx.Response(
                201,
                json={
                    "txid": txid,
                    "status": "ATIVA",
                    "calendario": calendar,
                    "valor": payload["valor"],
                    "chave": payload["chave"],
                    "devedor": payload["devedor"],
                    "pixCopiaECola": f"00020101021226900014br.gov.bcb.pix{txid}5204000053039865802BR",
                    "imagemQrcode": "iVBORw0KGgo=",
                },
            )
        return httpx.Response(
            200,
            json={"txid": txid, "status": "ATIVA", "valor": {"original": "50.00"}},
        )


def make_certificate_pair() -> CertificatePair:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "interpix-test")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return CertificatePair(
        certificate=cert.public_bytes(serialization.Encoding.PEM),
        private_key=key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ),
    )


@pytest.fixture(scope="session")
def certificate_pair() -> CertificatePair:
    return make_certificate_pair()


@pytest.fixture(scope="session")
def codec() -> CredentialCodec:
    return CredentialCodec("chave-de-teste")


@pytest.fixture
def settings(tmp_path) -> InterSettings:
    return InterSettings(
        sandbox_url=SANDBOX_URL,
        production_url=PRODUCTION_URL,
        scope="cob.write cob.read cobv.write cobv.read",
        request_timeout=5.0,
        certs_dir=tmp_path / "certs",
        default_description="Cobrança de teste",
    )


@pytest.fixture
def bank() -> FakeBank:
    return FakeBank()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_tenant_config(
    codec: CredentialCodec,
    pair: CertificatePair,
    tenant_id: str = "empresa-1",
    client_id: str = "client-id-123",
    client_secret: str = "client-secret-456",
    **overrides,
) -> TenantBankConfig:
    values = dict(
        tenant_id=tenant_id,
        encrypted_client_id=codec.encrypt(client_id),
        encrypted_client_secret=codec.encrypt(client_secret),
        pix_key="financeiro@empresa.com.br",
        sandbox=True,
        certificate_b64=base64.b64encode(pair.certificate).decode("ascii"),
        private_key_b64=base64.b64encode(pair.private_key).decode("ascii"),
        active=True,
    )
    values.update(overrides)
    return TenantBankConfig(**values)


@pytest.fixture
def tenant_config(codec, certificate_pair) -> TenantBankConfig:
    return make_tenant_config(codec, certificate_pair)


class GatewayParts:
    def __init__(self, gateway: InterGateway, tokens: TokenManager, bank: FakeBank):
        self.gateway = gateway
        self.tokens = tokens
        self.bank = bank


def build_parts(
    settings: InterSettings,
    codec: CredentialCodec,
    bank: FakeBank,
    clock: Optional[FakeClock] = None,
    txids: Optional[list[str]] = None,
) -> GatewayParts:
    certificates = CertificateLoader(settings.certs_dir)
    transports = TransportBuilder(settings, transport=httpx.MockTransport(bank))
    tokens = TokenManager(settings, codec, certificates, transports, clock=clock or FakeClock())
    kwargs = {}
    if txids is not None:
        pending = list(txids)
        kwargs["txid_factory"] = lambda: pending.pop(0)
    gateway = InterGateway(settings, tokens, certificates, transports, **kwargs)
    return GatewayParts(gateway, tokens, bank)


@pytest.fixture
def parts(settings, codec, bank, clock) -> GatewayParts:
    return build_parts(settings, codec, bank, clock)


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()
