import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from conftest import SANDBOX_URL, build_parts, make_tenant_config
from interpix.payments.errors import (
    AuthenticationFailedError,
    CertificatesMissingError,
    ChargeCreationFailedError,
    ChargeQueryFailedError,
    InvalidChargeRequestError,
    TransportConstructionError,
)
from interpix.payments.gateway.base import (
    ChargeKind,
    ChargeRequest,
    ChargeStatus,
    DueDateChargeRequest,
    Payer,
)

TXID = "A" * 16 + "b" * 8 + "12345678"


@pytest.fixture
def fixed_parts(settings, codec, bank, clock):
    return build_parts(settings, codec, bank, clock, txids=[TXID, TXID[::-1]])


def immediate_request(**overrides):
    values = dict(
        amount=Decimal("150.00"),
        payer=Payer(name="Maria Silva", cpf="123.456.789-00"),
        description="Fatura #42",
    )
    values.update(overrides)
    return ChargeRequest(**values)


class TestImmediateCharge:
    def test_creates_charge(self, fixed_parts, tenant_config):
        result = fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())

        assert len(fixed_parts.bank.token_requests) == 1
        [put] = fixed_parts.bank.api_requests
        assert put.method == "PUT"
        assert str(put.url) == f"{SANDBOX_URL}/pix/v2/cob/{TXID}"
        assert put.headers["authorization"] == "Bearer token-1"
        assert put.headers["content-type"] == "application/json"
        payload = json.loads(put.content)
        assert payload["valor"] == {"original": "150.00"}
        assert payload["devedor"] == {"nome": "Maria Silva", "cpf": "12345678900"}
        assert payload["chave"] == "financeiro@empresa.com.br"
        assert payload["solicitacaoPagador"] == "Fatura #42"
        assert payload["calendario"] == {"expiracao": 3600}

        assert result.transaction_id == TXID
        assert result.status is ChargeStatus.PENDING
        assert result.native_status == "ATIVA"
        assert result.qr_code_payload.startswith("000201")
        assert result.qr_code_image == "data:image/png;base64,iVBORw0KGgo="
        assert result.amount == "150.00"

    def test_default_description(self, fixed_parts, tenant_config, settings):
        fixed_parts.gateway.create_immediate_charge(
            tenant_config, immediate_request(description=None)
        )
        payload = json.loads(fixed_parts.bank.api_requests[0].content)
        assert payload["solicitacaoPagador"] == settings.default_description

    def test_token_reused_across_charges(self, fixed_parts, tenant_config):
        fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())
        fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())
        assert len(fixed_parts.bank.token_requests) == 1
        assert len(fixed_parts.bank.api_requests) == 2

    def test_generated_txids_are_valid(self, parts, tenant_config):
        result = parts.gateway.create_immediate_charge(tenant_config, immediate_request())
        assert len(result.transaction_id) == 32
        assert result.transaction_id.isalnum()

    def test_rejected_by_bank(self, fixed_parts, tenant_config):
        problem = {
            "type": "https://pix.bcb.gov.br/api/v2/error/CobOperacaoInvalida",
            "title": "Cobrança inválida.",
            "status": 400,
            "detail": "A requisição que busca alterar ou criar uma cobrança não respeita o schema.",
        }
        fixed_parts.bank.api_responses.append(httpx.Response(400, json=problem))

        with pytest.raises(ChargeCreationFailedError) as exc_info:
            fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())

        error = exc_info.value
        assert "não respeita o schema" in str(error)
        assert error.detail == problem
        assert error.transient is False
        assert len(fixed_parts.bank.api_requests) == 1

    def test_timeout_is_transient_and_not_retried(self, fixed_parts, tenant_config):
        def timeout(request):
            raise httpx.ConnectTimeout("sem resposta", request=request)

        fixed_parts.bank.api_responses.append(timeout)
        with pytest.raises(ChargeCreationFailedError) as exc_info:
            fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())
        assert exc_info.value.transient is True
        assert len(fixed_parts.bank.api_requests) == 1

    def test_invalid_amount_makes_no_request(self, fixed_parts, tenant_config):
        with pytest.raises(InvalidChargeRequestError):
            fixed_parts.gateway.create_immediate_charge(
                tenant_config, immediate_request(amount=Decimal("0"))
            )
        assert fixed_parts.bank.requests == []

    def test_missing_pix_key(self, fixed_parts, codec, certificate_pair):
        config = make_tenant_config(codec, certificate_pair, pix_key="  ")
        with pytest.raises(InvalidChargeRequestError):
            fixed_parts.gateway.create_immediate_charge(config, immediate_request())
        assert fixed_parts.bank.requests == []


class TestUnauthorizedRetry:
    @pytest.fixture(autouse=True)
    def cached_token(self, fixed_parts, tenant_config):
        fixed_parts.tokens.get_access_token(tenant_config)

    def test_single_401_is_retried_with_fresh_token(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.append(httpx.Response(401, json={"title": "Unauthorized"}))

        result = fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())

        assert result.transaction_id == TXID
        assert len(fixed_parts.bank.token_requests) == 2
        first, second = fixed_parts.bank.api_requests
        assert first.headers["authorization"] == "Bearer token-1"
        assert second.headers["authorization"] == "Bearer token-2"
        assert first.url == second.url
        assert first.content == second.content
        assert fixed_parts.tokens.peek(tenant_config.tenant_id).access_token == "token-2"

    def test_double_401_fails_after_one_retry(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.extend(
            [httpx.Response(401, json={"title": "Unauthorized"})] * 2
        )

        with pytest.raises(AuthenticationFailedError):
            fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())

        assert len(fixed_parts.bank.api_requests) == 2
        assert len(fixed_parts.bank.token_requests) == 2
        assert fixed_parts.tokens.peek(tenant_config.tenant_id) is None

    def test_401_on_query_is_retried(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.append(httpx.Response(401))
        result = fixed_parts.gateway.query_charge(tenant_config, TXID)
        assert result.transaction_id == TXID
        assert len(fixed_parts.bank.api_requests) == 2

    def test_token_failure_during_retry_propagates(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.append(httpx.Response(401))
        fixed_parts.bank.token_responses.append(
            httpx.Response(400, json={"error": "invalid_client"})
        )
        with pytest.raises(AuthenticationFailedError) as exc_info:
            fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())
        assert exc_info.value.code == "invalid_client"
        assert len(fixed_parts.bank.api_requests) == 1


def test_401_with_freshly_exchanged_token_is_not_retried(fixed_parts, tenant_config):
    fixed_parts.bank.api_responses.append(httpx.Response(401, json={"title": "Unauthorized"}))

    with pytest.raises(AuthenticationFailedError):
        fixed_parts.gateway.create_immediate_charge(tenant_config, immediate_request())

    assert len(fixed_parts.bank.token_requests) == 1
    assert len(fixed_parts.bank.api_requests) == 1
    assert fixed_parts.tokens.peek(tenant_config.tenant_id) is None


class TestDueDateCharge:
    def test_creates_cobv(self, fixed_parts, tenant_config):
        request = DueDateChargeRequest(
            amount=Decimal("89.9"),
            payer=Payer(name="ACME Ltda", cpf="111.111.111-11", cnpj="12.345.678/0001-90"),
            due_date=date(2026, 12, 10),
        )
        result = fixed_parts.gateway.create_due_date_charge(tenant_config, request)

        [put] = fixed_parts.bank.api_requests
        assert put.url.path == f"/pix/v2/cobv/{TXID}"
        payload = json.loads(put.content)
        assert payload["calendario"] == {
            "dataDeVencimento": "2026-12-10",
            "validadeAposVencimento": 30,
        }
        assert payload["devedor"] == {"nome": "ACME Ltda", "cnpj": "12345678000190"}
        assert payload["valor"]["original"] == "89.90"
        assert result.due_date == "2026-12-10"
        assert result.status is ChargeStatus.PENDING


class TestQueryCharge:
    def test_paid_charge(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.append(
            httpx.Response(
                200,
                json={
                    "txid": TXID,
                    "status": "CONCLUIDA",
                    "valor": {"original": "150.00"},
                    "pix": [
                        {
                            "endToEndId": "E0000000020261017120000000000001",
                            "txid": TXID,
                            "valor": "150.00",
                            "horario": "2026-10-17T12:05:00.000Z",
                        }
                    ],
                },
            )
        )
        result = fixed_parts.gateway.query_charge(tenant_config, TXID)

        [get] = fixed_parts.bank.api_requests
        assert get.method == "GET"
        assert get.url.path == f"/pix/v2/cob/{TXID}"
        assert "content-type" not in get.headers
        assert result.status is ChargeStatus.PAID
        assert result.received_payments[0]["valor"] == "150.00"

    def test_cancelled_due_date_charge(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.append(
            httpx.Response(200, json={"txid": TXID, "status": "REMOVIDA_PELO_PSP"})
        )
        result = fixed_parts.gateway.query_charge(tenant_config, TXID, ChargeKind.DUE_DATE)
        assert fixed_parts.bank.api_requests[0].url.path == f"/pix/v2/cobv/{TXID}"
        assert result.status is ChargeStatus.CANCELLED

    def test_not_found(self, fixed_parts, tenant_config):
        fixed_parts.bank.api_responses.append(
            httpx.Response(404, json={"title": "Cobrança não encontrada."})
        )
        with pytest.raises(ChargeQueryFailedError) as exc_info:
            fixed_parts.gateway.query_charge(tenant_config, TXID)
        assert "não encontrada" in str(exc_info.value)

    @pytest.mark.parametrize("txid", ["", "   ", "../../oauth", "abc-def"])
    def test_invalid_txid(self, fixed_parts, tenant_config, txid):
        with pytest.raises(InvalidChargeRequestError):
            fixed_parts.gateway.query_charge(tenant_config, txid)
        assert fixed_parts.bank.requests == []


class TestPreconditions:
    def test_missing_certificates_make_no_request(self, fixed_parts, codec, certificate_pair):
        config = make_tenant_config(
            codec, certificate_pair, certificate_b64=None, private_key_b64=None
        )
        with pytest.raises(CertificatesMissingError):
            fixed_parts.gateway.create_immediate_charge(config, immediate_request())
        with pytest.raises(CertificatesMissingError):
            fixed_parts.gateway.query_charge(config, TXID)
        assert fixed_parts.bank.requests == []

    def test_corrupt_certificate(self, fixed_parts, codec, certificate_pair):
        config = make_tenant_config(codec, certificate_pair, certificate_b64="bm90IGEgY2VydA==")
        with pytest.raises(TransportConstructionError):
            fixed_parts.gateway.create_immediate_charge(config, immediate_request())
        assert fixed_parts.bank.requests == []


class TestConnection:
    def test_forces_fresh_token(self, fixed_parts, tenant_config):
        fixed_parts.gateway.test_connection(tenant_config)
        fixed_parts.gateway.test_connection(tenant_config)
        assert len(fixed_parts.bank.token_requests) == 2
        assert fixed_parts.bank.api_requests == []

    def test_invalidate(self, fixed_parts, tenant_config):
        fixed_parts.gateway.test_connection(tenant_config)
        fixed_parts.gateway.invalidate(tenant_config.tenant_id)
        assert fixed_parts.tokens.peek(tenant_config.tenant_id) is None
