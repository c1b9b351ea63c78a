"""Dependências FastAPI: instância do serviço de cobranças por requisição."""

from interpix.payments.service import ChargeService


def get_charge_service() -> ChargeService:
    return ChargeService()
