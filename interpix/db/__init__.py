"""Camada de persistência (SQLModel): configuração bancária e cobranças."""

from interpix.db.models import BankConfig, Charge
from interpix.db.session import create_all_tables, get_engine, get_session, make_engine, set_engine

__all__ = [
    "BankConfig",
    "Charge",
    "create_all_tables",
    "get_engine",
    "get_session",
    "make_engine",
    "set_engine",
]
