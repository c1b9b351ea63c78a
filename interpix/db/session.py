"""Engine e sessão SQLModel (síncronas; rotas FastAPI rodam em threadpool)."""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from interpix.db import models  # noqa: F401  (registra as tabelas no metadata)

_engine = None


def get_database_url() -> str:
    url = (os.getenv("DATABASE_URL") or os.getenv("SQLITE_PATH") or "").strip()
    if not url:
        url = "sqlite:///./data/interpix.db"
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url.replace("sqlite:///", "").split("?")[0]).parent.mkdir(parents=True, exist_ok=True)
    return url


def get_engine():
    global _engine
    if _engine is None:
        _engine = make_engine(get_database_url())
    return _engine


def make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
        # Banco em memória compartilhado entre threads (testes)
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, connect_args={"check_same_thread": False})


def set_engine(engine) -> None:
    """Troca o engine global (testes ou configuração explícita)."""
    global _engine
    _engine = engine


@contextmanager
def get_session(engine=None) -> Generator[Session, None, None]:
    with Session(engine or get_engine()) as session:
        yield session


def create_all_tables(engine: Optional[object] = None) -> None:
    SQLModel.metadata.create_all(engine or get_engine())
