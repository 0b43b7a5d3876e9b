# storechat/db.py
from __future__ import annotations

from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kw: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    # one shared connection, otherwise every session gets its own empty :memory: db
    if url in {"sqlite://", "sqlite:///:memory:"}:
        kw["poolclass"] = StaticPool
    return kw


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
