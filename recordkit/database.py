from __future__ import annotations

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from recordkit.config import get_settings
from recordkit.models.base import RecordMixin

Base = declarative_base(cls=RecordMixin)

settings = get_settings()


def create_engine_for(url: str, *, echo: bool = False) -> Engine:
    engine_kwargs: dict[str, object] = {"echo": echo}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine_kwargs["poolclass"] = StaticPool
    return create_engine(url, **engine_kwargs)


engine = create_engine_for(settings.database_url, echo=settings.sql_echo)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
