from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from maintenance.config import load_settings

Base = declarative_base()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine(load_settings().database_url, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def init_db(engine: Engine | None = None) -> None:
    engine = engine or get_engine()
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
