from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from songcraft.config import settings


class Base(DeclarativeBase):
    pass


def _engine_connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def build_engine(url: str) -> Engine:
    return create_engine(url, future=True, connect_args=_engine_connect_args(url))


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, future=True)


engine = build_engine(settings.STORE_DB_URL)
SessionLocal = build_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    # Importing registers the tables on Base.metadata.
    from songcraft.db import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope(factory: sessionmaker | None = None):
    """Provide a session for store work and always close it."""
    session = (factory or SessionLocal)()
    try:
        yield session
    finally:
        session.close()
