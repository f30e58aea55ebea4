from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from taskcadence.config import SETTINGS

Base = declarative_base()


def create_db_engine(url: str) -> Engine:
    options: dict = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database.
            options["poolclass"] = StaticPool
    return create_engine(url, **options)


def create_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False)


engine = create_db_engine(SETTINGS.database_url)
SessionLocal = create_session_factory(engine)


def create_schema(bind: Engine = engine) -> None:
    """Create tables straight from the models; deployments use the Alembic revisions."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind)


def init_db() -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
