from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from workorder_engine.core.config import settings


def build_engine(database_url: str | None = None, echo: bool | None = None) -> Engine:
    url = database_url or settings.DATABASE_URL
    engine_kwargs: dict = {"echo": settings.SQL_ECHO if echo is None else echo}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update(pool_pre_ping=True, pool_recycle=3600)
    return create_engine(url, **engine_kwargs)


engine = build_engine()


def init_db(target: Engine | None = None) -> None:
    # make sure all SQLModel tables are registered before create_all
    from workorder_engine.infrastructure.database import models  # noqa: F401

    SQLModel.metadata.create_all(target or engine)


def session_factory(target: Engine | None = None):
    bound = target or engine

    def _factory() -> Session:
        return Session(bound, expire_on_commit=False)

    return _factory
