from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings

settings = get_settings()

IN_MEMORY_SQLITE_URLS = {"sqlite://", "sqlite:///:memory:", "sqlite+pysqlite://"}


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_SQLITE_URLS:
            # One shared connection, otherwise every thread sees its own empty database.
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_recycle": settings.db_pool_recycle_seconds,
        "pool_pre_ping": True,
        # psycopg caches server-side prepared statements after this many executions
        "connect_args": {"prepare_threshold": 5},
    }


engine = create_engine(settings.sqlalchemy_url, **_engine_options(settings.sqlalchemy_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
