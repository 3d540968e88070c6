from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from retailhub.core.config import settings


class Base(DeclarativeBase):
    """Control-plane tables: tenants, users, license keys."""


class TenantBase(DeclarativeBase):
    """Tables owned by a tenant, created in the shared and in every dedicated database."""


def engine_options(database_url: str, pool_size: int | None = None, max_overflow: int | None = None) -> dict:
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        return {"connect_args": {"check_same_thread": False}}

    options: dict = {
        "connect_args": {"sslmode": settings.database_sslmode} if database_url.startswith("postgresql") else {},
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }
    if pool_size is not None:
        options["pool_size"] = pool_size
    if max_overflow is not None:
        options["max_overflow"] = max_overflow
    return options


engine = create_engine(settings.database_url, **engine_options(settings.database_url))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
