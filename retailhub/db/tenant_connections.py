"""Process-wide cache of tenant database engines.

Free tenants share one database (key ``shared_free``); every enterprise
tenant gets its own database keyed by its database name. Engines are built
on first use and reused by every later request until disposed or evicted.
"""

import threading
import time
from dataclasses import dataclass, field

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from retailhub.core.config import Settings, settings
from retailhub.db import admin
from retailhub.db.database import TenantBase, engine_options
from retailhub.models import catalog  # noqa: F401  registers tenant tables on TenantBase.metadata

SHARED_KEY = "shared_free"


@dataclass
class TenantConnection:
    key: str
    url: str
    engine: Engine
    session_factory: sessionmaker
    is_shared: bool
    last_used_at: float = field(default_factory=time.monotonic)

    def session(self) -> Session:
        self.last_used_at = time.monotonic()
        return self.session_factory()


class TenantConnectionCache:
    def __init__(
        self,
        shared_url: str,
        tenant_url_template: str,
        *,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        auto_provision: bool = True,
    ) -> None:
        self.shared_url = shared_url
        self.tenant_url_template = tenant_url_template
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.auto_provision = auto_provision
        self._connections: dict[str, TenantConnection] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, config: Settings) -> "TenantConnectionCache":
        return cls(
            shared_url=config.shared_database_url,
            tenant_url_template=config.tenant_database_url_template,
            pool_size=config.tenant_pool_size,
            max_overflow=config.tenant_pool_max_overflow,
            auto_provision=config.tenant_auto_provision,
        )

    def tenant_url(self, db_name: str) -> str:
        return admin.build_tenant_url(self.tenant_url_template, db_name)

    def _build(self, key: str, url: str, is_shared: bool) -> TenantConnection:
        if url.startswith("sqlite"):
            options = engine_options(url)
        else:
            options = engine_options(url, pool_size=self.pool_size, max_overflow=self.max_overflow)
        engine = create_engine(url, **options)
        return TenantConnection(
            key=key,
            url=url,
            engine=engine,
            session_factory=sessionmaker(bind=engine, autoflush=False, autocommit=False),
            is_shared=is_shared,
        )

    def _get_or_create(self, key: str, url: str, is_shared: bool, provision: bool) -> TenantConnection:
        with self._lock:
            connection = self._connections.get(key)
            if connection is not None:
                connection.last_used_at = time.monotonic()
                return connection
            if provision:
                admin.create_database(url)
            connection = self._build(key, url, is_shared)
            if provision:
                try:
                    TenantBase.metadata.create_all(connection.engine, checkfirst=True)
                except SQLAlchemyError:
                    connection.engine.dispose()
                    raise
            self._connections[key] = connection
            print(f"[tenancy] opened connection pool: {key}")
            return connection

    def get_shared(self) -> TenantConnection:
        return self._get_or_create(SHARED_KEY, self.shared_url, True, self.auto_provision)

    def get_dedicated(self, db_name: str, *, provision: bool | None = None) -> TenantConnection:
        admin.validate_db_name(db_name)
        if db_name == SHARED_KEY:
            raise admin.InvalidDatabaseNameError(f"Reserved tenant database name: {db_name!r}")
        should_provision = self.auto_provision if provision is None else provision
        return self._get_or_create(db_name, self.tenant_url(db_name), False, should_provision)

    def has(self, key: str) -> bool:
        return key in self._connections

    def keys(self) -> list[str]:
        return list(self._connections)

    def dispose(self, key: str) -> bool:
        with self._lock:
            connection = self._connections.pop(key, None)
        if connection is None:
            return False
        connection.engine.dispose()
        print(f"[tenancy] closed connection pool: {key}")
        return True

    def dispose_all(self) -> None:
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            connection.engine.dispose()

    def evict_idle(self, max_idle_seconds: float) -> list[str]:
        cutoff = time.monotonic() - max_idle_seconds
        with self._lock:
            stale = [
                connection
                for connection in self._connections.values()
                if not connection.is_shared and connection.last_used_at < cutoff
            ]
            for connection in stale:
                del self._connections[connection.key]
        for connection in stale:
            connection.engine.dispose()
            print(f"[tenancy] closed idle connection pool: {connection.key}")
        return [connection.key for connection in stale]


tenant_connections = TenantConnectionCache.from_settings(settings)


def get_tenant_connections() -> TenantConnectionCache:
    return tenant_connections
