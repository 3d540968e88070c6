"""Physical database management for dedicated tenant databases.

Creating and dropping a database cannot run inside a transaction on
PostgreSQL, so these helpers connect to the server's maintenance database
with AUTOCOMMIT. SQLite databases are plain files and are created on first
connect.
"""

import re
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, make_url

DB_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


class InvalidDatabaseNameError(ValueError):
    pass


def validate_db_name(db_name: str) -> str:
    if not db_name or not DB_NAME_PATTERN.match(db_name):
        raise InvalidDatabaseNameError(f"Invalid tenant database name: {db_name!r}")
    return db_name


def build_tenant_url(template: str, db_name: str) -> str:
    return template.replace("{db_name}", validate_db_name(db_name))


def _sqlite_path(url: URL) -> Path | None:
    if not url.database or url.database == ":memory:":
        return None
    return Path(url.database)


def _server_admin_url(url: URL) -> URL:
    backend = url.get_backend_name()
    if backend == "postgresql":
        return url.set(database="postgres")
    if backend in {"mysql", "mariadb"}:
        return url.set(database=None)
    raise ValueError(f"Unsupported database backend: {backend}")


def database_exists(database_url: str) -> bool:
    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        path = _sqlite_path(url)
        return path is None or path.exists()

    admin_engine = create_engine(_server_admin_url(url), isolation_level="AUTOCOMMIT")
    try:
        with admin_engine.connect() as conn:
            if backend == "postgresql":
                query = text("SELECT 1 FROM pg_database WHERE datname = :name")
            else:
                query = text("SELECT 1 FROM information_schema.schemata WHERE schema_name = :name")
            return conn.scalar(query, {"name": url.database}) is not None
    finally:
        admin_engine.dispose()


def create_database(database_url: str) -> bool:
    """Create the database behind ``database_url``. Returns False if it already existed."""
    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        path = _sqlite_path(url)
        if path is None or path.exists():
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        return True

    db_name = validate_db_name(url.database or "")
    if database_exists(database_url):
        return False

    admin_engine = create_engine(_server_admin_url(url), isolation_level="AUTOCOMMIT")
    try:
        with admin_engine.connect() as conn:
            if backend == "postgresql":
                conn.execute(text(f'CREATE DATABASE "{db_name}" ENCODING \'UTF8\''))
            else:
                conn.execute(
                    text(
                        f"CREATE DATABASE IF NOT EXISTS `{db_name}` "
                        "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                    )
                )
    finally:
        admin_engine.dispose()
    return True


def drop_database(database_url: str) -> None:
    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        path = _sqlite_path(url)
        if path is not None and path.exists():
            path.unlink()
        return

    db_name = validate_db_name(url.database or "")
    admin_engine = create_engine(_server_admin_url(url), isolation_level="AUTOCOMMIT")
    try:
        with admin_engine.connect() as conn:
            if backend == "postgresql":
                conn.execute(text(f'DROP DATABASE IF EXISTS "{db_name}"'))
            else:
                conn.execute(text(f"DROP DATABASE IF EXISTS `{db_name}`"))
    finally:
        admin_engine.dispose()
