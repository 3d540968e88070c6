from sqlalchemy.exc import SQLAlchemyError

from retailhub.core.config import settings
from retailhub.db import admin
from retailhub.db.database import TenantBase
from retailhub.db.tenant_connections import SHARED_KEY, TenantConnection, TenantConnectionCache


class TenantProvisioningError(Exception):
    pass


def dedicated_db_name(tenant_id: int) -> str:
    return admin.validate_db_name(f"{settings.tenant_db_prefix}{tenant_id}")


def initialize_shared_database(connections: TenantConnectionCache) -> TenantConnection:
    try:
        admin.create_database(connections.shared_url)
        connection = connections.get_shared()
        TenantBase.metadata.create_all(connection.engine, checkfirst=True)
    except SQLAlchemyError as exc:
        raise TenantProvisioningError(f"Shared database initialization failed: {exc}") from exc
    return connection


def provision_dedicated_database(connections: TenantConnectionCache, db_name: str) -> TenantConnection:
    try:
        created = admin.create_database(connections.tenant_url(db_name))
        connection = connections.get_dedicated(db_name, provision=False)
        TenantBase.metadata.create_all(connection.engine, checkfirst=True)
    except SQLAlchemyError as exc:
        raise TenantProvisioningError(f"Provisioning failed for {db_name}: {exc}") from exc
    if created:
        print(f"[tenancy] provisioned dedicated database: {db_name}")
    return connection


def drop_dedicated_database(connections: TenantConnectionCache, db_name: str) -> None:
    if db_name == SHARED_KEY:
        raise admin.InvalidDatabaseNameError("The shared database cannot be dropped per tenant")
    connections.dispose(db_name)
    try:
        admin.drop_database(connections.tenant_url(db_name))
    except SQLAlchemyError as exc:
        raise TenantProvisioningError(f"Dropping {db_name} failed: {exc}") from exc
    print(f"[tenancy] dropped dedicated database: {db_name}")
