"""Free to enterprise upgrade.

The tenant's rows are copied from the shared database into a new dedicated
database inside a single transaction on the target, and only then is the
tenant's routing metadata flipped in the control plane. Until that commit
the tenant keeps being served from the shared database, so a failed upgrade
leaves it exactly as it was (license still active, plan still free).
While the copy runs the tenant is marked as migrating and its write
requests are refused; only the copied rows are ever purged from the shared
database.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import Connection, Integer, Table, delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from retailhub.core.config import settings
from retailhub.db.database import TenantBase
from retailhub.db.tenant_connections import TenantConnectionCache
from retailhub.models.security import AuditLog
from retailhub.models.tenant import SubscriptionPlan, Tenant
from retailhub.services.licensing import validate_and_use_license_key
from retailhub.services.provisioning import dedicated_db_name, provision_dedicated_database
from retailhub.services.tenant_directory import TenantNotFoundError


class TenantMigrationError(Exception):
    pass


class MigrationAbortedError(TenantMigrationError):
    pass


@dataclass
class MigrationReport:
    tenant_id: int
    db_name: str
    copied_ids: dict[str, list[int]] = field(default_factory=dict)
    purged_shared_rows: bool = False
    stranded_rows: int = 0

    @property
    def row_counts(self) -> dict[str, int]:
        return {name: len(ids) for name, ids in self.copied_ids.items()}

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())


def tenant_tables() -> list[Table]:
    """Tenant tables in foreign-key dependency order (parents first)."""
    return [table for table in TenantBase.metadata.sorted_tables if "tenant_id" in table.c]


def _batched(rows: list, size: int):
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def _reset_postgres_sequences(target: Connection, table: Table) -> None:
    for column in table.primary_key.columns:
        if not isinstance(column.type, Integer):
            continue
        max_id = target.scalar(select(func.max(column)))
        if max_id is None:
            continue
        target.execute(
            text("SELECT setval(pg_get_serial_sequence(:table_name, :column_name), :value)"),
            {"table_name": table.name, "column_name": column.name, "value": max_id},
        )


def copy_tenant_rows(source: Connection, target: Connection, tenant_id: int, batch_size: int) -> dict[str, list[int]]:
    """Copy one tenant's rows from the shared schema into a dedicated schema.

    Rows already present in the target are removed first so an interrupted
    upgrade can simply be retried. Primary keys are preserved, which keeps
    every foreign key valid without remapping. Returns the copied primary
    keys per table.
    """
    tables = tenant_tables()
    for table in reversed(tables):
        target.execute(delete(table))

    copied: dict[str, list[int]] = {}
    for table in tables:
        rows = source.execute(select(table).where(table.c.tenant_id == tenant_id)).mappings().all()
        payload = [{**row, "tenant_id": None} for row in rows]
        for chunk in _batched(payload, batch_size):
            target.execute(table.insert(), chunk)
        if payload and target.dialect.name == "postgresql":
            _reset_postgres_sequences(target, table)
        copied[table.name] = [row["id"] for row in payload]
    return copied


def purge_shared_rows(source: Connection, tenant_id: int, copied_ids: dict[str, list[int]], batch_size: int) -> int:
    """Delete the tenant's shared rows that were copied, children first."""
    deleted = 0
    for table in reversed(tenant_tables()):
        ids = copied_ids.get(table.name, [])
        for chunk in _batched(ids, batch_size):
            result = source.execute(delete(table).where(table.c.tenant_id == tenant_id, table.c.id.in_(chunk)))
            deleted += result.rowcount or 0
    return deleted


def count_stranded_rows(source: Connection, tenant_id: int, copied_ids: dict[str, list[int]], batch_size: int) -> int:
    """Shared rows of the tenant that were not part of the copy."""
    stranded = 0
    for table in tenant_tables():
        owned = table.c.tenant_id == tenant_id
        total = source.scalar(select(func.count()).select_from(table).where(owned)) or 0
        copied = 0
        for chunk in _batched(copied_ids.get(table.name, []), batch_size):
            copied += source.scalar(select(func.count()).select_from(table).where(owned, table.c.id.in_(chunk))) or 0
        stranded += total - copied
    return stranded


def _release_fence(db: Session, tenant_id: int) -> None:
    db.rollback()
    try:
        tenant = db.get(Tenant, tenant_id)
        if tenant is not None and tenant.is_migrating:
            tenant.is_migrating = False
            db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"[migration] tenant {tenant_id} is still marked as migrating: {exc}")


def migrate_tenant_to_enterprise(
    db: Session,
    connections: TenantConnectionCache,
    tenant_id: int,
    license_key: str,
    *,
    actor_user_id: int | None = None,
    purge_shared: bool | None = None,
) -> MigrationReport:
    tenant = db.scalar(
        select(Tenant).where(Tenant.id == tenant_id).with_for_update().execution_options(populate_existing=True)
    )
    if not tenant:
        raise TenantNotFoundError("Tenant not found")
    if tenant.subscription_plan == SubscriptionPlan.ENTERPRISE:
        raise TenantMigrationError("Tenant is already on enterprise plan")
    if tenant.is_migrating:
        raise TenantMigrationError("Tenant migration already in progress")

    # Committed before the copy so tenant write requests see it.
    tenant.is_migrating = True
    db.commit()

    db_name = dedicated_db_name(tenant.id)
    report = MigrationReport(tenant_id=tenant.id, db_name=db_name)

    try:
        license_row = validate_and_use_license_key(db, license_key, tenant.email)

        shared = connections.get_shared()
        dedicated = provision_dedicated_database(connections, db_name)
        with shared.engine.connect() as source, dedicated.engine.begin() as target:
            report.copied_ids = copy_tenant_rows(source, target, tenant.id, settings.migration_batch_size)

        tenant.subscription_plan = SubscriptionPlan.ENTERPRISE
        tenant.transaction_fee_percentage = Decimal("0.00")
        tenant.db_name = db_name
        tenant.is_migrating = False
        license_row.tenant_id = tenant.id
        db.add(
            AuditLog(
                event_type="tenants.upgraded",
                tenant_id=tenant.id,
                actor_user_id=actor_user_id,
                details=json.dumps({"db_name": db_name, "rows": report.row_counts}),
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        _release_fence(db, tenant_id)
        print(f"[migration] tenant {tenant_id} failed: {exc}")
        raise MigrationAbortedError(f"Migration failed for tenant {tenant_id}") from exc
    except Exception:
        _release_fence(db, tenant_id)
        raise

    should_purge = settings.migration_purge_shared_rows if purge_shared is None else purge_shared
    try:
        with connections.get_shared().engine.begin() as source:
            report.stranded_rows = count_stranded_rows(
                source, tenant.id, report.copied_ids, settings.migration_batch_size
            )
            if should_purge:
                purge_shared_rows(source, tenant.id, report.copied_ids, settings.migration_batch_size)
                report.purged_shared_rows = True
    except SQLAlchemyError as exc:
        report.purged_shared_rows = False
        print(f"[migration] tenant {tenant.id} purge failed: {exc}")

    if report.stranded_rows:
        print(f"[migration] tenant {tenant.id}: {report.stranded_rows} shared row(s) written during the copy were left behind")
    print(f"[migration] tenant {tenant.id} moved to {db_name}: {report.total_rows} row(s)")
    return report
