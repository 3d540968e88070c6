"""Per-request tenant database routing.

Free tenants are served from the shared database with every query filtered
by ``tenant_id``; enterprise tenants are served from their own database where
``tenant_id`` is left NULL. The decision is made from the tenant record on
each request so a plan change takes effect immediately.
"""

from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from retailhub.db.tenant_connections import TenantConnection, TenantConnectionCache
from retailhub.models.catalog import TenantOwned
from retailhub.models.tenant import SubscriptionPlan, Tenant
from retailhub.services.provisioning import dedicated_db_name

ModelT = TypeVar("ModelT", bound=TenantOwned)

RESERVED_SUBDOMAINS = frozenset({"www", "api", "admin", "app", "mail", "ftp", "cpanel"})


class PlanRequiredError(Exception):
    def __init__(self, current_plan: SubscriptionPlan, required_plan: SubscriptionPlan, message: str | None = None):
        self.current_plan = current_plan
        self.required_plan = required_plan
        super().__init__(
            message
            or f"This feature is only available for {required_plan.value} users. Please upgrade your plan."
        )


@dataclass(frozen=True)
class TenantDatabase:
    tenant_id: int
    plan: SubscriptionPlan
    connection: TenantConnection

    @property
    def is_shared(self) -> bool:
        return self.connection.is_shared

    @property
    def row_tenant_id(self) -> int | None:
        return self.tenant_id if self.is_shared else None

    def session(self) -> Session:
        return self.connection.session()


def resolve_tenant_database(tenant: Tenant, connections: TenantConnectionCache) -> TenantDatabase:
    if tenant.subscription_plan == SubscriptionPlan.FREE:
        connection = connections.get_shared()
    else:
        connection = connections.get_dedicated(tenant.db_name or dedicated_db_name(tenant.id))
    return TenantDatabase(tenant_id=tenant.id, plan=tenant.subscription_plan, connection=connection)


class TenantScope:
    """Applies one tenant's row semantics to a session on its routed database."""

    def __init__(self, session: Session, database: TenantDatabase) -> None:
        self.session = session
        self.database = database

    @property
    def tenant_id(self) -> int:
        return self.database.tenant_id

    @property
    def plan(self) -> SubscriptionPlan:
        return self.database.plan

    def filter(self, query: Select, model: type[ModelT]) -> Select:
        if self.database.is_shared:
            return query.where(model.tenant_id == self.database.tenant_id)
        return query

    def select(self, model: type[ModelT]) -> Select:
        return self.filter(select(model), model)

    def get(self, model: type[ModelT], pk: int) -> ModelT | None:
        obj = self.session.get(model, pk)
        if obj is None:
            return None
        if obj.tenant_id != self.database.row_tenant_id:
            return None
        return obj

    def add(self, obj: ModelT) -> ModelT:
        obj.tenant_id = self.database.row_tenant_id
        self.session.add(obj)
        return obj

    def require_plan(self, required_plan: SubscriptionPlan, message: str | None = None) -> None:
        if self.plan != required_plan:
            raise PlanRequiredError(self.plan, required_plan, message)


def extract_subdomain(host: str | None, header_value: str | None = None) -> str | None:
    subdomain = (header_value or "").strip()
    if not subdomain and host:
        hostname = host.split(":", 1)[0].strip().lower()
        parts = hostname.split(".")
        if len(parts) > 2:
            subdomain = parts[0]
    if not subdomain or subdomain.lower() in RESERVED_SUBDOMAINS:
        return None
    return subdomain.lower()
