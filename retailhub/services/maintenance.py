from sqlalchemy.orm import Session

from retailhub.core.config import settings
from retailhub.db.tenant_connections import TenantConnectionCache
from retailhub.services.licensing import expire_stale_license_keys


def run_maintenance(db: Session, connections: TenantConnectionCache) -> dict[str, int]:
    expired = expire_stale_license_keys(db)
    evicted = connections.evict_idle(settings.tenant_connection_idle_minutes * 60)
    return {"expired_license_keys": expired, "evicted_connections": len(evicted)}
