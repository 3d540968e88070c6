from collections.abc import Iterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from retailhub.core.security import decode_token
from retailhub.db.database import get_db
from retailhub.db.tenant_connections import TenantConnectionCache, get_tenant_connections
from retailhub.models.tenant import SubscriptionPlan, Tenant, TenantStatus
from retailhub.models.user import User, UserRole
from retailhub.services.provisioning import TenantProvisioningError
from retailhub.services.tenant_directory import get_tenant_by_subdomain
from retailhub.services.tenant_router import (
    PlanRequiredError,
    TenantScope,
    extract_subdomain,
    resolve_tenant_database,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def _clean_candidate(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().strip("\"'").strip()
    while cleaned.lower().startswith("bearer "):
        cleaned = cleaned[7:].strip()
    return cleaned or None


def is_platform_admin(user: User) -> bool:
    return user.is_platform_admin or user.role == UserRole.PLATFORM_ADMIN


def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    raw_token = _clean_candidate(token) or _clean_candidate(request.headers.get("x-access-token"))
    if not raw_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_token(raw_token)
    except ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except JWTError as exc:
        raise credentials_exception from exc

    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise credentials_exception
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if not user:
        raise credentials_exception
    if is_platform_admin(user):
        return user

    if user.tenant_id is None or payload.get("tid") != user.tenant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token: tenant required")
    tenant = db.get(Tenant, user.tenant_id)
    if not tenant or tenant.status != TenantStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or inactive tenant")
    return user


def get_current_tenant(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Tenant:
    if current_user.tenant_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tenant account required")
    tenant = db.get(Tenant, current_user.tenant_id)
    if not tenant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return tenant


def require_platform_admin(current_user: User = Depends(get_current_user)) -> User:
    if not is_platform_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Platform admin role required")
    return current_user


def require_roles(*roles: UserRole):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles and not is_platform_admin(current_user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return checker


def plan_required_exception(exc: PlanRequiredError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "message": str(exc),
            "upgrade_required": True,
            "current_plan": exc.current_plan.value,
            "required_plan": exc.required_plan.value,
        },
    )


def require_plan(required_plan: SubscriptionPlan, message: str | None = None):
    def checker(tenant: Tenant = Depends(get_current_tenant)) -> Tenant:
        if tenant.subscription_plan != required_plan:
            raise plan_required_exception(PlanRequiredError(tenant.subscription_plan, required_plan, message))
        return tenant

    return checker


def _open_scope(tenant: Tenant, connections: TenantConnectionCache) -> Iterator[TenantScope]:
    try:
        database = resolve_tenant_database(tenant, connections)
    except (TenantProvisioningError, SQLAlchemyError) as exc:
        print(f"[tenancy] routing failed for tenant {tenant.id}: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database connection error") from exc

    session = database.session()
    try:
        yield TenantScope(session, database)
    finally:
        session.close()


SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def get_tenant_scope(
    request: Request,
    tenant: Tenant = Depends(get_current_tenant),
    connections: TenantConnectionCache = Depends(get_tenant_connections),
) -> Iterator[TenantScope]:
    if tenant.is_migrating and request.method not in SAFE_METHODS:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Tenant migration in progress, try again shortly",
        )
    yield from _open_scope(tenant, connections)


def get_subdomain_tenant(request: Request, db: Session = Depends(get_db)) -> Tenant:
    subdomain = extract_subdomain(request.headers.get("host"), request.headers.get("x-subdomain"))
    if not subdomain:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")
    tenant = get_tenant_by_subdomain(db, subdomain)
    if not tenant or tenant.status != TenantStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")
    return tenant


def get_public_tenant_scope(
    tenant: Tenant = Depends(get_subdomain_tenant),
    connections: TenantConnectionCache = Depends(get_tenant_connections),
) -> Iterator[TenantScope]:
    yield from _open_scope(tenant, connections)
