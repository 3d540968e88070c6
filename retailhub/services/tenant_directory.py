from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retailhub.core.config import settings
from retailhub.core.security import hash_password
from retailhub.db.tenant_connections import TenantConnectionCache
from retailhub.models.tenant import BusinessCategory, BusinessType, SubscriptionPlan, Tenant, TenantStatus
from retailhub.models.user import User, UserRole
from retailhub.services.licensing import validate_and_use_license_key
from retailhub.services.provisioning import (
    dedicated_db_name,
    initialize_shared_database,
    provision_dedicated_database,
)


class TenantDirectoryError(Exception):
    pass


class TenantConflictError(TenantDirectoryError):
    pass


class TenantNotFoundError(TenantDirectoryError):
    pass


def get_tenant_by_id(db: Session, tenant_id: int) -> Tenant | None:
    return db.get(Tenant, tenant_id)


def get_tenant_by_subdomain(db: Session, subdomain: str) -> Tenant | None:
    return db.scalar(select(Tenant).where(func.lower(Tenant.subdomain) == subdomain.strip().lower()))


def get_tenant_by_user_email(db: Session, email: str) -> Tenant | None:
    user = db.scalar(select(User).where(func.lower(User.email) == email.strip().lower()))
    if not user or user.is_platform_admin or user.role == UserRole.PLATFORM_ADMIN:
        return None
    if user.tenant_id is None:
        return None
    return db.get(Tenant, user.tenant_id)


def _ensure_available(db: Session, subdomain: str, admin_email: str) -> None:
    if get_tenant_by_subdomain(db, subdomain):
        raise TenantConflictError("Subdomain already exists")
    if db.scalar(select(User.id).where(func.lower(User.email) == admin_email.lower())):
        raise TenantConflictError("Email already registered")


def _create_admin_user(db: Session, tenant: Tenant, admin_email: str, admin_password: str) -> User:
    user = User(
        tenant_id=tenant.id,
        email=admin_email.lower(),
        password_hash=hash_password(admin_password),
        role=UserRole.ADMIN,
        is_platform_admin=False,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise TenantConflictError("Email already registered") from exc
    return user


def _create_tenant(db: Session, **fields) -> Tenant:
    tenant = Tenant(status=TenantStatus.ACTIVE, **fields)
    db.add(tenant)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise TenantConflictError("Subdomain already exists") from exc
    return tenant


def register_free_tenant(
    db: Session,
    connections: TenantConnectionCache,
    *,
    name: str,
    subdomain: str,
    admin_email: str,
    admin_password: str,
    country: str | None = "Nigeria",
    business_type: BusinessType = BusinessType.COMPANY,
    business_category: BusinessCategory = BusinessCategory.SMALL_BUSINESS,
) -> tuple[Tenant, User]:
    subdomain = subdomain.strip().lower()
    _ensure_available(db, subdomain, admin_email)

    tenant = _create_tenant(
        db,
        name=name.strip(),
        subdomain=subdomain,
        db_name=None,
        email=admin_email.lower(),
        country=country,
        business_type=business_type,
        business_category=business_category,
        subscription_plan=SubscriptionPlan.FREE,
        transaction_fee_percentage=settings.free_transaction_fee_percentage,
    )
    user = _create_admin_user(db, tenant, admin_email, admin_password)

    initialize_shared_database(connections)
    db.commit()
    db.refresh(tenant)
    return tenant, user


def register_enterprise_tenant(
    db: Session,
    connections: TenantConnectionCache,
    *,
    name: str,
    subdomain: str,
    admin_email: str,
    admin_password: str,
    license_key: str,
    country: str | None = "Nigeria",
    business_type: BusinessType = BusinessType.COMPANY,
    business_category: BusinessCategory = BusinessCategory.SMALL_BUSINESS,
) -> tuple[Tenant, User]:
    subdomain = subdomain.strip().lower()
    _ensure_available(db, subdomain, admin_email)

    try:
        license_row = validate_and_use_license_key(db, license_key, admin_email.lower())
        tenant = _create_tenant(
            db,
            name=name.strip(),
            subdomain=subdomain,
            email=admin_email.lower(),
            country=country,
            business_type=business_type,
            business_category=business_category,
            subscription_plan=SubscriptionPlan.ENTERPRISE,
            transaction_fee_percentage=Decimal("0.00"),
        )
        tenant.db_name = dedicated_db_name(tenant.id)
        license_row.tenant_id = tenant.id
        user = _create_admin_user(db, tenant, admin_email, admin_password)
        provision_dedicated_database(connections, tenant.db_name)
    except Exception:
        db.rollback()
        raise

    db.commit()
    db.refresh(tenant)
    return tenant, user


def set_tenant_status(db: Session, tenant: Tenant, status: TenantStatus) -> Tenant:
    tenant.status = status
    db.commit()
    db.refresh(tenant)
    return tenant


def list_tenants(
    db: Session,
    *,
    plan: SubscriptionPlan | None = None,
    status: TenantStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Tenant], int]:
    query = select(Tenant)
    count_query = select(func.count(Tenant.id))
    if plan is not None:
        query = query.where(Tenant.subscription_plan == plan)
        count_query = count_query.where(Tenant.subscription_plan == plan)
    if status is not None:
        query = query.where(Tenant.status == status)
        count_query = count_query.where(Tenant.status == status)
    rows = db.scalars(query.order_by(Tenant.created_at.desc(), Tenant.id.desc()).limit(limit).offset(offset)).all()
    return list(rows), db.scalar(count_query) or 0
