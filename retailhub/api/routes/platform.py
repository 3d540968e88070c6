import math

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailhub.api.deps import require_platform_admin
from retailhub.api.routes.auth import log_audit
from retailhub.db.database import get_db
from retailhub.db.tenant_connections import TenantConnectionCache, get_tenant_connections
from retailhub.models.tenant import LicenseKey, LicenseStatus, SubscriptionPlan, Tenant, TenantStatus
from retailhub.models.user import User
from retailhub.schemas.tenant import (
    LicenseKeyCreate,
    LicenseKeyOut,
    LicenseKeyPage,
    LicenseStatusUpdate,
    TenantOut,
    TenantPage,
    TenantStatusUpdate,
    UpgradeRequest,
    UpgradeResponse,
)
from retailhub.services.email_service import build_upgrade_message, send_notification
from retailhub.services.licensing import LicenseValidationError, create_license_keys, update_license_status
from retailhub.services.migration import (
    MigrationAbortedError,
    TenantMigrationError,
    migrate_tenant_to_enterprise,
)
from retailhub.services.provisioning import TenantProvisioningError
from retailhub.services.tenant_directory import TenantNotFoundError, list_tenants, set_tenant_status

router = APIRouter(prefix="/platform", tags=["Platform"])


@router.post("/licenses", response_model=list[LicenseKeyOut], status_code=status.HTTP_201_CREATED)
def generate_licenses(
    payload: LicenseKeyCreate,
    request: Request,
    current_user: User = Depends(require_platform_admin),
    db: Session = Depends(get_db),
):
    licenses = create_license_keys(
        db,
        payload.quantity,
        expires_at=payload.expires_at,
        purchased_by=payload.purchased_by,
        purchased_email=payload.purchased_email,
    )
    log_audit(
        db,
        "licenses.generated",
        actor_user_id=current_user.id,
        request=request,
        details={"count": len(licenses)},
    )
    db.commit()
    for license_key in licenses:
        db.refresh(license_key)
    return licenses


@router.get("/licenses", response_model=LicenseKeyPage)
def list_licenses(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    status_filter: LicenseStatus | None = Query(default=None, alias="status"),
    _: User = Depends(require_platform_admin),
    db: Session = Depends(get_db),
):
    query = select(LicenseKey)
    count_query = select(func.count(LicenseKey.id))
    if status_filter is not None:
        query = query.where(LicenseKey.status == status_filter)
        count_query = count_query.where(LicenseKey.status == status_filter)
    total = db.scalar(count_query) or 0
    rows = db.scalars(
        query.order_by(LicenseKey.created_at.desc(), LicenseKey.id.desc()).limit(limit).offset((page - 1) * limit)
    ).all()
    return LicenseKeyPage(
        items=[LicenseKeyOut.model_validate(row) for row in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.patch("/licenses/{license_id}", response_model=LicenseKeyOut)
def update_license(
    license_id: int,
    payload: LicenseStatusUpdate,
    _: User = Depends(require_platform_admin),
    db: Session = Depends(get_db),
):
    license_key = db.get(LicenseKey, license_id)
    if not license_key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="License key not found")
    try:
        update_license_status(db, license_key, payload.status)
    except LicenseValidationError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    db.refresh(license_key)
    return license_key


@router.get("/tenants", response_model=TenantPage)
def get_tenants(
    plan: SubscriptionPlan | None = None,
    status_filter: TenantStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _: User = Depends(require_platform_admin),
    db: Session = Depends(get_db),
):
    tenants, total = list_tenants(db, plan=plan, status=status_filter, limit=limit, offset=offset)
    return TenantPage(items=[TenantOut.model_validate(t) for t in tenants], total=total, limit=limit, offset=offset)


@router.patch("/tenants/{tenant_id}/status", response_model=TenantOut)
def change_tenant_status(
    tenant_id: int,
    payload: TenantStatusUpdate,
    request: Request,
    current_user: User = Depends(require_platform_admin),
    db: Session = Depends(get_db),
):
    tenant = db.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    log_audit(
        db,
        "tenants.status_changed",
        actor_user_id=current_user.id,
        tenant_id=tenant.id,
        request=request,
        details={"from": tenant.status.value, "to": payload.status.value},
    )
    return set_tenant_status(db, tenant, payload.status)


@router.post("/tenants/{tenant_id}/upgrade", response_model=UpgradeResponse)
def upgrade_tenant(
    tenant_id: int,
    payload: UpgradeRequest,
    current_user: User = Depends(require_platform_admin),
    db: Session = Depends(get_db),
    connections: TenantConnectionCache = Depends(get_tenant_connections),
):
    try:
        report = migrate_tenant_to_enterprise(
            db,
            connections,
            tenant_id,
            payload.license_key,
            actor_user_id=current_user.id,
            purge_shared=payload.purge_shared_rows,
        )
    except TenantNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except LicenseValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except MigrationAbortedError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upgrade tenant",
        ) from exc
    except TenantMigrationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TenantProvisioningError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to upgrade tenant") from exc

    tenant = db.get(Tenant, tenant_id)
    send_notification(tenant.email, build_upgrade_message(tenant.name))
    return UpgradeResponse(
        tenant=TenantOut.model_validate(tenant),
        db_name=report.db_name,
        migrated_rows=report.row_counts,
        purged_shared_rows=report.purged_shared_rows,
        stranded_rows=report.stranded_rows,
    )
