from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from retailhub.api.deps import get_current_tenant
from retailhub.api.routes.auth import log_audit
from retailhub.db.database import get_db
from retailhub.db.tenant_connections import TenantConnectionCache, get_tenant_connections
from retailhub.models.tenant import Tenant
from retailhub.schemas.tenant import (
    EnterpriseTenantRegistration,
    FreeTenantRegistration,
    TenantOut,
    TenantRegistrationResponse,
)
from retailhub.services.email_service import build_welcome_message, send_notification
from retailhub.services.licensing import LicenseValidationError
from retailhub.services.provisioning import TenantProvisioningError
from retailhub.services.tenant_directory import (
    TenantConflictError,
    register_enterprise_tenant,
    register_free_tenant,
)

router = APIRouter(prefix="/tenants", tags=["Tenants"])


def _registration_response(tenant: Tenant, admin_user_id: int, message: str) -> TenantRegistrationResponse:
    return TenantRegistrationResponse(
        tenant_id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        subscription_plan=tenant.subscription_plan,
        admin_user_id=admin_user_id,
        message=message,
    )


@router.post("/free", response_model=TenantRegistrationResponse, status_code=status.HTTP_201_CREATED)
def register_free(
    payload: FreeTenantRegistration,
    request: Request,
    db: Session = Depends(get_db),
    connections: TenantConnectionCache = Depends(get_tenant_connections),
):
    try:
        tenant, user = register_free_tenant(
            db,
            connections,
            name=payload.name,
            subdomain=payload.subdomain,
            admin_email=payload.admin_email,
            admin_password=payload.admin_password,
            country=payload.country,
            business_type=payload.business_type,
            business_category=payload.business_category,
        )
    except TenantConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except TenantProvisioningError as exc:
        print(f"[tenancy] free registration failed: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Registration failed") from exc

    log_audit(
        db,
        "tenants.registered",
        actor_user_id=user.id,
        tenant_id=tenant.id,
        request=request,
        details={"plan": "free"},
    )
    db.commit()
    send_notification(user.email, build_welcome_message(tenant.name, tenant.subdomain, "free"))
    return _registration_response(
        tenant,
        user.id,
        "Free account registered successfully. You can upgrade to enterprise with a license key.",
    )


@router.post("/enterprise", response_model=TenantRegistrationResponse, status_code=status.HTTP_201_CREATED)
def register_enterprise(
    payload: EnterpriseTenantRegistration,
    request: Request,
    db: Session = Depends(get_db),
    connections: TenantConnectionCache = Depends(get_tenant_connections),
):
    try:
        tenant, user = register_enterprise_tenant(
            db,
            connections,
            name=payload.name,
            subdomain=payload.subdomain,
            admin_email=payload.admin_email,
            admin_password=payload.admin_password,
            license_key=payload.license_key,
            country=payload.country,
            business_type=payload.business_type,
            business_category=payload.business_category,
        )
    except TenantConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except LicenseValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TenantProvisioningError as exc:
        print(f"[tenancy] enterprise registration failed: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Registration failed") from exc

    log_audit(
        db,
        "tenants.registered",
        actor_user_id=user.id,
        tenant_id=tenant.id,
        request=request,
        details={"plan": "enterprise", "db_name": tenant.db_name},
    )
    db.commit()
    send_notification(user.email, build_welcome_message(tenant.name, tenant.subdomain, "enterprise"))
    return _registration_response(tenant, user.id, "Enterprise account registered successfully.")


@router.get("/me", response_model=TenantOut)
def current_tenant(tenant: Tenant = Depends(get_current_tenant)):
    return tenant
