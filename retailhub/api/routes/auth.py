import json
from collections import defaultdict
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailhub.api.deps import get_current_user, is_platform_admin
from retailhub.core.config import settings
from retailhub.core.security import create_access_token, verify_password
from retailhub.db.database import get_db
from retailhub.models.security import AuditLog
from retailhub.models.tenant import Tenant, TenantStatus
from retailhub.models.user import User
from retailhub.schemas.auth import LoginRequest, TokenResponse, UserOut

router = APIRouter(prefix="/auth", tags=["Authentication"])


class SlidingWindowLimiter:
    def __init__(self) -> None:
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def check(self, key: str) -> bool:
        now = datetime.now(timezone.utc)
        window_start = now - timedelta(seconds=settings.login_rate_limit_window_seconds)
        self._attempts[key] = [dt for dt in self._attempts[key] if dt >= window_start]
        return len(self._attempts[key]) >= settings.login_rate_limit_max_attempts

    def hit(self, key: str) -> None:
        self._attempts[key].append(datetime.now(timezone.utc))

    def clear(self, key: str) -> None:
        self._attempts.pop(key, None)


login_rate_limiter = SlidingWindowLimiter()


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def log_audit(
    db: Session,
    event_type: str,
    actor_user_id: int | None,
    tenant_id: int | None = None,
    request: Request | None = None,
    details: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            event_type=event_type,
            actor_user_id=actor_user_id,
            tenant_id=tenant_id,
            ip_address=get_client_ip(request) if request else None,
            user_agent=request.headers.get("user-agent") if request else None,
            details=json.dumps(details or {}),
        )
    )


def authenticate_user(db: Session, email: str, password: str, request: Request) -> tuple[User, Tenant | None]:
    rate_key = f"{get_client_ip(request) or 'unknown'}:{email.lower()}"
    if login_rate_limiter.check(rate_key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts, try again later",
        )

    user = db.scalar(select(User).where(func.lower(User.email) == email.lower()))
    if not user or not verify_password(password, user.password_hash):
        login_rate_limiter.hit(rate_key)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    login_rate_limiter.clear(rate_key)

    if is_platform_admin(user):
        return user, None

    tenant = db.get(Tenant, user.tenant_id) if user.tenant_id is not None else None
    if not tenant or tenant.status != TenantStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or inactive tenant")
    return user, tenant


def _issue_token(db: Session, user: User, tenant: Tenant | None, request: Request) -> TokenResponse:
    log_audit(db, "auth.login", actor_user_id=user.id, tenant_id=user.tenant_id, request=request)
    db.commit()
    return TokenResponse(
        access_token=create_access_token(subject=str(user.id), role=user.role.value, tenant_id=user.tenant_id),
        expires_in=settings.access_token_expire_minutes * 60,
        tenant_id=user.tenant_id,
        subscription_plan=tenant.subscription_plan.value if tenant else None,
    )


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user, tenant = authenticate_user(db, payload.email, payload.password, request)
    return _issue_token(db, user, tenant, request)


@router.post("/token", response_model=TokenResponse)
def token(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user, tenant = authenticate_user(db, form_data.username.strip(), form_data.password, request)
    return _issue_token(db, user, tenant, request)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
