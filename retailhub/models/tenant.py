from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from retailhub.db.database import Base


class SubscriptionPlan(str, Enum):
    FREE = "free"
    ENTERPRISE = "enterprise"


class TenantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class BusinessType(str, Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"
    PARTNERSHIP = "partnership"


class BusinessCategory(str, Enum):
    SUPERMARKET = "supermarket"
    RESTAURANT = "restaurant"
    PHARMACY = "pharmacy"
    SMALL_BUSINESS = "small_business"
    OTHER = "other"


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, index=True, nullable=False)
    # NULL for free tenants (shared database), dedicated database name for enterprise tenants.
    db_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), default="Nigeria", nullable=True)
    business_type: Mapped[BusinessType] = mapped_column(
        SQLEnum(BusinessType),
        default=BusinessType.COMPANY,
        nullable=False,
    )
    business_category: Mapped[BusinessCategory] = mapped_column(
        SQLEnum(BusinessCategory),
        default=BusinessCategory.SMALL_BUSINESS,
        nullable=False,
    )
    status: Mapped[TenantStatus] = mapped_column(
        SQLEnum(TenantStatus),
        default=TenantStatus.ACTIVE,
        index=True,
        nullable=False,
    )
    subscription_plan: Mapped[SubscriptionPlan] = mapped_column(
        SQLEnum(SubscriptionPlan),
        default=SubscriptionPlan.FREE,
        index=True,
        nullable=False,
    )
    transaction_fee_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("3.00"),
        nullable=False,
    )
    # Set while rows are being copied to the dedicated database; tenant writes are refused.
    is_migrating: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class LicenseKey(Base):
    __tablename__ = "license_keys"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    license_key: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    status: Mapped[LicenseStatus] = mapped_column(
        SQLEnum(LicenseStatus),
        default=LicenseStatus.ACTIVE,
        index=True,
        nullable=False,
    )
    tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    purchased_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purchased_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

