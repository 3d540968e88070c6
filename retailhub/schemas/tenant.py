from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from retailhub.models.tenant import (
    BusinessCategory,
    BusinessType,
    LicenseStatus,
    SubscriptionPlan,
    TenantStatus,
)

SUBDOMAIN_PATTERN = r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class FreeTenantRegistration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=2, max_length=255)
    subdomain: str = Field(min_length=2, max_length=63, pattern=SUBDOMAIN_PATTERN)
    admin_email: str = Field(min_length=5, max_length=320, pattern=EMAIL_PATTERN, alias="adminEmail")
    admin_password: str = Field(min_length=8, max_length=128, alias="adminPassword")
    country: str | None = Field(default="Nigeria", max_length=100)
    business_type: BusinessType = BusinessType.COMPANY
    business_category: BusinessCategory = BusinessCategory.SMALL_BUSINESS

    @field_validator("subdomain")
    @classmethod
    def normalize_subdomain(cls, value: str) -> str:
        return value.strip().lower()


class EnterpriseTenantRegistration(FreeTenantRegistration):
    license_key: str = Field(min_length=19, max_length=100)


class TenantRegistrationResponse(BaseModel):
    tenant_id: int
    name: str
    subdomain: str
    subscription_plan: SubscriptionPlan
    admin_user_id: int
    message: str


class TenantOut(BaseModel):
    id: int
    name: str
    subdomain: str
    db_name: str | None
    status: TenantStatus
    subscription_plan: SubscriptionPlan
    transaction_fee_percentage: Decimal
    is_migrating: bool
    country: str | None
    business_type: BusinessType
    business_category: BusinessCategory
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantPage(BaseModel):
    items: list[TenantOut]
    total: int
    limit: int
    offset: int


class TenantStatusUpdate(BaseModel):
    status: TenantStatus


class LicenseKeyCreate(BaseModel):
    quantity: int = Field(default=1, ge=1, le=100)
    expires_at: datetime | None = None
    purchased_by: str | None = Field(default=None, max_length=255)
    purchased_email: str | None = Field(default=None, max_length=255)


class LicenseKeyOut(BaseModel):
    id: int
    license_key: str
    status: LicenseStatus
    tenant_id: int | None
    purchased_by: str | None
    purchased_email: str | None
    expires_at: datetime | None
    used_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class LicenseKeyPage(BaseModel):
    items: list[LicenseKeyOut]
    total: int
    page: int
    limit: int
    total_pages: int


class LicenseStatusUpdate(BaseModel):
    status: LicenseStatus


class UpgradeRequest(BaseModel):
    license_key: str = Field(min_length=19, max_length=100)
    purge_shared_rows: bool | None = None


class UpgradeResponse(BaseModel):
    tenant: TenantOut
    db_name: str
    migrated_rows: dict[str, int]
    purged_shared_rows: bool
    stranded_rows: int = 0
