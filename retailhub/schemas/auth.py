from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from retailhub.models.user import UserRole


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=128)

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_identity_field(cls, data):
        if not isinstance(data, dict):
            return data
        if not data.get("email") and isinstance(data.get("identity"), str):
            data["email"] = data["identity"]
        return data

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("email must not be empty")
        return normalized


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    tenant_id: int | None = None
    subscription_plan: str | None = None


class UserOut(BaseModel):
    id: int
    email: str
    tenant_id: int | None
    role: UserRole
    is_platform_admin: bool
    created_at: datetime

    model_config = {"from_attributes": True}
