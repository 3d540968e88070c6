from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from retailhub.models.catalog import CustomerType, StoreType


class StoreCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    store_type: StoreType = StoreType.RETAIL_STORE
    address: str | None = None
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)


class StoreOut(BaseModel):
    id: int
    name: str
    store_type: StoreType
    address: str | None
    city: str | None
    country: str | None
    phone: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: str | None = None
    sku: str | None = Field(default=None, min_length=2, max_length=100)
    barcode: str | None = Field(default=None, max_length=100)
    price: Decimal = Field(default=Decimal("0.00"), ge=0)
    cost_price: Decimal | None = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    category: str | None = Field(default=None, max_length=100)
    expiry_date: date | None = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: str | None
    sku: str | None
    barcode: str | None
    price: Decimal
    cost_price: Decimal | None
    stock: int
    low_stock_threshold: int
    category: str | None
    expiry_date: date | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PublicProductOut(BaseModel):
    id: int
    name: str
    description: str | None
    price: Decimal
    category: str | None
    in_stock: bool


class CustomerCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = None
    customer_type: CustomerType = CustomerType.INDIVIDUAL


class CustomerOut(BaseModel):
    id: int
    name: str
    email: str | None
    phone: str | None
    address: str | None
    customer_type: CustomerType
    created_at: datetime

    model_config = {"from_attributes": True}
