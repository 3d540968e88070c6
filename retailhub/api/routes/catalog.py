from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from retailhub.api.deps import get_tenant_scope, plan_required_exception, require_roles
from retailhub.models.catalog import Customer, Product, Store
from retailhub.models.tenant import SubscriptionPlan
from retailhub.models.user import User, UserRole
from retailhub.schemas.catalog import (
    CustomerCreate,
    CustomerOut,
    ProductCreate,
    ProductOut,
    StoreCreate,
    StoreOut,
)
from retailhub.services.tenant_router import PlanRequiredError, TenantScope

router = APIRouter(prefix="/catalog", tags=["Catalog"])

manage_catalog = require_roles(UserRole.ADMIN, UserRole.MANAGER)


def _commit(scope: TenantScope, conflict_detail: str) -> None:
    try:
        scope.session.commit()
    except IntegrityError as exc:
        scope.session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_detail) from exc


@router.post("/stores", response_model=StoreOut, status_code=status.HTTP_201_CREATED)
def create_store(
    payload: StoreCreate,
    _: User = Depends(manage_catalog),
    scope: TenantScope = Depends(get_tenant_scope),
):
    try:
        scope.require_plan(
            SubscriptionPlan.ENTERPRISE,
            "Physical stores are only available for enterprise users. Please upgrade your plan.",
        )
    except PlanRequiredError as exc:
        raise plan_required_exception(exc) from exc

    store = scope.add(
        Store(
            name=payload.name.strip(),
            store_type=payload.store_type,
            address=payload.address,
            city=payload.city,
            country=payload.country,
            phone=payload.phone,
        )
    )
    _commit(scope, "Store could not be created")
    scope.session.refresh(store)
    return store


@router.get("/stores", response_model=list[StoreOut])
def list_stores(
    _: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF)),
    scope: TenantScope = Depends(get_tenant_scope),
):
    try:
        scope.require_plan(SubscriptionPlan.ENTERPRISE)
    except PlanRequiredError as exc:
        raise plan_required_exception(exc) from exc
    return list(scope.session.scalars(scope.select(Store).order_by(Store.name.asc())).all())


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    _: User = Depends(manage_catalog),
    scope: TenantScope = Depends(get_tenant_scope),
):
    sku = payload.sku.strip().upper() if payload.sku else None
    if sku:
        existing = scope.session.scalar(scope.select(Product).where(func.upper(Product.sku) == sku))
        if existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product SKU already exists")

    product = scope.add(
        Product(
            name=payload.name.strip(),
            description=payload.description,
            sku=sku,
            barcode=payload.barcode,
            price=payload.price,
            cost_price=payload.cost_price,
            stock=payload.stock,
            low_stock_threshold=payload.low_stock_threshold,
            category=payload.category,
            expiry_date=payload.expiry_date,
        )
    )
    _commit(scope, "Product SKU already exists")
    scope.session.refresh(product)
    return product


@router.get("/products", response_model=list[ProductOut])
def list_products(
    category: str | None = None,
    include_inactive: bool = False,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    scope: TenantScope = Depends(get_tenant_scope),
):
    query = scope.select(Product)
    if category:
        query = query.where(Product.category == category)
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    query = query.order_by(Product.name.asc(), Product.id.asc()).limit(limit).offset(offset)
    return list(scope.session.scalars(query).all())


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    product = scope.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.post("/customers", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    _: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF)),
    scope: TenantScope = Depends(get_tenant_scope),
):
    customer = scope.add(
        Customer(
            name=payload.name.strip(),
            email=payload.email.strip().lower() if payload.email else None,
            phone=payload.phone,
            address=payload.address,
            customer_type=payload.customer_type,
        )
    )
    _commit(scope, "Customer could not be created")
    scope.session.refresh(customer)
    return customer


@router.get("/customers", response_model=list[CustomerOut])
def list_customers(
    search: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    scope: TenantScope = Depends(get_tenant_scope),
):
    query = scope.select(Customer)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(func.lower(Customer.name).like(pattern) | func.lower(Customer.email).like(pattern))
    query = query.order_by(Customer.created_at.desc(), Customer.id.desc()).limit(limit).offset(offset)
    return list(scope.session.scalars(query).all())
