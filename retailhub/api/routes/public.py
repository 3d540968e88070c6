from fastapi import APIRouter, Depends, Query

from retailhub.api.deps import get_public_tenant_scope
from retailhub.models.catalog import Product
from retailhub.schemas.catalog import PublicProductOut
from retailhub.services.tenant_router import TenantScope

router = APIRouter(prefix="/public", tags=["Storefront"])


@router.get("/products", response_model=list[PublicProductOut])
def storefront_products(
    category: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    scope: TenantScope = Depends(get_public_tenant_scope),
):
    query = scope.select(Product).where(Product.is_active.is_(True))
    if category:
        query = query.where(Product.category == category)
    products = scope.session.scalars(
        query.order_by(Product.name.asc(), Product.id.asc()).limit(limit).offset(offset)
    ).all()
    return [
        PublicProductOut(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            category=product.category,
            in_stock=product.stock > 0,
        )
        for product in products
    ]
