from retailhub.models.catalog import (
    Customer,
    Invoice,
    InvoiceItem,
    OnlineStoreOrder,
    Product,
    ProductStore,
    Store,
)
from retailhub.models.security import AuditLog
from retailhub.models.tenant import LicenseKey, Tenant
from retailhub.models.user import User

__all__ = [
    "AuditLog",
    "Customer",
    "Invoice",
    "InvoiceItem",
    "LicenseKey",
    "OnlineStoreOrder",
    "Product",
    "ProductStore",
    "Store",
    "Tenant",
    "User",
]
