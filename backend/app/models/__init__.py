from app.models.domain import (
    AreaGroup,
    AuditLog,
    Bid,
    PooledOrder,
    PooledOrderStatus,
    Product,
    Supplier,
    SupplierBidStatus,
    VerificationStatus,
)

__all__ = [
    "AreaGroup",
    "AuditLog",
    "Bid",
    "PooledOrder",
    "PooledOrderStatus",
    "Product",
    "Supplier",
    "SupplierBidStatus",
    "VerificationStatus",
]
