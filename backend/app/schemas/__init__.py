from app.schemas.bids import (
    BidCreate,
    BidDetailRead,
    BidOrderSnapshotRead,
    BidRead,
    BidStatusRead,
    SupplierBidListRead,
    SupplierBidRowRead,
    SupplierMiniRead,
)
from app.schemas.pooled_orders import (
    AreaGroupRead,
    AuctionOpenRequest,
    OrderBidsRead,
    PooledOrderDetailRead,
    PooledOrderListRead,
    PooledOrderRead,
    ProductRead,
)

__all__ = [
    "AreaGroupRead",
    "AuctionOpenRequest",
    "BidCreate",
    "BidDetailRead",
    "BidOrderSnapshotRead",
    "BidRead",
    "BidStatusRead",
    "OrderBidsRead",
    "PooledOrderDetailRead",
    "PooledOrderListRead",
    "PooledOrderRead",
    "ProductRead",
    "SupplierBidListRead",
    "SupplierBidRowRead",
    "SupplierMiniRead",
]
