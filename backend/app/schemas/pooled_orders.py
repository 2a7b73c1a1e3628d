from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app import models
from app.schemas.bids import BidRead


class ProductRead(BaseModel):
    id: int
    name: str
    grade: Optional[str] = None
    unit: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AreaGroupRead(BaseModel):
    id: int
    area_name: str
    city_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PooledOrderRead(BaseModel):
    id: int
    status: models.PooledOrderStatus
    auction_ends_at: datetime
    total_quantity_committed: Decimal
    final_price_per_unit: Optional[Decimal] = None
    winning_bid_id: Optional[int] = None
    created_at: Optional[datetime] = None
    product: Optional[ProductRead] = None
    area_group: Optional[AreaGroupRead] = None
    # Derived on read, never stored.
    is_auction_active: bool
    current_lowest_bid: Optional[Decimal] = None


class PooledOrderListRead(BaseModel):
    items: list[PooledOrderRead]


class PooledOrderDetailRead(PooledOrderRead):
    min_next_bid: Optional[Decimal] = None
    min_bid_decrement: Decimal
    bids: list[BidRead] = []


class OrderBidsRead(BaseModel):
    pooled_order_id: int
    items: list[BidRead]
    total: int


class AuctionOpenRequest(BaseModel):
    auction_ends_at: datetime
