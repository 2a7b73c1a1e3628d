from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app import models


class BidCreate(BaseModel):
    pooled_order_id: int
    supplier_id: int
    price_per_unit: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=2000)


class SupplierMiniRead(BaseModel):
    id: int
    business_name: str
    verification_status: models.VerificationStatus

    model_config = ConfigDict(from_attributes=True)


class BidRead(BaseModel):
    id: int
    pooled_order_id: int
    supplier_id: int
    price_per_unit: Decimal
    notes: Optional[str] = None
    created_at: datetime
    supplier: Optional[SupplierMiniRead] = None

    model_config = ConfigDict(from_attributes=True)


class BidOrderSnapshotRead(BaseModel):
    id: int
    status: models.PooledOrderStatus
    auction_ends_at: datetime
    winning_bid_id: Optional[int] = None
    final_price_per_unit: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class BidDetailRead(BidRead):
    pooled_order: BidOrderSnapshotRead


class BidStatusRead(BaseModel):
    bid_id: int
    status: models.SupplierBidStatus
    is_winning: bool


class SupplierBidRowRead(BaseModel):
    bid: BidRead
    pooled_order: BidOrderSnapshotRead
    status: models.SupplierBidStatus
    is_winning: bool
    is_auction_active: bool
    current_lowest_bid: Optional[Decimal] = None


class SupplierBidListRead(BaseModel):
    supplier_id: int
    items: list[SupplierBidRowRead]
