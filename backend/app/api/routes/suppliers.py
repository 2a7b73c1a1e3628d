from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy.orm import Session

from app.api.deps import _DB_DEP, domain_http_error
from app.schemas import BidOrderSnapshotRead, BidRead, SupplierBidListRead, SupplierBidRowRead
from app.services import bid_service
from app.services.auction_errors import AuctionDomainError

router = APIRouter(prefix="/suppliers", tags=["suppliers"])


@router.get("/{supplier_id}/bids", response_model=SupplierBidListRead)
def list_supplier_bids(supplier_id: int, db: Session = _DB_DEP):
    """Supplier dashboard: every bid with its live ranking and auction window state."""
    try:
        rows = bid_service.list_supplier_bids(db, supplier_id)
    except AuctionDomainError as e:
        raise domain_http_error(e)

    return SupplierBidListRead(
        supplier_id=supplier_id,
        items=[
            SupplierBidRowRead(
                bid=BidRead.model_validate(row.bid),
                pooled_order=BidOrderSnapshotRead.model_validate(row.order),
                status=row.status,
                is_winning=row.is_winning,
                is_auction_active=row.is_auction_active,
                current_lowest_bid=row.current_lowest_bid,
            )
            for row in rows
        ],
    )
