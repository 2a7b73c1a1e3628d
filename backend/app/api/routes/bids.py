from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.deps import _DB_DEP, domain_http_error, request_id_of
from app.schemas import BidCreate, BidDetailRead, BidRead, BidStatusRead
from app.services import bid_service
from app.services.auction_errors import AuctionDomainError

router = APIRouter(prefix="/bids", tags=["bids"])


@router.post("", response_model=BidRead, status_code=status.HTTP_201_CREATED)
def submit_bid(payload: BidCreate, request: Request, db: Session = _DB_DEP):
    try:
        bid = bid_service.submit_bid(
            db,
            order_id=payload.pooled_order_id,
            supplier_id=payload.supplier_id,
            price=payload.price_per_unit,
            notes=payload.notes,
            request_id=request_id_of(request),
        )
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return bid


@router.get("/{bid_id}", response_model=BidDetailRead)
def get_bid(bid_id: int, db: Session = _DB_DEP):
    try:
        return bid_service.get_bid(db, bid_id)
    except AuctionDomainError as e:
        raise domain_http_error(e)


@router.get("/{bid_id}/status", response_model=BidStatusRead)
def get_bid_status(bid_id: int, db: Session = _DB_DEP):
    try:
        result = bid_service.get_supplier_bid_status(db, bid_id)
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return BidStatusRead(bid_id=result.bid_id, status=result.status, is_winning=result.is_winning)


@router.delete("/{bid_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_bid(
    bid_id: int,
    request: Request,
    supplier_id: int | None = Query(None),
    db: Session = _DB_DEP,
):
    try:
        bid_service.cancel_bid(
            db, bid_id, supplier_id=supplier_id, request_id=request_id_of(request)
        )
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
