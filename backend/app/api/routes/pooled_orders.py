from __future__ import annotations

from fastapi import APIRouter, Query, Request
from sqlalchemy.orm import Session

from app import models
from app.api.deps import _DB_DEP, domain_http_error, request_id_of
from app.config import settings
from app.schemas import (
    AuctionOpenRequest,
    BidRead,
    OrderBidsRead,
    PooledOrderDetailRead,
    PooledOrderListRead,
    PooledOrderRead,
)
from app.services import auction_service
from app.services.auction_errors import AuctionDomainError

router = APIRouter(prefix="/pooled-orders", tags=["pooled-orders"])


def _read_fields(order: models.PooledOrder, lowest: models.Bid | None) -> dict:
    return {
        "id": order.id,
        "status": order.status,
        "auction_ends_at": order.auction_ends_at,
        "total_quantity_committed": order.total_quantity_committed,
        "final_price_per_unit": order.final_price_per_unit,
        "winning_bid_id": order.winning_bid_id,
        "created_at": order.created_at,
        "product": order.product,
        "area_group": order.area_group,
        "is_auction_active": auction_service.is_auction_active(order),
        "current_lowest_bid": None if lowest is None else lowest.price_per_unit,
    }


def _to_read_model(order: models.PooledOrder, lowest: models.Bid | None) -> PooledOrderRead:
    return PooledOrderRead.model_validate(_read_fields(order, lowest), from_attributes=True)


def _to_detail_model(db: Session, order: models.PooledOrder) -> PooledOrderDetailRead:
    decrement = settings.min_bid_decrement
    bids = auction_service.list_order_bids(db, order.id)
    return PooledOrderDetailRead.model_validate(
        {
            **_read_fields(order, auction_service.get_current_lowest_bid(db, order.id)),
            "min_next_bid": auction_service.calculate_min_next_bid(db, order.id, decrement),
            "min_bid_decrement": decrement,
            "bids": [BidRead.model_validate(b) for b in bids],
        },
        from_attributes=True,
    )


@router.get("", response_model=PooledOrderListRead)
def list_pooled_orders(
    status: models.PooledOrderStatus | None = Query(None),
    area_group_id: int | None = Query(None),
    db: Session = _DB_DEP,
):
    orders = auction_service.list_pooled_orders(db, status=status, area_group_id=area_group_id)
    lowest_by_order = auction_service.get_current_lowest_bids(db, [o.id for o in orders])
    return PooledOrderListRead(
        items=[_to_read_model(o, lowest_by_order.get(o.id)) for o in orders]
    )


@router.get("/{order_id}", response_model=PooledOrderDetailRead)
def get_pooled_order(order_id: int, db: Session = _DB_DEP):
    try:
        order = auction_service.get_pooled_order(db, order_id)
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return _to_detail_model(db, order)


@router.get("/{order_id}/bids", response_model=OrderBidsRead)
def list_order_bids(order_id: int, db: Session = _DB_DEP):
    try:
        bids = auction_service.list_order_bids(db, order_id)
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return OrderBidsRead(
        pooled_order_id=order_id,
        items=[BidRead.model_validate(b) for b in bids],
        total=len(bids),
    )


@router.post("/{order_id}/open", response_model=PooledOrderRead)
def open_auction(order_id: int, payload: AuctionOpenRequest, db: Session = _DB_DEP):
    try:
        order = auction_service.open_auction(
            db, order_id, auction_ends_at=payload.auction_ends_at
        )
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return _to_read_model(order, auction_service.get_current_lowest_bid(db, order.id))


@router.post("/{order_id}/award", response_model=PooledOrderRead)
def award_auction(order_id: int, request: Request, db: Session = _DB_DEP):
    try:
        order = auction_service.award_auction(
            db, order_id, actor_id="api", request_id=request_id_of(request)
        )
    except AuctionDomainError as e:
        raise domain_http_error(e)
    return _to_read_model(order, auction_service.get_current_lowest_bid(db, order.id))
