"""Bid validation, submission, cancellation and the per-bid status resolver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.core.money import format_money, to_money
from app.models.domain import SupplierBidStatus, VerificationStatus
from app.services import auction_store
from app.services.audit import audit_event
from app.services.auction_errors import (
    AuctionDomainError,
    AuctionNotAcceptingBids,
    BidNotCancellable,
    BidNotLower,
    DecrementTooSmall,
    NotFound,
    SupplierNotVerified,
)
from app.services.auction_service import is_auction_active, min_next_bid_from

logger = logging.getLogger("poolbid.bids")


@dataclass(frozen=True)
class BidValidation:
    order: models.PooledOrder
    supplier: models.Supplier
    price: Decimal
    current_lowest: Decimal | None
    max_allowed: Decimal | None


@dataclass(frozen=True)
class BidStatusResult:
    bid_id: int
    status: SupplierBidStatus
    is_winning: bool


@dataclass(frozen=True)
class SupplierBidRow:
    bid: models.Bid
    order: models.PooledOrder
    status: SupplierBidStatus
    is_winning: bool
    is_auction_active: bool
    current_lowest_bid: Decimal | None


def _decrement(min_decrement) -> Decimal:
    if min_decrement is None:
        return settings.min_bid_decrement
    return Decimal(str(min_decrement))


def validate_bid(
    db: Session,
    *,
    order_id: int,
    supplier_id: int,
    price,
    min_decrement=None,
    now: datetime | None = None,
    for_update: bool = False,
) -> BidValidation:
    """Run the submission checks without writing anything.

    Checks run in a fixed order and the first failure is raised: price, order,
    auction window, supplier, verification, then the lowest-bid rules.
    """

    amount = to_money(price)
    decrement = _decrement(min_decrement)

    order = auction_store.find_order(db, order_id, for_update=for_update)
    if order is None:
        raise NotFound("Pooled order")

    if not is_auction_active(order, now=now):
        raise AuctionNotAcceptingBids(
            "Auction is not currently accepting bids",
            status=order.status.value,
        )

    supplier = auction_store.find_supplier(db, supplier_id)
    if supplier is None:
        raise NotFound("Supplier")
    if supplier.verification_status != VerificationStatus.VERIFIED:
        raise SupplierNotVerified("Supplier must be verified to place bids")

    lowest = auction_store.find_lowest_bid(db, order_id)
    if lowest is None:
        return BidValidation(
            order=order, supplier=supplier, price=amount, current_lowest=None, max_allowed=None
        )

    lowest_price = Decimal(lowest.price_per_unit)
    max_allowed = min_next_bid_from(lowest_price, decrement)
    if amount > max_allowed:
        raise DecrementTooSmall(
            f"Bid must be at least {format_money(decrement)} lower than the current lowest bid "
            f"({format_money(lowest_price)})",
            min_decrement=decrement,
            current_lowest=lowest_price,
            max_allowed=max_allowed,
        )
    if amount >= lowest_price:
        raise BidNotLower(
            f"Bid must be lower than the current lowest bid ({format_money(lowest_price)})",
            current_lowest=lowest_price,
        )

    return BidValidation(
        order=order,
        supplier=supplier,
        price=amount,
        current_lowest=lowest_price,
        max_allowed=max_allowed,
    )


def submit_bid(
    db: Session,
    *,
    order_id: int,
    supplier_id: int,
    price,
    notes: str | None = None,
    min_decrement=None,
    now: datetime | None = None,
    request_id: str | None = None,
) -> models.Bid:
    """Validate and persist a bid in one transaction under the per-order lock.

    The lowest bid is re-read after the lock is taken, so two concurrent
    submissions against the same lowest price cannot both be accepted.
    """

    try:
        with auction_store.order_transaction(db, order_id):
            checked = validate_bid(
                db,
                order_id=order_id,
                supplier_id=supplier_id,
                price=price,
                min_decrement=min_decrement,
                now=now,
                for_update=True,
            )
            bid = auction_store.create_bid(
                db,
                order_id=order_id,
                supplier_id=supplier_id,
                price=checked.price,
                notes=notes,
            )
            bid_id = bid.id
    except AuctionDomainError as exc:
        logger.info(
            "bid_rejected",
            extra={
                "pooled_order_id": order_id,
                "supplier_id": supplier_id,
                "code": exc.code,
            },
        )
        raise

    payload = {
        "bid_id": bid_id,
        "pooled_order_id": order_id,
        "supplier_id": supplier_id,
        "price_per_unit": format_money(checked.price),
        "previous_lowest": format_money(checked.current_lowest),
    }
    logger.info("bid_submitted", extra=payload)
    audit_event(
        "bid.submitted",
        str(supplier_id),
        payload,
        db=db,
        pooled_order_id=order_id,
        idempotency_key=f"bid:{bid_id}:submitted",
        request_id=request_id,
    )
    return bid


def get_bid(db: Session, bid_id: int) -> models.Bid:
    bid = auction_store.find_bid(db, bid_id)
    if bid is None:
        raise NotFound("Bid")
    return bid


def _resolve_status(bid: models.Bid, winning_bid_id: int | None, lowest: models.Bid | None):
    if winning_bid_id is not None and winning_bid_id == bid.id:
        return SupplierBidStatus.AWARDED, True
    if lowest is not None and lowest.id == bid.id:
        return SupplierBidStatus.WINNING, True
    return SupplierBidStatus.OUTBID, False


def get_supplier_bid_status(db: Session, bid_id: int) -> BidStatusResult:
    """Snapshot status of one bid: AWARDED beats live ranking, else WINNING or OUTBID."""
    bid = get_bid(db, bid_id)
    order = bid.pooled_order
    lowest = None
    if order.winning_bid_id != bid.id:
        lowest = auction_store.find_lowest_bid(db, bid.pooled_order_id)
    status, is_winning = _resolve_status(bid, order.winning_bid_id, lowest)
    return BidStatusResult(bid_id=bid.id, status=status, is_winning=is_winning)


def cancel_bid(
    db: Session,
    bid_id: int,
    *,
    supplier_id: int | None = None,
    now: datetime | None = None,
    request_id: str | None = None,
) -> None:
    bid = get_bid(db, bid_id)
    if supplier_id is not None and bid.supplier_id != int(supplier_id):
        raise NotFound("Bid")
    order_id = bid.pooled_order_id

    with auction_store.order_transaction(db, order_id):
        order = auction_store.find_order(db, order_id, for_update=True)
        # Re-read under the lock; a concurrent cancel may have won.
        bid = auction_store.find_bid(db, bid_id, fresh=True)
        if order is None or bid is None:
            raise NotFound("Bid")
        if not is_auction_active(order, now=now):
            raise BidNotCancellable("Cannot cancel bid: auction is no longer active")
        payload = {
            "bid_id": bid.id,
            "pooled_order_id": order_id,
            "supplier_id": bid.supplier_id,
            "price_per_unit": format_money(bid.price_per_unit),
        }
        auction_store.delete_bid(db, bid_id)

    logger.info("bid_cancelled", extra=payload)
    audit_event(
        "bid.cancelled",
        str(payload["supplier_id"]),
        payload,
        db=db,
        pooled_order_id=order_id,
        idempotency_key=f"bid:{bid_id}:cancelled",
        request_id=request_id,
    )


def list_supplier_bids(
    db: Session, supplier_id: int, *, now: datetime | None = None
) -> list[SupplierBidRow]:
    """A supplier's bids, newest first, each with its derived dashboard state."""

    if auction_store.find_supplier(db, supplier_id) is None:
        raise NotFound("Supplier")

    stmt = (
        select(models.Bid)
        .where(models.Bid.supplier_id == int(supplier_id))
        .order_by(models.Bid.created_at.desc(), models.Bid.id.desc())
    )
    bids = list(db.execute(stmt).scalars().all())

    lowest_by_order = auction_store.find_lowest_bids(db, [b.pooled_order_id for b in bids])
    rows: list[SupplierBidRow] = []
    for bid in bids:
        order = bid.pooled_order
        lowest = lowest_by_order.get(order.id)
        status, is_winning = _resolve_status(bid, order.winning_bid_id, lowest)
        rows.append(
            SupplierBidRow(
                bid=bid,
                order=order,
                status=status,
                is_winning=is_winning,
                is_auction_active=is_auction_active(order, now=now),
                current_lowest_bid=None if lowest is None else Decimal(lowest.price_per_unit),
            )
        )
    return rows
