"""Reverse-auction queries and the awarding transition for pooled orders.

Lowest bid and auction activity are always derived from the bid set and the
order snapshot; nothing here caches them. Deadline expiry is lazy: an order
whose deadline passed keeps status AUCTION_OPEN until ``award_auction`` runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app import models
from app.core.money import ZERO, format_money, quantize_money
from app.models.domain import PooledOrderStatus
from app.services import auction_store
from app.services.audit import audit_event
from app.services.auction_errors import AuctionStillActive, InvalidTransition, NotFound
from app.services.order_transitions import atomic_transition_order_status

logger = logging.getLogger("poolbid.auctions")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_current_lowest_bid(db: Session, order_id: int) -> models.Bid | None:
    return auction_store.find_lowest_bid(db, order_id)


def get_current_lowest_bids(db: Session, order_ids) -> dict[int, models.Bid]:
    return auction_store.find_lowest_bids(db, order_ids)


def is_auction_active(order, now: datetime | None = None) -> bool:
    """True iff the order is AUCTION_OPEN and its deadline is still ahead.

    Pure: works on any object with ``status`` and ``auction_ends_at``.
    """

    status = order.status
    if isinstance(status, PooledOrderStatus):
        status = status.value
    if str(status) != PooledOrderStatus.AUCTION_OPEN.value:
        return False
    ends_at = order.auction_ends_at
    if ends_at is None:
        return False
    current = as_utc(now) if now is not None else utc_now()
    return current < as_utc(ends_at)


def min_next_bid_from(lowest_price: Decimal, min_decrement: Decimal) -> Decimal:
    candidate = max(ZERO, Decimal(lowest_price) - Decimal(min_decrement))
    return quantize_money(candidate)


def calculate_min_next_bid(db: Session, order_id: int, min_decrement) -> Decimal | None:
    """Maximum acceptable price for the next bid (inclusive), or None before the first bid."""
    lowest = get_current_lowest_bid(db, order_id)
    if lowest is None:
        return None
    return min_next_bid_from(lowest.price_per_unit, Decimal(str(min_decrement)))


def list_pooled_orders(
    db: Session,
    *,
    status: PooledOrderStatus | None = None,
    area_group_id: int | None = None,
) -> list[models.PooledOrder]:
    stmt = select(models.PooledOrder)
    if status is not None:
        stmt = stmt.where(models.PooledOrder.status == status)
    if area_group_id is not None:
        stmt = stmt.where(models.PooledOrder.area_group_id == int(area_group_id))
    stmt = stmt.order_by(models.PooledOrder.created_at.desc(), models.PooledOrder.id.desc())
    return list(db.execute(stmt).unique().scalars().all())


def get_pooled_order(db: Session, order_id: int) -> models.PooledOrder:
    order = auction_store.find_order(db, order_id)
    if order is None:
        raise NotFound("Pooled order")
    return order


def list_order_bids(db: Session, order_id: int) -> list[models.Bid]:
    get_pooled_order(db, order_id)
    return auction_store.list_bids_ranked(db, order_id)


def open_auction(
    db: Session,
    order_id: int,
    *,
    auction_ends_at: datetime,
    now: datetime | None = None,
) -> models.PooledOrder:
    """External trigger: PREPARING -> AUCTION_OPEN with a future deadline."""

    current = as_utc(now) if now is not None else utc_now()
    if as_utc(auction_ends_at) <= current:
        raise InvalidTransition("Auction deadline must be in the future")

    with auction_store.order_transaction(db, order_id):
        order = auction_store.find_order(db, order_id, for_update=True)
        if order is None:
            raise NotFound("Pooled order")

        transition = atomic_transition_order_status(
            db=db,
            order_id=order_id,
            to_status=PooledOrderStatus.AUCTION_OPEN,
            allowed_from={PooledOrderStatus.PREPARING},
            updates={"auction_ends_at": as_utc(auction_ends_at)},
        )
        if not transition.updated:
            raise InvalidTransition(
                f"Auction can only be opened from PREPARING (current: {order.status.value})"
            )
        order = auction_store.reload_order(db, order_id)

    logger.info(
        "auction_opened",
        extra={"pooled_order_id": order_id, "auction_ends_at": order.auction_ends_at.isoformat()},
    )
    return order


def award_auction(
    db: Session,
    order_id: int,
    *,
    now: datetime | None = None,
    actor_id: str | None = None,
    request_id: str | None = None,
) -> models.PooledOrder:
    """Close an elapsed auction and, when bids exist, award it to the lowest bid.

    Runs as one transaction under the per-order lock. Only AUCTION_OPEN orders
    transition; awarding any other non-active order returns it unchanged.
    """

    outcome = None
    with auction_store.order_transaction(db, order_id):
        order = auction_store.find_order(db, order_id, for_update=True)
        if order is None:
            raise NotFound("Pooled order")

        if is_auction_active(order, now=now):
            raise AuctionStillActive(
                "Auction is still active; cannot award yet",
                auction_ends_at=as_utc(order.auction_ends_at).isoformat(),
            )

        if order.status != PooledOrderStatus.AUCTION_OPEN:
            return order

        lowest = auction_store.find_lowest_bid(db, order_id)
        if lowest is None:
            transition = atomic_transition_order_status(
                db=db,
                order_id=order_id,
                to_status=PooledOrderStatus.AUCTION_CLOSED,
                allowed_from={PooledOrderStatus.AUCTION_OPEN},
            )
            outcome = ("auction.closed", {"pooled_order_id": order_id})
        else:
            transition = atomic_transition_order_status(
                db=db,
                order_id=order_id,
                to_status=PooledOrderStatus.AWARDED,
                allowed_from={PooledOrderStatus.AUCTION_OPEN},
                updates={
                    "winning_bid_id": lowest.id,
                    "final_price_per_unit": lowest.price_per_unit,
                },
            )
            outcome = (
                "auction.awarded",
                {
                    "pooled_order_id": order_id,
                    "winning_bid_id": lowest.id,
                    "supplier_id": lowest.supplier_id,
                    "final_price_per_unit": format_money(lowest.price_per_unit),
                },
            )

        if not transition.updated:
            # Another award committed first; report what it produced.
            outcome = None
        order = auction_store.reload_order(db, order_id)

    if outcome is not None:
        action, payload = outcome
        logger.info(action.replace(".", "_"), extra=payload)
        audit_event(
            action,
            actor_id,
            payload,
            db=db,
            pooled_order_id=order_id,
            idempotency_key=f"pooled_order:{order_id}:{action}",
            request_id=request_id,
        )
    return order


@dataclass
class AwardRunSummary:
    awarded: list[int] = field(default_factory=list)
    closed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


def find_expired_open_orders(
    db: Session, *, now: datetime | None = None, limit: int | None = None
) -> list[int]:
    current = as_utc(now) if now is not None else utc_now()
    stmt = (
        select(models.PooledOrder.id)
        .where(models.PooledOrder.status == PooledOrderStatus.AUCTION_OPEN)
        .where(models.PooledOrder.auction_ends_at <= current)
        .order_by(models.PooledOrder.auction_ends_at.asc(), models.PooledOrder.id.asc())
    )
    if limit is not None:
        stmt = stmt.limit(int(limit))
    return [int(order_id) for order_id in db.execute(stmt).scalars().all()]


def award_expired_auctions(
    db: Session,
    *,
    now: datetime | None = None,
    limit: int | None = None,
    dry_run: bool = False,
) -> AwardRunSummary:
    """Batch entry point for an external scheduler.

    Each order is awarded in its own transaction; a failure on one order is
    logged and the run continues with the next.
    """

    summary = AwardRunSummary()
    for order_id in find_expired_open_orders(db, now=now, limit=limit):
        if dry_run:
            summary.skipped.append(order_id)
            continue
        try:
            order = award_auction(db, order_id, now=now, actor_id="scheduler")
        except Exception:
            logger.exception("auction_award_failed", extra={"pooled_order_id": order_id})
            summary.failed.append(order_id)
            continue

        if order.status == PooledOrderStatus.AWARDED:
            summary.awarded.append(order_id)
        elif order.status == PooledOrderStatus.AUCTION_CLOSED:
            summary.closed.append(order_id)
        else:
            summary.skipped.append(order_id)

    logger.info(
        "award_run_finished",
        extra={
            "awarded": len(summary.awarded),
            "closed": len(summary.closed),
            "failed": len(summary.failed),
            "skipped": len(summary.skipped),
            "dry_run": dry_run,
        },
    )
    return summary
