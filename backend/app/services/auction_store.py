"""Storage collaborator for the bidding core.

Thin query helpers over a SQLAlchemy ``Session`` plus the transaction and
locking primitives the services build their read-check-write sequences on.
Callers control commit/rollback through ``unit_of_work`` / ``order_transaction``.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from app import models

# Process-local striped locks: bounded memory, same order id always maps to the same lock.
_ORDER_LOCK_STRIPES = 64
_ORDER_LOCKS = [threading.RLock() for _ in range(_ORDER_LOCK_STRIPES)]

# Namespace for pg_advisory_xact_lock(int, int) so order locks never collide with other keys.
_PG_ORDER_LOCK_NAMESPACE = 71_402


def _dialect_name(db: Session) -> str:
    try:
        return str(db.get_bind().dialect.name or "").lower()
    except Exception:
        return ""


def _lowest_bid_query(order_id: int):
    return (
        select(models.Bid)
        .where(models.Bid.pooled_order_id == int(order_id))
        .order_by(
            models.Bid.price_per_unit.asc(),
            models.Bid.created_at.asc(),
            models.Bid.id.asc(),
        )
    )


def find_order(db: Session, order_id: int, *, for_update: bool = False) -> models.PooledOrder | None:
    stmt = select(models.PooledOrder).where(models.PooledOrder.id == int(order_id))
    if for_update:
        # Re-read inside the write transaction; never trust an identity-map snapshot here.
        stmt = stmt.with_for_update(of=models.PooledOrder).execution_options(populate_existing=True)
    return db.execute(stmt).unique().scalar_one_or_none()


def find_supplier(db: Session, supplier_id: int) -> models.Supplier | None:
    return db.get(models.Supplier, int(supplier_id))


def find_bid(db: Session, bid_id: int, *, fresh: bool = False) -> models.Bid | None:
    return db.get(models.Bid, int(bid_id), populate_existing=fresh)


def find_lowest_bid(db: Session, order_id: int) -> models.Bid | None:
    """Lowest price first; ties go to the earliest submission, then the lowest id."""
    return db.execute(_lowest_bid_query(order_id).limit(1)).scalar_one_or_none()


def find_lowest_bids(db: Session, order_ids) -> dict[int, models.Bid]:
    """Lowest bid per order in one query, keyed by order id; orders without bids are absent."""
    ids = sorted({int(i) for i in order_ids})
    if not ids:
        return {}
    rank = (
        func.row_number()
        .over(
            partition_by=models.Bid.pooled_order_id,
            order_by=(
                models.Bid.price_per_unit.asc(),
                models.Bid.created_at.asc(),
                models.Bid.id.asc(),
            ),
        )
        .label("rank")
    )
    ranked = (
        select(models.Bid.id.label("bid_id"), rank)
        .where(models.Bid.pooled_order_id.in_(ids))
        .subquery()
    )
    stmt = (
        select(models.Bid)
        .join(ranked, ranked.c.bid_id == models.Bid.id)
        .where(ranked.c.rank == 1)
    )
    return {bid.pooled_order_id: bid for bid in db.execute(stmt).scalars().all()}


def list_bids_ranked(db: Session, order_id: int) -> list[models.Bid]:
    return list(db.execute(_lowest_bid_query(order_id)).scalars().all())


def create_bid(
    db: Session,
    *,
    order_id: int,
    supplier_id: int,
    price: Decimal,
    notes: str | None = None,
) -> models.Bid:
    bid = models.Bid(
        pooled_order_id=int(order_id),
        supplier_id=int(supplier_id),
        price_per_unit=price,
        notes=notes,
    )
    db.add(bid)
    db.flush()
    # created_at is server-assigned.
    db.refresh(bid)
    return bid


def delete_bid(db: Session, bid_id: int) -> None:
    bid = db.get(models.Bid, int(bid_id))
    if bid is not None:
        db.delete(bid)
        db.flush()


def reload_order(db: Session, order_id: int) -> models.PooledOrder:
    """Re-read an order after a bulk UPDATE so the ORM instance matches the row."""
    stmt = (
        select(models.PooledOrder)
        .where(models.PooledOrder.id == int(order_id))
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).unique().scalar_one()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit on success, roll back on any exception (which is re-raised)."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def _acquire_pg_order_lock(db: Session, order_id: int) -> None:
    if _dialect_name(db) != "postgresql":
        return
    # Released automatically at commit/rollback.
    db.execute(
        text("SELECT pg_advisory_xact_lock(:ns, :k)"),
        {"ns": _PG_ORDER_LOCK_NAMESPACE, "k": int(order_id)},
    )


@contextmanager
def order_transaction(db: Session, order_id: int) -> Iterator[Session]:
    """Serialize read-check-write sequences on one pooled order.

    Holds a process-local lock for the order for the whole transaction and, on
    PostgreSQL, a transaction-scoped advisory lock so other workers queue too.
    The transaction commits on success and rolls back on error.
    """

    lock = _ORDER_LOCKS[int(order_id) % _ORDER_LOCK_STRIPES]
    with lock:
        with unit_of_work(db):
            _acquire_pg_order_lock(db, order_id)
            yield db
