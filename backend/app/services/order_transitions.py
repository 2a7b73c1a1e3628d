from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app import models
from app.models.domain import PooledOrderStatus


@dataclass(frozen=True)
class TransitionResult:
    updated: bool
    rowcount: int


def atomic_transition_order_status(
    *,
    db: Session,
    order_id: int,
    to_status: PooledOrderStatus,
    allowed_from: Iterable[PooledOrderStatus],
    updates: dict[str, Any] | None = None,
) -> TransitionResult:
    """Apply a pooled-order status transition with an atomic DB guard.

    A single conditional UPDATE keeps out-of-order transitions from being
    persisted even under concurrency:

        UPDATE pooled_orders
        SET status = :to_status, ...
        WHERE id = :order_id AND status IN (:allowed_from)

    Callers control commit/rollback.
    """

    update_values: dict[str, Any] = {"status": to_status}
    if updates:
        update_values.update(updates)

    rowcount = (
        db.query(models.PooledOrder)
        .filter(models.PooledOrder.id == int(order_id))
        .filter(models.PooledOrder.status.in_(set(allowed_from)))
        .update(update_values, synchronize_session=False)
    )

    return TransitionResult(updated=rowcount > 0, rowcount=int(rowcount or 0))
