import threading
from datetime import timedelta
from decimal import Decimal

from app import models
from app.database import SessionLocal
from app.services import auction_service, bid_service
from app.services.auction_errors import AuctionDomainError, DecrementTooSmall


def _run_concurrently(target, args_list):
    barrier = threading.Barrier(len(args_list))
    results: list = [None] * len(args_list)

    def _worker(index, args):
        db = SessionLocal()
        try:
            barrier.wait(timeout=10)
            results[index] = target(db, *args)
        except Exception as exc:  # collected for assertions
            results[index] = exc
        finally:
            db.close()

    threads = [
        threading.Thread(target=_worker, args=(i, args)) for i, args in enumerate(args_list)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def _submit(db, order_id, supplier_id, price):
    bid = bid_service.submit_bid(
        db, order_id=order_id, supplier_id=supplier_id, price=price, min_decrement=50
    )
    return bid.id


def test_only_one_of_several_equal_undercuts_is_accepted(db_session, make_order, make_supplier):
    order = make_order()
    suppliers = [make_supplier(f"Supplier {i}") for i in range(6)]
    bid_service.submit_bid(
        db_session, order_id=order.id, supplier_id=suppliers[0].id, price=500, min_decrement=50
    )

    results = _run_concurrently(
        _submit, [(order.id, s.id, "450.00") for s in suppliers[1:]]
    )

    accepted = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(accepted) == 1
    assert len(rejected) == 4
    assert all(isinstance(r, DecrementTooSmall) for r in rejected)

    lowest = auction_service.get_current_lowest_bid(db_session, order.id)
    assert lowest.id == accepted[0]
    assert db_session.query(models.Bid).filter(models.Bid.pooled_order_id == order.id).count() == 2


def test_accepted_bids_always_respect_decrement_in_creation_order(
    db_session, make_order, make_supplier
):
    order = make_order()
    suppliers = [make_supplier(f"Supplier {i}") for i in range(8)]
    prices = ["1000", "990", "950", "940", "900", "880", "850", "700"]

    results = _run_concurrently(
        _submit, [(order.id, s.id, p) for s, p in zip(suppliers, prices)]
    )

    for r in results:
        assert isinstance(r, (int, AuctionDomainError)), r

    accepted = sorted(
        db_session.query(models.Bid).filter(models.Bid.pooled_order_id == order.id).all(),
        key=lambda b: b.id,
    )
    assert accepted
    for previous, current in zip(accepted, accepted[1:]):
        assert current.price_per_unit <= previous.price_per_unit - Decimal("50")


def test_concurrent_awards_agree_on_one_winner(db_session, make_order, make_supplier, place_bid):
    order = make_order(ends_in=timedelta(minutes=-1))
    supplier = make_supplier()
    place_bid(order, supplier, 500)
    winner = place_bid(order, supplier, 420)

    def _award(db, order_id):
        return auction_service.award_auction(db, order_id).winning_bid_id

    results = _run_concurrently(_award, [(order.id,)] * 4)

    assert results == [winner.id] * 4
    awarded = (
        db_session.query(models.AuditLog)
        .filter(models.AuditLog.action == "auction.awarded")
        .count()
    )
    assert awarded == 1
