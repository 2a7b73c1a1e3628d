from datetime import timedelta
from decimal import Decimal

import pytest

from app import models
from app.services import auction_service, bid_service
from app.services.auction_errors import AuctionStillActive, NotFound

EXPIRED = timedelta(minutes=-5)


def _assert_award_invariant(order: models.PooledOrder) -> None:
    awarded = order.status == models.PooledOrderStatus.AWARDED
    assert (order.final_price_per_unit is not None) == awarded
    assert (order.winning_bid_id is not None) == awarded


def test_expired_auction_without_bids_closes(db_session, make_order):
    order = make_order(ends_in=EXPIRED)

    result = auction_service.award_auction(db_session, order.id)

    assert result.status == models.PooledOrderStatus.AUCTION_CLOSED
    assert result.winning_bid_id is None
    assert result.final_price_per_unit is None
    _assert_award_invariant(result)


def test_expired_auction_awards_lowest_bid(db_session, make_order, make_supplier, place_bid):
    order = make_order(ends_in=EXPIRED)
    supplier = make_supplier()
    b500 = place_bid(order, supplier, 500)
    b450 = place_bid(order, supplier, 450)
    b400 = place_bid(order, supplier, 400)

    result = auction_service.award_auction(db_session, order.id)

    assert result.status == models.PooledOrderStatus.AWARDED
    assert result.winning_bid_id == b400.id
    assert result.final_price_per_unit == Decimal("400.00")
    _assert_award_invariant(result)

    statuses = {
        bid.id: bid_service.get_supplier_bid_status(db_session, bid.id)
        for bid in (b500, b450, b400)
    }
    assert statuses[b400.id].status == models.SupplierBidStatus.AWARDED
    assert statuses[b400.id].is_winning is True
    assert statuses[b450.id].status == models.SupplierBidStatus.OUTBID
    assert statuses[b500.id].status == models.SupplierBidStatus.OUTBID


@pytest.mark.parametrize("bid_prices", [[], [500], [500, 450]])
def test_active_auction_cannot_be_awarded(
    db_session, make_order, make_supplier, place_bid, bid_prices
):
    order = make_order()
    supplier = make_supplier()
    for price in bid_prices:
        place_bid(order, supplier, price)

    with pytest.raises(AuctionStillActive) as excinfo:
        auction_service.award_auction(db_session, order.id)
    assert str(excinfo.value) == "Auction is still active; cannot award yet"

    db_session.refresh(order)
    assert order.status == models.PooledOrderStatus.AUCTION_OPEN
    assert order.winning_bid_id is None


def test_award_accepts_an_explicit_clock(db_session, make_order, make_supplier, place_bid):
    order = make_order(ends_in=timedelta(hours=1))
    supplier = make_supplier()
    bid = place_bid(order, supplier, 300)
    ends_at = auction_service.as_utc(order.auction_ends_at)

    with pytest.raises(AuctionStillActive):
        auction_service.award_auction(db_session, order.id, now=ends_at - timedelta(seconds=1))

    result = auction_service.award_auction(db_session, order.id, now=ends_at)
    assert result.winning_bid_id == bid.id


def test_award_unknown_order(db_session):
    with pytest.raises(NotFound) as excinfo:
        auction_service.award_auction(db_session, 777)
    assert str(excinfo.value) == "Pooled order not found"


@pytest.mark.parametrize(
    "status",
    [
        models.PooledOrderStatus.PREPARING,
        models.PooledOrderStatus.AUCTION_CLOSED,
        models.PooledOrderStatus.CANCELLED,
    ],
)
def test_award_on_non_open_order_is_a_noop(db_session, make_order, status):
    order = make_order(status=status, ends_in=timedelta(hours=1))

    result = auction_service.award_auction(db_session, order.id)

    assert result.status == status
    assert result.winning_bid_id is None


def test_award_on_non_open_order_with_bids_is_a_noop(
    db_session, make_order, make_supplier, place_bid
):
    order = make_order(status=models.PooledOrderStatus.CANCELLED, ends_in=EXPIRED)
    supplier = make_supplier()
    place_bid(order, supplier, 100)

    result = auction_service.award_auction(db_session, order.id)

    assert result.status == models.PooledOrderStatus.CANCELLED
    _assert_award_invariant(result)


def test_reawarding_keeps_the_original_winner(db_session, make_order, make_supplier, place_bid):
    order = make_order(ends_in=EXPIRED)
    supplier = make_supplier()
    winner = place_bid(order, supplier, 400)
    auction_service.award_auction(db_session, order.id)

    # A stray lower row must not change the recorded outcome; it only ranks lowest.
    stray = place_bid(order, supplier, 10)
    again = auction_service.award_auction(db_session, order.id)

    assert again.status == models.PooledOrderStatus.AWARDED
    assert again.winning_bid_id == winner.id
    assert again.final_price_per_unit == Decimal("400.00")
    assert bid_service.get_supplier_bid_status(db_session, winner.id).status == (
        models.SupplierBidStatus.AWARDED
    )
    assert bid_service.get_supplier_bid_status(db_session, stray.id).status == (
        models.SupplierBidStatus.WINNING
    )


def test_award_and_close_are_audited_once(db_session, make_order, make_supplier, place_bid):
    with_bids = make_order(ends_in=EXPIRED)
    without_bids = make_order(ends_in=EXPIRED)
    place_bid(with_bids, make_supplier(), 250)

    auction_service.award_auction(db_session, with_bids.id, actor_id="ops")
    auction_service.award_auction(db_session, with_bids.id, actor_id="ops")
    auction_service.award_auction(db_session, without_bids.id)

    actions = [
        (log.action, log.pooled_order_id)
        for log in db_session.query(models.AuditLog).order_by(models.AuditLog.id).all()
    ]
    assert actions == [
        ("auction.awarded", with_bids.id),
        ("auction.closed", without_bids.id),
    ]


def test_award_expired_auctions_batch(db_session, make_order, make_supplier, place_bid):
    supplier = make_supplier()
    to_award = make_order(ends_in=EXPIRED)
    place_bid(to_award, supplier, 320)
    to_close = make_order(ends_in=timedelta(minutes=-10))
    still_open = make_order()
    make_order(status=models.PooledOrderStatus.PREPARING, ends_in=EXPIRED)

    summary = auction_service.award_expired_auctions(db_session)

    assert summary.awarded == [to_award.id]
    assert summary.closed == [to_close.id]
    assert summary.failed == []

    db_session.refresh(still_open)
    assert still_open.status == models.PooledOrderStatus.AUCTION_OPEN

    second = auction_service.award_expired_auctions(db_session)
    assert second.awarded == [] and second.closed == []


def test_award_expired_auctions_dry_run_and_limit(db_session, make_order):
    first = make_order(ends_in=timedelta(minutes=-30))
    second = make_order(ends_in=timedelta(minutes=-20))

    dry = auction_service.award_expired_auctions(db_session, dry_run=True)
    assert dry.skipped == [first.id, second.id]
    db_session.refresh(first)
    assert first.status == models.PooledOrderStatus.AUCTION_OPEN

    limited = auction_service.award_expired_auctions(db_session, limit=1)
    assert limited.closed == [first.id]
    db_session.refresh(second)
    assert second.status == models.PooledOrderStatus.AUCTION_OPEN


def test_award_pair_constraint_rejects_half_awarded_rows(db_session, make_order):
    from sqlalchemy.exc import IntegrityError

    order = make_order()
    order.final_price_per_unit = Decimal("10.00")

    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
