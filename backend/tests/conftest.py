import os
import tempfile

# CRITICAL: Set environment variables BEFORE any app imports
# These must be set before app.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"test_poolbid_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests
os.environ.pop("MIN_BID_DECREMENT", None)

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

# Now import app modules - they will use the test DATABASE_URL
from app import models  # noqa: E402
from app.database import Base, engine as app_engine, get_db  # noqa: E402
from app.main import app  # noqa: E402

# Use the same engine that the app uses
TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True
)


def override_get_db():
    """Test database session that uses the test engine."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """
    Create all tables before each test and clean up after.
    Also restores dependency overrides to keep tests isolated.
    """
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def make_supplier(db_session):
    def _make(
        name: str = "Acme Rice Traders",
        status: models.VerificationStatus = models.VerificationStatus.VERIFIED,
    ) -> models.Supplier:
        supplier = models.Supplier(business_name=name, verification_status=status)
        db_session.add(supplier)
        db_session.commit()
        db_session.refresh(supplier)
        return supplier

    return _make


@pytest.fixture
def make_order(db_session):
    def _make(
        status: models.PooledOrderStatus = models.PooledOrderStatus.AUCTION_OPEN,
        ends_in: timedelta = timedelta(hours=2),
        area_group: models.AreaGroup | None = None,
    ) -> models.PooledOrder:
        product = models.Product(name="Basmati Rice", grade="A", unit="kg")
        db_session.add(product)
        db_session.flush()
        order = models.PooledOrder(
            product_id=product.id,
            area_group_id=area_group.id if area_group is not None else None,
            status=status,
            auction_ends_at=utcnow() + ends_in,
            total_quantity_committed=Decimal("1200"),
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def place_bid(db_session):
    """Insert a bid row directly, bypassing validation."""

    def _place(
        order: models.PooledOrder,
        supplier: models.Supplier,
        price,
        created_at: datetime | None = None,
    ) -> models.Bid:
        bid = models.Bid(
            pooled_order_id=order.id,
            supplier_id=supplier.id,
            price_per_unit=Decimal(str(price)),
        )
        if created_at is not None:
            bid.created_at = created_at
        db_session.add(bid)
        db_session.commit()
        db_session.refresh(bid)
        return bid

    return _place
