from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class PooledOrderStatus(PyEnum):
    PREPARING = "PREPARING"
    AUCTION_OPEN = "AUCTION_OPEN"
    AUCTION_CLOSED = "AUCTION_CLOSED"
    AWARDED = "AWARDED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class VerificationStatus(PyEnum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class SupplierBidStatus(PyEnum):
    WINNING = "WINNING"
    OUTBID = "OUTBID"
    AWARDED = "AWARDED"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(64))
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="kg")
    description: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(String(512))


class AreaGroup(Base):
    __tablename__ = "area_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    area_name: Mapped[str] = mapped_column(String(255), nullable=False)
    city_name: Mapped[str | None] = mapped_column(String(128), index=True)


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), index=True)
    contact_phone: Mapped[str | None] = mapped_column(String(64))
    verification_status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus, native_enum=False),
        default=VerificationStatus.PENDING,
        nullable=False,
    )
    overall_rating: Mapped[Decimal | None] = mapped_column(Numeric(3, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    bids = relationship("Bid", back_populates="supplier")


class PooledOrder(Base):
    __tablename__ = "pooled_orders"
    __table_args__ = (
        # Award invariant: price and winning bid are recorded together or not at all.
        CheckConstraint(
            "(final_price_per_unit IS NULL AND winning_bid_id IS NULL)"
            " OR (final_price_per_unit IS NOT NULL AND winning_bid_id IS NOT NULL)",
            name="ck_pooled_orders_award_pair",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id"), index=True)
    area_group_id: Mapped[int | None] = mapped_column(ForeignKey("area_groups.id"), index=True)
    status: Mapped[PooledOrderStatus] = mapped_column(
        Enum(PooledOrderStatus, native_enum=False),
        default=PooledOrderStatus.PREPARING,
        nullable=False,
        index=True,
    )
    auction_ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_quantity_committed: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    final_price_per_unit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    winning_bid_id: Mapped[int | None] = mapped_column(
        ForeignKey("bids.id", use_alter=True, name="fk_pooled_orders_winning_bid_id"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", lazy="joined")
    area_group = relationship("AreaGroup", lazy="joined")
    bids = relationship(
        "Bid",
        back_populates="pooled_order",
        foreign_keys="Bid.pooled_order_id",
        order_by=lambda: [Bid.price_per_unit, Bid.created_at, Bid.id],
    )
    winning_bid = relationship("Bid", foreign_keys=[winning_bid_id], viewonly=True)


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        CheckConstraint("price_per_unit > 0", name="ck_bids_price_positive"),
        # Backs the lowest-bid lookup (price asc, earliest first).
        Index("ix_bids_order_price_created", "pooled_order_id", "price_per_unit", "created_at", "id"),
        # Cancelled bid ids must never be handed out again.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pooled_order_id: Mapped[int] = mapped_column(
        ForeignKey("pooled_orders.id"), nullable=False, index=True
    )
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), nullable=False, index=True)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    pooled_order = relationship("PooledOrder", back_populates="bids", foreign_keys=[pooled_order_id])
    supplier = relationship("Supplier", back_populates="bids")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    pooled_order_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    payload_json: Mapped[str | None] = mapped_column(Text)

    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        unique=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
