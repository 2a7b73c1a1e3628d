"""init auction tables

Revision ID: 20261018_0001_init_auction_tables
Revises: None
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_0001_init_auction_tables"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values: str, name: str) -> sa.Enum:
    # Stored as VARCHAR on every backend so new states never need ALTER TYPE.
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=False)


def upgrade() -> None:
    order_status_enum = _enum(
        "PREPARING",
        "AUCTION_OPEN",
        "AUCTION_CLOSED",
        "AWARDED",
        "COMPLETED",
        "CANCELLED",
        name="pooledorderstatus",
    )
    verification_enum = _enum("PENDING", "VERIFIED", "REJECTED", name="verificationstatus")

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("grade", sa.String(length=64)),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("image_url", sa.String(length=512)),
    )

    op.create_table(
        "area_groups",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("area_name", sa.String(length=255), nullable=False),
        sa.Column("city_name", sa.String(length=128)),
    )
    op.create_index("ix_area_groups_city_name", "area_groups", ["city_name"])

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("contact_email", sa.String(length=255)),
        sa.Column("contact_phone", sa.String(length=64)),
        sa.Column("verification_status", verification_enum, nullable=False),
        sa.Column("overall_rating", sa.Numeric(3, 2)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_suppliers_contact_email", "suppliers", ["contact_email"])

    op.create_table(
        "pooled_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id")),
        sa.Column("area_group_id", sa.Integer(), sa.ForeignKey("area_groups.id")),
        sa.Column("status", order_status_enum, nullable=False),
        sa.Column("auction_ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_quantity_committed", sa.Numeric(14, 2), nullable=False),
        sa.Column("final_price_per_unit", sa.Numeric(12, 2)),
        sa.Column("winning_bid_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "(final_price_per_unit IS NULL AND winning_bid_id IS NULL)"
            " OR (final_price_per_unit IS NOT NULL AND winning_bid_id IS NOT NULL)",
            name="ck_pooled_orders_award_pair",
        ),
    )
    op.create_index("ix_pooled_orders_product_id", "pooled_orders", ["product_id"])
    op.create_index("ix_pooled_orders_area_group_id", "pooled_orders", ["area_group_id"])
    op.create_index("ix_pooled_orders_status", "pooled_orders", ["status"])

    op.create_table(
        "bids",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "pooled_order_id", sa.Integer(), sa.ForeignKey("pooled_orders.id"), nullable=False
        ),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column("price_per_unit", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("price_per_unit > 0", name="ck_bids_price_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_bids_pooled_order_id", "bids", ["pooled_order_id"])
    op.create_index("ix_bids_supplier_id", "bids", ["supplier_id"])
    op.create_index(
        "ix_bids_order_price_created",
        "bids",
        ["pooled_order_id", "price_per_unit", "created_at", "id"],
    )

    # pooled_orders <-> bids is a cycle; the award FK is added once both tables exist.
    with op.batch_alter_table("pooled_orders") as batch:
        batch.create_foreign_key(
            "fk_pooled_orders_winning_bid_id", "bids", ["winning_bid_id"], ["id"]
        )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("pooled_order_id", sa.Integer(), nullable=True),
        sa.Column("payload_json", sa.Text()),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=256), nullable=True),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_pooled_order_id", "audit_logs", ["pooled_order_id"])
    op.create_index("ix_audit_logs_request_id", "audit_logs", ["request_id"])
    op.create_index(
        "ix_audit_logs_idempotency_key", "audit_logs", ["idempotency_key"], unique=True
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    with op.batch_alter_table("pooled_orders") as batch:
        batch.drop_constraint("fk_pooled_orders_winning_bid_id", type_="foreignkey")
    op.drop_table("bids")
    op.drop_table("pooled_orders")
    op.drop_table("suppliers")
    op.drop_table("area_groups")
    op.drop_table("products")
