"""create product, order and payment reconciliation tables

Revision ID: 3f9a1c2d7b40
Revises:
Create Date: 2026-10-18 10:02:11.518204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

order_status = sa.Enum("PENDING", "SHIPPED", "DELIVERED", "CANCELLED", name="orderstatus")
payment_status = sa.Enum("PENDING", "PAID", "FAILED", "REFUNDED", name="paymentstatus")
payment_method = sa.Enum("CARD", "UPI", "COD", "NETBANKING", name="paymentmethod")
email_kind = sa.Enum("ORDER_CONFIRMATION", "ORDER_SHIPPED", "ORDER_DELIVERED", name="emailkind")
email_status = sa.Enum("SENT", "FAILED", name="emailstatus")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "product",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("image", sa.String(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )
    op.create_index("ix_product_slug", "product", ["slug"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("customer_email", sa.String(), nullable=False),
        sa.Column("customer_phone", sa.String(), nullable=True),
        sa.Column("shipping_address_line1", sa.String(), nullable=False),
        sa.Column("shipping_address_line2", sa.String(), nullable=True),
        sa.Column("shipping_city", sa.String(), nullable=False),
        sa.Column("shipping_state", sa.String(), nullable=False),
        sa.Column("shipping_postal_code", sa.String(), nullable=False),
        sa.Column("shipping_country", sa.String(), nullable=False),
        sa.Column("billing_address_line1", sa.String(), nullable=False),
        sa.Column("billing_address_line2", sa.String(), nullable=True),
        sa.Column("billing_city", sa.String(), nullable=False),
        sa.Column("billing_state", sa.String(), nullable=False),
        sa.Column("billing_postal_code", sa.String(), nullable=False),
        sa.Column("billing_country", sa.String(), nullable=False),
        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column("shipping_cost", sa.Integer(), nullable=False),
        sa.Column("tax", sa.Integer(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("tracking_number", sa.String(), nullable=True),
        sa.Column("stripe_session_id", sa.String(), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(), nullable=True),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total = subtotal + shipping_cost + tax", name="ck_orders_total"),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_customer_email", "orders", ["customer_email"])
    op.create_index("ix_orders_stripe_session_id", "orders", ["stripe_session_id"])
    op.create_index("ix_orders_stripe_payment_intent_id", "orders", ["stripe_payment_intent_id"])

    op.create_table(
        "order_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "order_id",
            sa.String(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("product_slug", sa.String(), nullable=False),
        sa.Column("product_image", sa.String(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_order_item_order_id", "order_item", ["order_id"])
    op.create_index("ix_order_item_product_id", "order_item", ["product_id"])

    op.create_table(
        "order_event",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("order_id", sa.String(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False, server_default="system"),
    )

    # indexes for fast timeline queries
    op.create_index("ix_order_event_order_id", "order_event", ["order_id"])
    op.create_index("ix_order_event_event_type", "order_event", ["event_type"])

    op.create_table(
        "processed_webhook_event",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_processed_webhook_event_order_id", "processed_webhook_event", ["order_id"])

    op.create_table(
        "email_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("kind", email_kind, nullable=False),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("to_email", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("status", email_status, nullable=False),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_email_log_kind", "email_log", ["kind"])
    op.create_index("ix_email_log_order_id", "email_log", ["order_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_email_log_order_id", table_name="email_log")
    op.drop_index("ix_email_log_kind", table_name="email_log")
    op.drop_table("email_log")

    op.drop_index("ix_processed_webhook_event_order_id", table_name="processed_webhook_event")
    op.drop_table("processed_webhook_event")

    op.drop_index("ix_order_event_event_type", table_name="order_event")
    op.drop_index("ix_order_event_order_id", table_name="order_event")
    op.drop_table("order_event")

    op.drop_index("ix_order_item_product_id", table_name="order_item")
    op.drop_index("ix_order_item_order_id", table_name="order_item")
    op.drop_table("order_item")

    op.drop_index("ix_orders_stripe_payment_intent_id", table_name="orders")
    op.drop_index("ix_orders_stripe_session_id", table_name="orders")
    op.drop_index("ix_orders_customer_email", table_name="orders")
    op.drop_index("ix_orders_order_number", table_name="orders")
    op.drop_table("orders")

    op.drop_index("ix_product_slug", table_name="product")
    op.drop_table("product")

    bind = op.get_bind()
    for enum in (email_status, email_kind, payment_method, payment_status, order_status):
        enum.drop(bind, checkfirst=True)
