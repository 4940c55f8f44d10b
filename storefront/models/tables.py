"""SQLAlchemy Core table definitions for the storefront schema.

Money columns hold integer cents. Rows are read back as plain mappings and
typed with the TypedDicts in storefront.models.order and storefront.models.driver.
"""

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa

metadata = sa.MetaData()


def utcnow() -> datetime:
    """Timezone-aware current time used for created/updated stamps."""
    return datetime.now(timezone.utc)


variants = sa.Table(
    "variants",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True, default=uuid.uuid4),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("sku", sa.String(64), nullable=True, unique=True),
    sa.Column("price_cents", sa.Integer, nullable=False),
    sa.Column("stock", sa.Integer, nullable=False, default=0),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, default=utcnow),
    sa.CheckConstraint("stock >= 0", name="ck_variants_stock_non_negative"),
    sa.CheckConstraint("price_cents >= 0", name="ck_variants_price_non_negative"),
)

drivers = sa.Table(
    "drivers",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True, default=uuid.uuid4),
    sa.Column("user_id", sa.Uuid, nullable=False, unique=True),
    sa.Column("vehicle_type", sa.String(50), nullable=True),
    sa.Column("license_plate", sa.String(20), nullable=True),
    sa.Column("available", sa.Boolean, nullable=False, default=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=utcnow),
)

driver_locations = sa.Table(
    "driver_locations",
    metadata,
    sa.Column("driver_id", sa.Uuid, sa.ForeignKey("drivers.id"), primary_key=True),
    sa.Column("lat", sa.Float, nullable=False),
    sa.Column("lng", sa.Float, nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, default=utcnow),
)

orders = sa.Table(
    "orders",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True, default=uuid.uuid4),
    sa.Column("user_id", sa.Uuid, nullable=False, index=True),
    sa.Column("status", sa.String(20), nullable=False, default="pending", index=True),
    sa.Column("subtotal_cents", sa.Integer, nullable=False),
    sa.Column("tip_cents", sa.Integer, nullable=False, default=0),
    sa.Column("tax_cents", sa.Integer, nullable=False, default=0),
    sa.Column("delivery_fee_cents", sa.Integer, nullable=False, default=0),
    sa.Column("total_cents", sa.Integer, nullable=False),
    sa.Column("currency", sa.String(3), nullable=False, default="usd"),
    sa.Column("delivery_address", sa.Text, nullable=False),
    sa.Column("delivery_instructions", sa.Text, nullable=True),
    sa.Column("driver_id", sa.Uuid, sa.ForeignKey("drivers.id"), nullable=True, index=True),
    sa.Column("payment_intent_id", sa.String(255), nullable=True, unique=True),
    sa.Column("delivery_photo_url", sa.Text, nullable=True),
    sa.Column("delivery_notes", sa.Text, nullable=True),
    sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=utcnow),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, default=utcnow),
    sa.CheckConstraint(
        "subtotal_cents >= 0 AND tip_cents >= 0 AND tax_cents >= 0 AND delivery_fee_cents >= 0",
        name="ck_orders_amounts_non_negative",
    ),
    sa.CheckConstraint(
        "total_cents = subtotal_cents + tip_cents + tax_cents + delivery_fee_cents",
        name="ck_orders_total_matches_breakdown",
    ),
)

order_items = sa.Table(
    "order_items",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True, default=uuid.uuid4),
    sa.Column("order_id", sa.Uuid, sa.ForeignKey("orders.id"), nullable=False, index=True),
    sa.Column("variant_id", sa.Uuid, sa.ForeignKey("variants.id"), nullable=False),
    sa.Column("quantity", sa.Integer, nullable=False),
    sa.Column("unit_price_cents", sa.Integer, nullable=False),
    sa.Column("line_total_cents", sa.Integer, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=utcnow),
    sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
)
