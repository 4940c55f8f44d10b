"""Inventory ledger: per-variant stock reservation and restoration.

Every method runs on a connection that is already inside the caller's
transaction, so a failure anywhere in the caller rolls the stock back too.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection

from storefront.models.order import StockLine
from storefront.models.tables import order_items, utcnow, variants
from storefront.services.errors import InsufficientStock, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservedLine:
    """A reserved item with the price captured at reservation time."""

    variant_id: UUID
    variant_name: str
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


def merge_lines(items: Iterable[StockLine]) -> list[StockLine]:
    """Combine duplicate variants, keeping first-appearance order."""
    merged: dict[UUID, int] = {}
    for item in items:
        merged[item["variant_id"]] = merged.get(item["variant_id"], 0) + item["quantity"]
    return [StockLine(variant_id=variant_id, quantity=qty) for variant_id, qty in merged.items()]


class InventoryLedger:
    """Stock operations against the variants table."""

    async def reserve(self, conn: AsyncConnection, items: Iterable[StockLine]) -> list[ReservedLine]:
        """Decrement stock for every item, all or nothing.

        Items are processed in declaration order. Each decrement is a single
        conditional update that only matches when enough stock remains, so
        stock can never go negative even with concurrent reservations.

        Args:
            conn: Connection inside an open transaction.
            items: Variant/quantity pairs to reserve.

        Returns:
            list[ReservedLine]: One line per distinct variant.

        Raises:
            NotFound: If a variant does not exist.
            InsufficientStock: If a variant has less stock than requested.
        """
        reserved: list[ReservedLine] = []
        for item in merge_lines(items):
            if item["quantity"] <= 0:
                raise ValueError("Quantity must be positive")

            result = await conn.execute(
                sa.update(variants)
                .where(variants.c.id == item["variant_id"])
                .where(variants.c.stock >= item["quantity"])
                .values(stock=variants.c.stock - item["quantity"], updated_at=utcnow())
                .returning(variants.c.name, variants.c.price_cents)
            )
            row = result.mappings().first()

            if row is None:
                existing = (
                    await conn.execute(
                        sa.select(variants.c.name, variants.c.stock).where(
                            variants.c.id == item["variant_id"]
                        )
                    )
                ).mappings().first()
                if existing is None:
                    raise NotFound("Variant", item["variant_id"])
                logger.info(
                    "Insufficient stock for %s: requested %d, available %d",
                    existing["name"],
                    item["quantity"],
                    existing["stock"],
                )
                raise InsufficientStock(existing["name"], item["variant_id"])

            reserved.append(
                ReservedLine(
                    variant_id=item["variant_id"],
                    variant_name=row["name"],
                    quantity=item["quantity"],
                    unit_price_cents=row["price_cents"],
                )
            )
        return reserved

    async def restore(self, conn: AsyncConnection, items: Iterable[StockLine]) -> None:
        """Return reserved quantities to stock.

        No upper bound is enforced; every restore pairs with an earlier reserve.
        """
        for item in items:
            await conn.execute(
                sa.update(variants)
                .where(variants.c.id == item["variant_id"])
                .values(stock=variants.c.stock + item["quantity"], updated_at=utcnow())
            )

    async def items_for_order(self, conn: AsyncConnection, order_id: UUID) -> list[StockLine]:
        """Load the stock lines recorded for an order."""
        result = await conn.execute(
            sa.select(order_items.c.variant_id, order_items.c.quantity)
            .where(order_items.c.order_id == order_id)
            .order_by(order_items.c.created_at, order_items.c.id)
        )
        return [
            StockLine(variant_id=row["variant_id"], quantity=row["quantity"])
            for row in result.mappings()
        ]

    async def set_stock(self, conn: AsyncConnection, variant_id: UUID, stock: int) -> dict:
        """Overwrite a variant's stock level (admin correction).

        Raises:
            ValueError: If stock is negative.
            NotFound: If the variant does not exist.
        """
        if stock < 0:
            raise ValueError("Stock must be a non-negative number")

        result = await conn.execute(
            sa.update(variants)
            .where(variants.c.id == variant_id)
            .values(stock=stock, updated_at=utcnow())
            .returning(*variants.c)
        )
        row = result.mappings().first()
        if row is None:
            raise NotFound("Variant", variant_id)
        return dict(row)
