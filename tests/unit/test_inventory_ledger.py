"""Unit tests for stock reservation and restoration."""

import asyncio
import uuid

import pytest

from storefront.core.database import Database
from storefront.models.order import StockLine
from storefront.services.errors import InsufficientStock, NotFound
from storefront.services.inventory_ledger import InventoryLedger, merge_lines


@pytest.fixture
def ledger() -> InventoryLedger:
    return InventoryLedger()


def line(variant_id: uuid.UUID, quantity: int) -> StockLine:
    return StockLine(variant_id=variant_id, quantity=quantity)


class TestMergeLines:
    """Tests for duplicate variant merging."""

    def test_duplicates_are_summed_in_first_seen_order(self) -> None:
        first, second = uuid.uuid4(), uuid.uuid4()

        merged = merge_lines([line(first, 1), line(second, 2), line(first, 3)])

        assert merged == [line(first, 4), line(second, 2)]

    def test_empty(self) -> None:
        assert merge_lines([]) == []


class TestReserve:
    """Tests for InventoryLedger.reserve."""

    @pytest.mark.asyncio
    async def test_reserve_decrements_and_captures_price(
        self, ledger: InventoryLedger, database: Database, seeder
    ) -> None:
        variant_id = seeder.variant(name="Oat Milk", price_cents=450, stock=5)

        async with database.transaction() as conn:
            reserved = await ledger.reserve(conn, [line(variant_id, 2)])

        assert len(reserved) == 1
        assert reserved[0].variant_name == "Oat Milk"
        assert reserved[0].unit_price_cents == 450
        assert reserved[0].line_total_cents == 900
        assert seeder.stock(variant_id) == 3

    @pytest.mark.asyncio
    async def test_reserve_is_all_or_nothing(
        self, ledger: InventoryLedger, database: Database, seeder
    ) -> None:
        plenty = seeder.variant(name="Plenty", stock=10)
        scarce = seeder.variant(name="Scarce", stock=1)

        with pytest.raises(InsufficientStock) as exc_info:
            async with database.transaction() as conn:
                await ledger.reserve(conn, [line(plenty, 3), line(scarce, 2)])

        assert exc_info.value.variant_name == "Scarce"
        assert seeder.stock(plenty) == 10
        assert seeder.stock(scarce) == 1

    @pytest.mark.asyncio
    async def test_duplicate_lines_are_checked_together(
        self, ledger: InventoryLedger, database: Database, seeder
    ) -> None:
        variant_id = seeder.variant(stock=3)

        with pytest.raises(InsufficientStock):
            async with database.transaction() as conn:
                await ledger.reserve(conn, [line(variant_id, 2), line(variant_id, 2)])

        assert seeder.stock(variant_id) == 3

    @pytest.mark.asyncio
    async def test_exact_stock_can_be_reserved(
        self, ledger: InventoryLedger, database: Database, seeder
    ) -> None:
        variant_id = seeder.variant(stock=2)

        async with database.transaction() as conn:
            await ledger.reserve(conn, [line(variant_id, 2)])

        assert seeder.stock(variant_id) == 0

    @pytest.mark.asyncio
    async def test_unknown_variant(self, ledger: InventoryLedger, database: Database, seeder) -> None:
        with pytest.raises(NotFound):
            async with database.transaction() as conn:
                await ledger.reserve(conn, [line(uuid.uuid4(), 1)])

    @pytest.mark.asyncio
    async def test_non_positive_quantity(self, ledger: InventoryLedger, database: Database, seeder) -> None:
        variant_id = seeder.variant(stock=5)

        with pytest.raises(ValueError):
            async with database.transaction() as conn:
                await ledger.reserve(conn, [line(variant_id, 0)])

        assert seeder.stock(variant_id) == 5

    @pytest.mark.asyncio
    async def test_concurrent_reservations_never_oversell(
        self, ledger: InventoryLedger, database: Database, seeder
    ) -> None:
        variant_id = seeder.variant(stock=3)

        async def reserve_one() -> None:
            async with database.transaction() as conn:
                await ledger.reserve(conn, [line(variant_id, 1)])

        results = await asyncio.gather(*(reserve_one() for _ in range(6)), return_exceptions=True)

        assert sum(1 for result in results if result is None) == 3
        assert sum(1 for result in results if isinstance(result, InsufficientStock)) == 3
        assert seeder.stock(variant_id) == 0


class TestRestoreAndAdjust:
    """Tests for restore, items_for_order and set_stock."""

    @pytest.mark.asyncio
    async def test_restore_order_items(self, ledger: InventoryLedger, database: Database, seeder) -> None:
        first = seeder.variant(stock=1)
        second = seeder.variant(stock=0)
        order_id = seeder.order(uuid.uuid4(), items=[(first, 2, 100), (second, 3, 200)])

        async with database.transaction() as conn:
            lines = await ledger.items_for_order(conn, order_id)
            await ledger.restore(conn, lines)

        assert sorted(item["quantity"] for item in lines) == [2, 3]
        assert seeder.stock(first) == 3
        assert seeder.stock(second) == 3

    @pytest.mark.asyncio
    async def test_set_stock(self, ledger: InventoryLedger, database: Database, seeder) -> None:
        variant_id = seeder.variant(stock=4)

        async with database.transaction() as conn:
            variant = await ledger.set_stock(conn, variant_id, 12)

        assert variant["stock"] == 12
        assert seeder.stock(variant_id) == 12

    @pytest.mark.asyncio
    async def test_set_stock_rejects_negative(self, ledger: InventoryLedger, database: Database, seeder) -> None:
        variant_id = seeder.variant(stock=4)

        with pytest.raises(ValueError):
            async with database.transaction() as conn:
                await ledger.set_stock(conn, variant_id, -1)

        assert seeder.stock(variant_id) == 4

    @pytest.mark.asyncio
    async def test_set_stock_unknown_variant(self, ledger: InventoryLedger, database: Database, seeder) -> None:
        with pytest.raises(NotFound):
            async with database.transaction() as conn:
                await ledger.set_stock(conn, uuid.uuid4(), 1)
