"""Unit tests for order receipt reconciliation (in-memory SQLite)."""
import uuid

import pytest
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql

from vendor_ingestion.db.models.inventory_item import InventoryItem
from vendor_ingestion.db.models.order import Order
from vendor_ingestion.db.operations import create_order_with_items
from vendor_ingestion.errors import (
    InvalidStatusTransition,
    OrderNotFound,
    ReconciliationExhausted,
    ValidationError,
)
from vendor_ingestion.models.parsed_order import LineItem, OrderHeader, ParsedOrder
from vendor_ingestion.models.reconciliation import InventoryStatus, OrderStatus
from vendor_ingestion.services.reconciliation import OrderReconciler, derive_order_status
from vendor_ingestion.services.reconciliation.reconciler import _locked_order


async def _create_order(session, count: int, account_id: str = "acct-1", order_number: str = "A-1"):
    parsed = ParsedOrder(
        vendor="safilo",
        order=OrderHeader(order_number=order_number, customer_name="TATUM EYECARE"),
        items=[LineItem(brand="CARRERA", model=f"CARRERA {8800 + i}", quantity=1) for i in range(count)],
    )
    order = await create_order_with_items(session, parsed, account_id)
    await session.commit()
    return order.id


async def _item_ids(session, order_id):
    result = await session.execute(
        select(InventoryItem.id)
        .where(InventoryItem.order_id == order_id)
        .order_by(InventoryItem.line_number)
    )
    return list(result.scalars().all())


class TestDeriveOrderStatus:
    """Test the aggregate status rule."""

    @pytest.mark.parametrize(
        "total,received,expected",
        [
            (36, 0, OrderStatus.PENDING),
            (36, 33, OrderStatus.PARTIAL),
            (36, 36, OrderStatus.CONFIRMED),
            (0, 0, OrderStatus.PENDING),
            (1, 1, OrderStatus.CONFIRMED),
        ],
    )
    def test_status_from_counts(self, total, received, expected):
        assert derive_order_status(total, received) == expected


class TestConfirm:
    """Test receipt confirmation."""

    @pytest.mark.asyncio
    async def test_partial_then_full_then_exhausted(self, db_session):
        """36 items: confirm 33 → partial, confirm 3 → confirmed, again → exhausted."""
        order_id = await _create_order(db_session, 36)
        item_ids = await _item_ids(db_session, order_id)
        reconciler = OrderReconciler(db_session)

        partial = await reconciler.confirm(order_id, item_ids[:33])
        assert partial.success is True
        assert partial.updated_count == 33
        assert partial.order_status == OrderStatus.PARTIAL
        assert partial.pending_items == 3
        assert partial.received_items == 33

        full = await reconciler.confirm(order_id, item_ids[33:])
        assert full.updated_count == 3
        assert full.order_status == OrderStatus.CONFIRMED
        assert full.pending_items == 0

        with pytest.raises(ReconciliationExhausted) as exc_info:
            await reconciler.confirm(order_id)
        assert exc_info.value.kind == "reconciliation_exhausted"
        assert exc_info.value.to_payload()["success"] is False

    @pytest.mark.asyncio
    async def test_exhausted_confirm_changes_nothing(self, db_session):
        order_id = await _create_order(db_session, 2)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id)

        with pytest.raises(ReconciliationExhausted):
            await reconciler.confirm(order_id)

        status = await reconciler.receipt_status(order_id)
        assert status.status == OrderStatus.CONFIRMED
        assert status.received_items == 2

    @pytest.mark.asyncio
    async def test_repeated_exhausted_confirms_leave_state_untouched(self, db_session):
        """Two exhausted confirms in a row: the second sees exactly what the first left."""
        order_id = await _create_order(db_session, 3)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id)
        before = await reconciler.receipt_status(order_id)

        with pytest.raises(ReconciliationExhausted):
            await reconciler.confirm(order_id)
        between = await reconciler.receipt_status(order_id)
        with pytest.raises(ReconciliationExhausted) as exc_info:
            await reconciler.confirm(order_id)
        after = await reconciler.receipt_status(order_id)

        assert before == between == after
        assert after.status == OrderStatus.CONFIRMED
        assert after.received_items == 3
        assert exc_info.value.to_payload()["success"] is False

    @pytest.mark.asyncio
    async def test_shipped_and_current_unreceived_rows_are_selected(self, db_session):
        """Rows with received=false, or received unset but status current, are confirmed."""
        order_id = await _create_order(db_session, 3)
        item_ids = await _item_ids(db_session, order_id)
        await db_session.execute(
            update(InventoryItem).where(InventoryItem.id == item_ids[0]).values(received=False)
        )
        await db_session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_ids[1])
            .values(status=InventoryStatus.CURRENT.value)
        )
        await db_session.commit()
        reconciler = OrderReconciler(db_session)

        pending = await reconciler.receipt_status(order_id)
        assert pending.received_items == 0
        assert pending.status == OrderStatus.PENDING

        result = await reconciler.confirm(order_id)

        assert result.updated_count == 3
        assert result.received_items == 3
        assert result.order_status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_confirm_all_at_once(self, db_session):
        order_id = await _create_order(db_session, 4)

        result = await OrderReconciler(db_session).confirm(str(order_id))

        assert result.updated_count == 4
        assert result.order_status == OrderStatus.CONFIRMED
        assert result.message == "Confirmed 4 item(s); order is confirmed"

    @pytest.mark.asyncio
    async def test_already_received_items_are_not_counted_twice(self, db_session):
        order_id = await _create_order(db_session, 3)
        item_ids = await _item_ids(db_session, order_id)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id, item_ids[:2])

        result = await reconciler.confirm(order_id, item_ids)

        assert result.updated_count == 1
        assert result.received_items == 3

    @pytest.mark.asyncio
    async def test_items_are_marked_received(self, db_session):
        order_id = await _create_order(db_session, 2)
        item_ids = await _item_ids(db_session, order_id)

        await OrderReconciler(db_session).confirm(order_id, item_ids[:1])

        result = await db_session.execute(
            select(InventoryItem.received, InventoryItem.status, InventoryItem.received_date)
            .where(InventoryItem.order_id == order_id)
            .order_by(InventoryItem.line_number)
        )
        rows = result.all()
        assert rows[0].received is True
        assert rows[0].status == InventoryStatus.CURRENT.value
        assert rows[0].received_date is not None
        assert rows[1].received is None
        assert rows[1].status == InventoryStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_unknown_order(self, db_session):
        reconciler = OrderReconciler(db_session)

        with pytest.raises(OrderNotFound):
            await reconciler.confirm(uuid.uuid4())
        with pytest.raises(OrderNotFound):
            await reconciler.confirm("not-a-uuid")

    @pytest.mark.asyncio
    async def test_invalid_item_id(self, db_session):
        order_id = await _create_order(db_session, 1)

        with pytest.raises(ValidationError):
            await OrderReconciler(db_session).confirm(order_id, ["bogus"])

    @pytest.mark.asyncio
    async def test_item_of_another_order_is_not_confirmed(self, db_session):
        first = await _create_order(db_session, 1, order_number="A-1")
        second = await _create_order(db_session, 1, order_number="A-2")
        other_items = await _item_ids(db_session, second)

        with pytest.raises(ReconciliationExhausted):
            await OrderReconciler(db_session).confirm(first, other_items)


class TestOrderViews:
    """Test revisiting orders."""

    @pytest.mark.asyncio
    async def test_partial_order_lists_unreceived_items(self, db_session):
        order_id = await _create_order(db_session, 5)
        item_ids = await _item_ids(db_session, order_id)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id, item_ids[:3])

        view = await reconciler.get_order(order_id)
        assert view.status == OrderStatus.PARTIAL
        assert [item.id for item in view.items] == item_ids[3:]
        assert view.total_items == 5
        assert view.pending_items == 2

        full = await reconciler.get_order(order_id, include_received=True)
        assert len(full.items) == 5

    @pytest.mark.asyncio
    async def test_pending_order_lists_everything(self, db_session):
        order_id = await _create_order(db_session, 3)

        view = await OrderReconciler(db_session).get_order(order_id)

        assert view.status == OrderStatus.PENDING
        assert len(view.items) == 3
        assert view.customer_name == "TATUM EYECARE"

    @pytest.mark.asyncio
    async def test_orders_by_account(self, db_session):
        await _create_order(db_session, 1, account_id="acct-1", order_number="A-1")
        await _create_order(db_session, 2, account_id="acct-1", order_number="A-2")
        await _create_order(db_session, 1, account_id="acct-2", order_number="B-1")

        views = await OrderReconciler(db_session).get_orders_by_account("acct-1")

        assert sorted(v.order_number for v in views) == ["A-1", "A-2"]
        assert sum(v.total_items for v in views) == 3


class TestArchive:
    """Test the confirmed → archived transition."""

    @pytest.mark.asyncio
    async def test_archive_confirmed_order(self, db_session):
        order_id = await _create_order(db_session, 2)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id)

        status = await reconciler.archive(order_id)

        assert status.status == OrderStatus.ARCHIVED
        result = await db_session.execute(
            select(InventoryItem.status).where(InventoryItem.order_id == order_id)
        )
        assert set(result.scalars().all()) == {InventoryStatus.ARCHIVED.value}

    @pytest.mark.asyncio
    async def test_archive_requires_confirmed(self, db_session):
        order_id = await _create_order(db_session, 2)
        item_ids = await _item_ids(db_session, order_id)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id, item_ids[:1])

        with pytest.raises(InvalidStatusTransition) as exc_info:
            await reconciler.archive(order_id)

        assert exc_info.value.context["from_status"] == "partial"
        assert exc_info.value.context["to_status"] == "archived"


class TestStatusConsistency:
    """Test that reads follow item receipts rather than the stored status."""

    @pytest.mark.asyncio
    async def test_stale_stored_status_is_not_reported(self, db_session):
        order_id = await _create_order(db_session, 2)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id)
        await db_session.execute(
            update(Order).where(Order.id == order_id).values(status=OrderStatus.PARTIAL.value)
        )
        await db_session.commit()

        assert (await reconciler.receipt_status(order_id)).status == OrderStatus.CONFIRMED
        view = await reconciler.get_order(order_id)
        assert view.status == OrderStatus.CONFIRMED
        assert len(view.items) == 2
        assert (await reconciler.archive(order_id)).status == OrderStatus.ARCHIVED

    @pytest.mark.asyncio
    async def test_stored_confirmed_with_unreceived_items_cannot_archive(self, db_session):
        order_id = await _create_order(db_session, 2)
        item_ids = await _item_ids(db_session, order_id)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id, item_ids[:1])
        await db_session.execute(
            update(Order).where(Order.id == order_id).values(status=OrderStatus.CONFIRMED.value)
        )
        await db_session.commit()

        assert (await reconciler.receipt_status(order_id)).status == OrderStatus.PARTIAL
        with pytest.raises(InvalidStatusTransition) as exc_info:
            await reconciler.archive(order_id)
        assert exc_info.value.context["from_status"] == "partial"

    @pytest.mark.asyncio
    async def test_archived_status_is_kept(self, db_session):
        order_id = await _create_order(db_session, 1)
        reconciler = OrderReconciler(db_session)
        await reconciler.confirm(order_id)
        await reconciler.archive(order_id)

        assert (await reconciler.receipt_status(order_id)).status == OrderStatus.ARCHIVED
        with pytest.raises(InvalidStatusTransition):
            await reconciler.archive(order_id)

    def test_order_row_is_locked_for_update(self):
        statement = _locked_order(uuid.uuid4()).compile(dialect=postgresql.dialect())

        assert "FOR UPDATE" in str(statement)
