"""Receipt confirmation for ordered inventory.

Selection is on the item ``received`` flag only. Confirming is a single
conditional UPDATE, so two concurrent confirms can never count the same
item twice: the second one matches zero rows and raises
ReconciliationExhausted.

The order row is locked (SELECT ... FOR UPDATE) before its items change, so
concurrent confirms of one order serialize on the status write. Reads never
trust the stored value: status is derived from the aggregate receipt state,
and only ``archived`` is taken from the order row:

    received == 0          → pending
    0 < received < total   → partial
    received == total      → confirmed
"""
from datetime import date
from typing import Any, Iterable, List, Optional, Tuple
import uuid

import structlog
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vendor_ingestion.db.models.inventory_item import InventoryItem
from vendor_ingestion.db.models.order import Order
from vendor_ingestion.errors import (
    DatabaseError,
    DataIngestionError,
    InvalidStatusTransition,
    OrderNotFound,
    ReconciliationExhausted,
    ValidationError,
)
from vendor_ingestion.models.reconciliation import (
    ConfirmResult,
    InventoryItemView,
    InventoryStatus,
    OrderStatus,
    OrderView,
    ReceiptStatus,
)

logger = structlog.get_logger(__name__)


def derive_order_status(total_items: int, received_items: int) -> OrderStatus:
    """Order status implied by its item receipt counts."""
    if total_items <= 0 or received_items <= 0:
        return OrderStatus.PENDING
    if received_items >= total_items:
        return OrderStatus.CONFIRMED
    return OrderStatus.PARTIAL


def _current_status(order: Order, total_items: int, received_items: int) -> OrderStatus:
    if order.status == OrderStatus.ARCHIVED.value:
        return OrderStatus.ARCHIVED
    return derive_order_status(total_items, received_items)


def _locked_order(order_id: uuid.UUID):
    return (
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def _unreceived():
    return or_(InventoryItem.received.is_(None), InventoryItem.received.is_(False))


def _as_uuid(order_id: Any) -> uuid.UUID:
    if isinstance(order_id, uuid.UUID):
        return order_id
    try:
        return uuid.UUID(str(order_id))
    except ValueError:
        raise OrderNotFound(order_id)


def _item_uuids(item_ids: Iterable[Any]) -> List[uuid.UUID]:
    item_ids = list(item_ids)
    try:
        return [i if isinstance(i, uuid.UUID) else uuid.UUID(str(i)) for i in item_ids]
    except ValueError as e:
        raise ValidationError(f"Invalid inventory item id: {e}", {"item_ids": [str(i) for i in item_ids]}) from e


class OrderReconciler:
    """Receipt reconciliation bound to one async session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.log = logger.bind(component="order_reconciler")

    async def confirm(
        self,
        order_id: Any,
        item_ids: Optional[Iterable[Any]] = None,
    ) -> ConfirmResult:
        """Mark unreceived items of an order as received.

        Args:
            order_id: Order to reconcile
            item_ids: Restrict to these inventory rows (default: all of them)

        Returns:
            ConfirmResult with the new order status and item counts

        Raises:
            OrderNotFound: If the order does not exist
            ReconciliationExhausted: If no unreceived item matched; nothing
                is changed and the call must not be retried
            DatabaseError: If database operation fails
        """
        order_uuid = _as_uuid(order_id)
        try:
            order = await self._load_order(order_uuid, lock=True)

            stmt = (
                update(InventoryItem)
                .where(InventoryItem.order_id == order_uuid)
                .where(_unreceived())
            )
            if item_ids is not None:
                stmt = stmt.where(InventoryItem.id.in_(_item_uuids(item_ids)))
            stmt = (
                stmt.values(
                    received=True,
                    status=InventoryStatus.CURRENT.value,
                    received_date=date.today(),
                )
                .returning(InventoryItem.id)
                .execution_options(synchronize_session="fetch")
            )
            updated_ids = list((await self.session.execute(stmt)).scalars().all())

            if not updated_ids:
                await self.session.rollback()
                self.log.warning("confirm_exhausted", order_id=str(order_uuid))
                raise ReconciliationExhausted(order_uuid)

            total, received = await self._counts(order_uuid)
            status = derive_order_status(total, received)
            order.status = status.value
            await self.session.commit()

        except DataIngestionError:
            raise
        except Exception as e:
            await self.session.rollback()
            self.log.error(
                "confirm_failed",
                order_id=str(order_uuid),
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to confirm order items: {e}") from e

        self.log.info(
            "order_confirmed",
            order_id=str(order_uuid),
            updated_count=len(updated_ids),
            order_status=status.value,
            total_items=total,
            received_items=received,
        )
        return ConfirmResult(
            success=True,
            message=f"Confirmed {len(updated_ids)} item(s); order is {status.value}",
            updated_count=len(updated_ids),
            order_status=status,
            total_items=total,
            received_items=received,
            pending_items=total - received,
        )

    async def get_order(self, order_id: Any, include_received: bool = False) -> OrderView:
        """Order with its items.

        A partial order lists only its unreceived items unless
        ``include_received`` is set; counts always cover every item.
        """
        order_uuid = _as_uuid(order_id)
        try:
            order = await self._load_order(order_uuid)
            return await self._view(order, include_received)
        except DataIngestionError:
            raise
        except Exception as e:
            self.log.error(
                "get_order_failed",
                order_id=str(order_uuid),
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to load order: {e}") from e

    async def get_orders_by_account(
        self,
        account_id: str,
        include_received: bool = False,
    ) -> List[OrderView]:
        """Every order of an account, oldest first."""
        try:
            result = await self.session.execute(
                select(Order)
                .where(Order.account_id == account_id)
                .order_by(Order.created_at, Order.order_number)
            )
            return [await self._view(order, include_received) for order in result.scalars().all()]
        except Exception as e:
            self.log.error(
                "get_orders_by_account_failed",
                account_id=account_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to load account orders: {e}") from e

    async def receipt_status(self, order_id: Any) -> ReceiptStatus:
        """Counts and status only."""
        order_uuid = _as_uuid(order_id)
        try:
            order = await self._load_order(order_uuid)
            total, received = await self._counts(order_uuid)
        except DataIngestionError:
            raise
        except Exception as e:
            self.log.error(
                "receipt_status_failed",
                order_id=str(order_uuid),
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to read receipt status: {e}") from e

        return ReceiptStatus(
            order_id=order_uuid,
            status=_current_status(order, total, received),
            total_items=total,
            received_items=received,
            pending_items=total - received,
        )

    async def archive(self, order_id: Any) -> ReceiptStatus:
        """Archive a fully confirmed order and its items.

        Raises:
            OrderNotFound: If the order does not exist
            InvalidStatusTransition: If the order is not confirmed
        """
        order_uuid = _as_uuid(order_id)
        try:
            order = await self._load_order(order_uuid, lock=True)
            total, received = await self._counts(order_uuid)
            status = _current_status(order, total, received)
            if status != OrderStatus.CONFIRMED:
                await self.session.rollback()
                raise InvalidStatusTransition(
                    f"Order {order_uuid} cannot be archived from status '{status.value}'",
                    {
                        "order_id": str(order_uuid),
                        "from_status": status.value,
                        "to_status": OrderStatus.ARCHIVED.value,
                    },
                )

            await self.session.execute(
                update(InventoryItem)
                .where(InventoryItem.order_id == order_uuid)
                .values(status=InventoryStatus.ARCHIVED.value)
                .execution_options(synchronize_session="fetch")
            )
            order.status = OrderStatus.ARCHIVED.value
            await self.session.commit()

        except DataIngestionError:
            raise
        except Exception as e:
            await self.session.rollback()
            self.log.error(
                "archive_failed",
                order_id=str(order_uuid),
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to archive order: {e}") from e

        self.log.info("order_archived", order_id=str(order_uuid), total_items=total)
        return ReceiptStatus(
            order_id=order_uuid,
            status=OrderStatus.ARCHIVED,
            total_items=total,
            received_items=received,
            pending_items=total - received,
        )

    async def _load_order(self, order_id: uuid.UUID, lock: bool = False) -> Order:
        if lock:
            result = await self.session.execute(_locked_order(order_id))
            order = result.scalar_one_or_none()
        else:
            order = await self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def _counts(self, order_id: uuid.UUID) -> Tuple[int, int]:
        row = (
            await self.session.execute(
                select(
                    func.count(InventoryItem.id),
                    func.sum(case((InventoryItem.received.is_(True), 1), else_=0)),
                ).where(InventoryItem.order_id == order_id)
            )
        ).one()
        return int(row[0] or 0), int(row[1] or 0)

    async def _view(self, order: Order, include_received: bool) -> OrderView:
        total, received = await self._counts(order.id)
        status = _current_status(order, total, received)

        query = (
            select(InventoryItem)
            .where(InventoryItem.order_id == order.id)
            .order_by(InventoryItem.line_number)
        )
        if status == OrderStatus.PARTIAL and not include_received:
            query = query.where(_unreceived())
        items = (await self.session.execute(query)).scalars().all()

        return OrderView(
            id=order.id,
            account_id=order.account_id,
            vendor_id=order.vendor_id,
            order_number=order.order_number,
            customer_name=order.customer_name,
            order_date=order.order_date,
            rep_name=order.rep_name,
            status=status,
            total_items=total,
            received_items=received,
            pending_items=total - received,
            items=[InventoryItemView.model_validate(item) for item in items],
        )
