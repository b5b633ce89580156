"""Database operations for the vendor order ingestion pipeline.

Order persistence and the operator-facing ingestion error log. Catalog
writes live in ``services.catalog``; receipt updates in
``services.reconciliation``.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List
import structlog

from vendor_ingestion.db.models.order import Order
from vendor_ingestion.db.models.inventory_item import InventoryItem
from vendor_ingestion.db.models.ingestion_log import IngestionLog
from vendor_ingestion.errors.exceptions import DatabaseError, ErrorRecord
from vendor_ingestion.models.parsed_order import ParsedOrder
from vendor_ingestion.models.reconciliation import InventoryStatus, OrderStatus

logger = structlog.get_logger(__name__)


async def create_order_with_items(
    session: AsyncSession,
    parsed: ParsedOrder,
    account_id: str,
) -> Order:
    """Persist a parsed order and one inventory row per line item.

    Items start untouched (``received`` NULL, status pending) and the order
    starts pending. The caller owns the transaction.

    Args:
        session: Async database session
        parsed: Parsed vendor order
        account_id: Owning account

    Returns:
        Order instance with its items

    Raises:
        DatabaseError: If database operation fails
    """
    try:
        order = Order(
            account_id=account_id,
            vendor_id=parsed.vendor,
            order_number=parsed.order.order_number,
            account_number=parsed.account_number,
            customer_name=parsed.order.customer_name,
            order_date=parsed.order.order_date,
            rep_name=parsed.order.rep_name,
            total_pieces=parsed.order.total_pieces,
            total_value=parsed.order.total_value,
            status=OrderStatus.PENDING.value,
        )
        order.items = [
            InventoryItem(
                account_id=account_id,
                vendor_id=parsed.vendor,
                line_number=index,
                brand=item.brand,
                model=item.model,
                variant=item.variant,
                color=item.color,
                color_code=item.color_code,
                size=item.size,
                quantity=item.quantity,
                wholesale_price=item.unit_price,
                msrp=item.msrp,
                upc=item.upc,
                sku=item.sku,
                received=None,
                status=InventoryStatus.PENDING.value,
            )
            for index, item in enumerate(parsed.items)
        ]
        session.add(order)
        await session.flush()  # Flush to get the IDs

        logger.info(
            "order_created",
            order_id=str(order.id),
            vendor_id=parsed.vendor,
            order_number=parsed.order.order_number,
            account_id=account_id,
            items=len(order.items),
        )
        return order

    except Exception as e:
        logger.error(
            "create_order_failed",
            vendor_id=parsed.vendor,
            order_number=parsed.order.order_number,
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseError(f"Failed to create order: {e}") from e


async def log_ingestion_error(
    session: AsyncSession,
    record: ErrorRecord,
    vendor_id: Optional[str] = None,
    document_ref: Optional[str] = None,
) -> IngestionLog:
    """Write a structured error record to ingestion_logs.

    Raises:
        DatabaseError: If database operation fails
    """
    try:
        log_entry = IngestionLog(
            kind=record.kind,
            message=record.message,
            context=record.context or None,
            vendor_id=vendor_id,
            document_ref=document_ref,
        )
        session.add(log_entry)
        await session.flush()

        logger.debug(
            "ingestion_error_logged",
            ingestion_log_id=str(log_entry.id),
            kind=record.kind,
            vendor_id=vendor_id,
        )
        return log_entry

    except Exception as e:
        logger.error(
            "log_ingestion_error_failed",
            kind=record.kind,
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseError(f"Failed to log ingestion error: {e}") from e


async def get_ingestion_logs(
    session: AsyncSession,
    kind: Optional[str] = None,
    vendor_id: Optional[str] = None,
    limit: int = 100,
) -> List[IngestionLog]:
    """Most recent ingestion log entries, optionally filtered."""
    query = select(IngestionLog).order_by(IngestionLog.created_at.desc()).limit(limit)
    if kind is not None:
        query = query.where(IngestionLog.kind == kind)
    if vendor_id is not None:
        query = query.where(IngestionLog.vendor_id == vendor_id)
    try:
        result = await session.execute(query)
        return list(result.scalars().all())
    except Exception as e:
        logger.error(
            "get_ingestion_logs_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseError(f"Failed to read ingestion logs: {e}") from e
