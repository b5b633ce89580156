"""InventoryItem ORM model: one ordered frame awaiting or past receipt."""
from sqlalchemy import String, ForeignKey, Integer, Numeric, Boolean, Date, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from vendor_ingestion.db.base import Base, UUIDMixin, TimestampMixin
from decimal import Decimal
from datetime import date
from typing import TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from vendor_ingestion.db.models.order import Order


class InventoryItem(Base, UUIDMixin, TimestampMixin):
    """Inventory row created from a parsed order line.

    ``received`` is tri-state: NULL (never shipped / untouched), false
    (shipped, unconfirmed) and true (receipt confirmed). Reconciliation
    selects rows on this flag only, never on ``status``.
    """

    __tablename__ = "inventory"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'current', 'archived', 'sold')",
            name="check_inventory_status",
        ),
        CheckConstraint("quantity >= 0", name="check_inventory_quantity"),
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    brand: Mapped[str | None] = mapped_column(String(255), nullable=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    variant: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(255), nullable=True)
    color_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    wholesale_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    msrp: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    upc: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(255), nullable=True)

    received: Mapped[bool | None] = mapped_column(Boolean, nullable=True, index=True)
    received_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="pending")

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<InventoryItem(id={self.id}, model='{self.model}', received={self.received}, status='{self.status}')>"
