"""Order ORM model with receipt-derived status."""
from sqlalchemy import String, Integer, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from vendor_ingestion.db.base import Base, UUIDMixin, TimestampMixin
from decimal import Decimal
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from vendor_ingestion.db.models.inventory_item import InventoryItem


class Order(Base, UUIDMixin, TimestampMixin):
    """A vendor order placed for an account.

    ``status`` is derived from the receipt flags of the order's inventory
    rows and rewritten whenever they change; ``archived`` is the only value
    set directly.
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'partial', 'confirmed', 'archived')",
            name="check_order_status",
        ),
    )

    account_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    order_number: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    order_date: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rep_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_pieces: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="pending",
        index=True,
    )

    # Relationships
    items: Mapped[List["InventoryItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="InventoryItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, vendor='{self.vendor_id}', number='{self.order_number}', status='{self.status}')>"
