"""CatalogEntry ORM model: one known frame variant per vendor."""
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from vendor_ingestion.db.base import Base, UUIDMixin
from decimal import Decimal
from datetime import date, datetime
from typing import Dict, Any


class CatalogEntry(Base, UUIDMixin):
    """Shared catalog entry learned from orders, vendor APIs or manual edits.

    Identity is (vendor_id, model_key, color_key, size_key); the key columns
    hold normalized (trimmed, whitespace-collapsed, uppercased) values so
    that repeated orders of the same variant hit the same row.

    Attributes:
        confidence_score: 0-100 trust in the stored attributes; only a write
            of equal or higher confidence may replace them
        verified: Set once a manual or API source confirmed the entry
        data_source: web_scrape, api, manual or email_parse
        times_ordered: Incremented on every write for the key
    """

    __tablename__ = "vendor_catalog"
    __table_args__ = (
        UniqueConstraint(
            "vendor_id", "model_key", "color_key", "size_key",
            name="unique_vendor_catalog_key",
        ),
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="check_confidence_score",
        ),
        CheckConstraint(
            "data_source IN ('web_scrape', 'api', 'manual', 'email_parse')",
            name="check_data_source",
        ),
    )

    vendor_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    brand: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str | None] = mapped_column(String(255), nullable=True)
    color_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    eye_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bridge: Mapped[int | None] = mapped_column(Integer, nullable=True)
    temple: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Normalized lookup key
    model_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    color_key: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    size_key: Mapped[str] = mapped_column(String(50), nullable=False, server_default="")

    sku: Mapped[str | None] = mapped_column(String(255), nullable=True)
    upc: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    ean: Mapped[str | None] = mapped_column(String(50), nullable=True)
    wholesale_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    msrp: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    material: Mapped[str | None] = mapped_column(String(100), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(50), nullable=True)
    in_stock: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    availability_status: Mapped[str | None] = mapped_column(String(100), nullable=True)

    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    data_source: Mapped[str] = mapped_column(String(20), nullable=False)
    times_ordered: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    first_seen_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    # Use 'meta' as Python attribute name, but map to 'metadata' column in database
    meta: Mapped[Dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<CatalogEntry(vendor='{self.vendor_id}', model='{self.model}', "
            f"color='{self.color_key}', size='{self.size_key}', times_ordered={self.times_ordered})>"
        )
