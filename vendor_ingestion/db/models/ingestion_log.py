"""IngestionLog ORM model for operator-visible structured errors."""
from sqlalchemy import JSON, String, Text, func, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from vendor_ingestion.db.base import Base, UUIDMixin
from datetime import datetime
from typing import Optional, Dict, Any


class IngestionLog(Base, UUIDMixin):
    """One structured error raised while ingesting a document.

    ``kind`` mirrors the error taxonomy (detection_ambiguous,
    unknown_vendor_format, parse_failure, ...).
    """

    __tablename__ = "ingestion_logs"

    kind: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    vendor_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    document_ref: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        doc="Subject or attachment name of the source document"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<IngestionLog(id={self.id}, kind='{self.kind}', vendor='{self.vendor_id}')>"
