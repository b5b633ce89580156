"""Database module."""
from vendor_ingestion.db.base import (
    Base,
    UUIDMixin,
    TimestampMixin,
    create_engine,
    engine,
    async_session_maker,
    get_session,
)

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "create_engine",
    "engine",
    "async_session_maker",
    "get_session",
]
