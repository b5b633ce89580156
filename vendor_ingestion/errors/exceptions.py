"""Custom exception hierarchy for vendor ingestion errors.

Every error carries a stable ``kind`` and a ``context`` dict so that
operators and tests can assert on the kind instead of matching strings.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorRecord(BaseModel):
    """Serializable form of a structured ingestion error."""

    kind: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


class DataIngestionError(Exception):
    """Base exception for all data ingestion errors."""

    kind = "ingestion_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Initialize error with message and structured context."""
        self.message = message
        self.context = dict(context or {})
        super().__init__(message)

    def to_record(self) -> ErrorRecord:
        """Return the error as a structured record."""
        return ErrorRecord(kind=self.kind, message=self.message, context=self.context)


class ParserError(DataIngestionError):
    """Raised when parser encounters an error during data parsing."""

    kind = "parse_failure"


class ValidationError(DataIngestionError):
    """Raised when data validation fails."""

    kind = "validation_error"


class DatabaseError(DataIngestionError):
    """Raised when database operations fail."""

    kind = "database_error"


class DetectionAmbiguous(DataIngestionError):
    """No vendor identification tier met its threshold."""

    kind = "detection_ambiguous"


class FieldParseFailure(ParserError):
    """A single line item field (price, quantity, ...) could not be parsed."""

    kind = "field_parse_failure"

    def __init__(self, field: str, raw_value: Any, context: Optional[Dict[str, Any]] = None):
        self.field = field
        self.raw_value = raw_value
        ctx = {"field": field, "raw_value": raw_value}
        ctx.update(context or {})
        super().__init__(f"Cannot parse {field}: {raw_value!r}", ctx)


class TotalsMismatch(DataIngestionError):
    """Computed item sums disagree with the document's declared totals."""

    kind = "totals_mismatch"


class CacheWriteConflict(DataIngestionError):
    """A catalog write lost the confidence comparison against the stored entry."""

    kind = "cache_write_conflict"


class ReconciliationExhausted(DataIngestionError):
    """``confirm`` was called on an order with no unreceived items."""

    kind = "reconciliation_exhausted"

    def __init__(self, order_id: Any):
        self.order_id = order_id
        super().__init__(
            f"No unreceived items found for order {order_id}",
            {"order_id": str(order_id)},
        )

    def to_payload(self) -> Dict[str, Any]:
        """Error payload returned to callers of the confirm surface."""
        return {"success": False, "error": self.message}


class UnknownVendorFormat(DataIngestionError):
    """The vendor resolved but no document parser is registered for its format."""

    kind = "unknown_vendor_format"


class OrderNotFound(DataIngestionError):
    """The referenced order does not exist."""

    kind = "order_not_found"

    def __init__(self, order_id: Any):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", {"order_id": str(order_id)})


class InvalidStatusTransition(DataIngestionError):
    """An order state change that the reconciliation state machine forbids."""

    kind = "invalid_status_transition"
