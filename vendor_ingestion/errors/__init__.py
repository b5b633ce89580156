"""Error handling module."""
from vendor_ingestion.errors.exceptions import (
    ErrorRecord,
    DataIngestionError,
    ParserError,
    ValidationError,
    DatabaseError,
    DetectionAmbiguous,
    FieldParseFailure,
    TotalsMismatch,
    CacheWriteConflict,
    ReconciliationExhausted,
    UnknownVendorFormat,
    OrderNotFound,
    InvalidStatusTransition,
)

__all__ = [
    "ErrorRecord",
    "DataIngestionError",
    "ParserError",
    "ValidationError",
    "DatabaseError",
    "DetectionAmbiguous",
    "FieldParseFailure",
    "TotalsMismatch",
    "CacheWriteConflict",
    "ReconciliationExhausted",
    "UnknownVendorFormat",
    "OrderNotFound",
    "InvalidStatusTransition",
]
