"""Pydantic models describing the outcome of ingesting one message."""
from enum import Enum
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field

from vendor_ingestion.errors import ErrorRecord
from vendor_ingestion.models.catalog import CatalogCheckResult, CatalogWriteResult
from vendor_ingestion.models.parsed_order import ParsedOrder
from vendor_ingestion.models.vendor_profile import DetectionResult


class IngestionStatus(str, Enum):
    """Terminal state of a single ingestion run."""
    INGESTED = "ingested"
    NEEDS_REVIEW = "needs_review"
    UNSUPPORTED_FORMAT = "unsupported_format"
    FAILED = "failed"


class EnrichmentSummary(BaseModel):
    requested: int = 0
    validated: int = 0
    failed: int = 0
    timed_out: int = 0


class IngestionOutcome(BaseModel):
    """Everything a caller needs to report on one processed message."""

    status: IngestionStatus
    detection: DetectionResult
    parsed: Optional[ParsedOrder] = None
    catalog_check: Optional[CatalogCheckResult] = None
    catalog_write: Optional[CatalogWriteResult] = None
    enrichment: Optional[EnrichmentSummary] = None
    order_id: Optional[uuid.UUID] = None
    errors: List[ErrorRecord] = Field(default_factory=list)
