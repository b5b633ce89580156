"""Pydantic validation models."""

# Inbound documents and vendor profiles
from vendor_ingestion.models.message import RawMessage, DocumentContent
from vendor_ingestion.models.vendor_profile import (
    UNKNOWN_VENDOR,
    DetectionMethod,
    DetectionResult,
    VendorProfile,
    VendorProfileSet,
)

# Parsing output
from vendor_ingestion.models.parsed_order import (
    ItemConfidence,
    LineItem,
    OrderHeader,
    ParsedOrder,
    UniqueFrame,
)

# Catalog cache
from vendor_ingestion.models.catalog import (
    DataSource,
    CatalogCheckResult,
    CatalogWriteResult,
    BrandBreakdown,
    CatalogStats,
    ModelPopularity,
    VendorAnalytics,
)

# Reconciliation
from vendor_ingestion.models.reconciliation import (
    OrderStatus,
    InventoryStatus,
    ConfirmResult,
    ReceiptStatus,
    InventoryItemView,
    OrderView,
)

from vendor_ingestion.models.ingestion import (
    IngestionStatus,
    EnrichmentSummary,
    IngestionOutcome,
)

__all__ = [
    "RawMessage",
    "DocumentContent",
    "UNKNOWN_VENDOR",
    "DetectionMethod",
    "DetectionResult",
    "VendorProfile",
    "VendorProfileSet",
    "ItemConfidence",
    "LineItem",
    "OrderHeader",
    "ParsedOrder",
    "UniqueFrame",
    "DataSource",
    "CatalogCheckResult",
    "CatalogWriteResult",
    "BrandBreakdown",
    "CatalogStats",
    "ModelPopularity",
    "VendorAnalytics",
    "OrderStatus",
    "InventoryStatus",
    "ConfirmResult",
    "ReceiptStatus",
    "InventoryItemView",
    "OrderView",
    "IngestionStatus",
    "EnrichmentSummary",
    "IngestionOutcome",
]
