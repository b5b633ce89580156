"""Frame enrichment from vendor catalog APIs.

Key Components:
    - CatalogLookupClient: httpx client for a vendor catalog search endpoint
    - FrameEnricher: Concurrent, per-item bounded cross-referencing
"""
from vendor_ingestion.services.enrichment.client import (
    CatalogLookupClient,
    CatalogLookupError,
    CatalogProduct,
    CatalogVariant,
    parse_catalog_response,
)
from vendor_ingestion.services.enrichment.enricher import (
    FrameEnricher,
    score_variant,
    search_variations,
)

__all__ = [
    "CatalogLookupClient",
    "CatalogLookupError",
    "CatalogProduct",
    "CatalogVariant",
    "parse_catalog_response",
    "FrameEnricher",
    "score_variant",
    "search_variations",
]
