"""Shared per-vendor catalog cache.

Key Components:
    - CatalogCache: check / cache / stats / vendor_analytics / evict_stale
    - normalize_key, catalog_key: Compound key normalization
"""
from vendor_ingestion.services.catalog.cache import (
    CatalogCache,
    catalog_key,
    normalize_key,
)

__all__ = [
    "CatalogCache",
    "catalog_key",
    "normalize_key",
]
