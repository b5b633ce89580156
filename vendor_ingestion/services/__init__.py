"""Business logic services for the vendor order ingestion pipeline.

Available Services:
    - classification: Vendor detection from sender, subject and body
    - catalog: Shared per-vendor frame catalog cache
    - enrichment: Vendor catalog API lookups for cache misses
    - reconciliation: Receipt confirmation and order status derivation
    - ingestion: End-to-end pipeline (classify, parse, cache, persist)

Submodules are imported directly (``from vendor_ingestion.services.catalog
import CatalogCache``); this package does not import them eagerly.
"""
