"""Vendor order ingestion: detection, parsing, catalog cache and receipt reconciliation."""
