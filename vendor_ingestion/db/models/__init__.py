"""Database models for vendor order ingestion."""
from vendor_ingestion.db.models.catalog_entry import CatalogEntry
from vendor_ingestion.db.models.order import Order
from vendor_ingestion.db.models.inventory_item import InventoryItem
from vendor_ingestion.db.models.ingestion_log import IngestionLog

__all__ = [
    "CatalogEntry",
    "Order",
    "InventoryItem",
    "IngestionLog",
]
