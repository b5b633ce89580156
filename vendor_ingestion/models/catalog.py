"""Pydantic models for the shared catalog cache surface."""
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vendor_ingestion.errors import ErrorRecord
from vendor_ingestion.models.parsed_order import LineItem


class DataSource(str, Enum):
    """Where the attributes of a catalog entry came from."""
    WEB_SCRAPE = "web_scrape"
    API = "api"
    MANUAL = "manual"
    EMAIL_PARSE = "email_parse"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CatalogCheckResult(_CamelModel):
    """Items annotated with cache state plus hit statistics.

    ``hit_rate`` is a percentage (0-100) rounded to one decimal.
    ``cache_incomplete`` counts hits whose entry lacks a UPC or wholesale
    price; those items are marked ``attributes["cache_incomplete"]`` and
    still need enrichment.
    """

    items: List[LineItem] = Field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0
    cache_incomplete: int = 0
    hit_rate: float = 0.0

    @property
    def misses(self) -> List[LineItem]:
        return [item for item in self.items if not item.cached]

    @property
    def needs_enrichment(self) -> List[LineItem]:
        """Misses plus hits on incomplete entries."""
        return [
            item for item in self.items
            if not item.cached or item.attributes.get("cache_incomplete")
        ]


class CatalogWriteResult(_CamelModel):
    """Outcome counts of a catalog write batch."""

    cached: int = 0
    updated: int = 0
    skipped: int = 0
    total: int = 0
    conflicts: List[ErrorRecord] = Field(default_factory=list, exclude=True)


class BrandBreakdown(_CamelModel):
    brand: str
    unique_items: int
    total_orders: int
    avg_orders_per_item: float


class CatalogStats(_CamelModel):
    total_items: int = 0
    total_orders: int = 0
    brands: int = 0
    brand_breakdown: List[BrandBreakdown] = Field(default_factory=list)


class ModelPopularity(_CamelModel):
    brand: Optional[str] = None
    model: str
    times_ordered: int


class VendorAnalytics(_CamelModel):
    """Pricing and availability summary for one vendor's catalog entries."""

    vendor_id: str
    total_items: int = 0
    avg_wholesale: Optional[Decimal] = None
    min_wholesale: Optional[Decimal] = None
    max_wholesale: Optional[Decimal] = None
    avg_msrp: Optional[Decimal] = None
    min_msrp: Optional[Decimal] = None
    max_msrp: Optional[Decimal] = None
    in_stock_percentage: float = 0.0
    verified_items: int = 0
    top_models: List[ModelPopularity] = Field(default_factory=list)
