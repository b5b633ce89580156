"""Pydantic models for parsed vendor orders."""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from vendor_ingestion.errors import DataIngestionError, ErrorRecord


class ItemConfidence(str, Enum):
    """Trust in the fields extracted for a single line item."""
    HIGH = "high"
    LOW = "low"


class LineItem(BaseModel):
    """A single frame entry extracted from an order document.

    Header-independent fields are filled by the parser; pricing/spec
    fields may be filled later by a catalog hit or by enrichment.

    ``received`` is tri-state:
        None  - never shipped / not yet touched by reconciliation
        False - shipped, receipt not confirmed
        True  - receipt confirmed
    """

    brand: Optional[str] = None
    model: Optional[str] = None
    variant: Optional[str] = Field(
        default=None,
        description="Slash-delimited qualifier stripped from the model (e.g. 'US', 'G/S')"
    )
    collection: Optional[str] = None
    color: Optional[str] = None
    color_code: Optional[str] = None
    size: Optional[str] = None
    eye_size: Optional[int] = None
    bridge: Optional[int] = None
    temple: Optional[int] = None
    quantity: int = Field(default=1, ge=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0, description="Unit wholesale price")
    msrp: Optional[Decimal] = Field(default=None, ge=0)
    sku: Optional[str] = None
    upc: Optional[str] = None
    ean: Optional[str] = None
    shipping_date: Optional[str] = None
    received: Optional[bool] = None

    confidence: ItemConfidence = ItemConfidence.HIGH
    parse_errors: List[ErrorRecord] = Field(default_factory=list)
    raw_line: Optional[str] = None

    cached: bool = False
    enriched: Optional[bool] = None
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra spec fields (material, gender, in_stock, ...)"
    )

    @field_validator("unit_price", "msrp")
    @classmethod
    def validate_price_precision(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Quantize prices to 2 decimal places."""
        if v is None:
            return v
        return v.quantize(Decimal("0.01"))

    def record_failure(self, error: DataIngestionError) -> None:
        """Attach a per-item failure and downgrade the item's confidence."""
        self.parse_errors.append(error.to_record())
        self.confidence = ItemConfidence.LOW

    @property
    def line_total(self) -> Decimal:
        if self.unit_price is None:
            return Decimal("0.00")
        return self.unit_price * self.quantity


class OrderHeader(BaseModel):
    """Order-level fields declared by the document."""

    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    order_date: Optional[str] = None
    rep_name: Optional[str] = None
    total_pieces: Optional[int] = Field(default=None, ge=0, description="Declared piece count")
    total_value: Optional[Decimal] = Field(default=None, ge=0, description="Declared order value")
    payment_terms: Optional[str] = None
    promo_code: Optional[str] = None


class UniqueFrame(BaseModel):
    brand: Optional[str] = None
    model: Optional[str] = None
    collection: Optional[str] = None


class ParsedOrder(BaseModel):
    """Result of parsing one vendor document.

    Header fields are fixed once parsed; ``items`` may be enriched in place.
    ``warnings`` holds non-fatal annotations such as totals mismatches.
    """

    vendor: str
    account_number: Optional[str] = None
    order: OrderHeader = Field(default_factory=OrderHeader)
    items: List[LineItem] = Field(default_factory=list)
    unique_frames: List[UniqueFrame] = Field(default_factory=list)
    warnings: List[ErrorRecord] = Field(default_factory=list)

    @property
    def computed_pieces(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def computed_value(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0.00"))

    def has_warning(self, kind: str) -> bool:
        return any(w.kind == kind for w in self.warnings)

    def to_output(self) -> Dict[str, Any]:
        """Serialize to the external parse output shape."""
        return self.model_dump(
            mode="json",
            include={"vendor", "account_number", "order", "items", "unique_frames", "warnings"},
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "vendor": "luxottica",
                "account_number": "0001247652",
                "order": {
                    "order_number": "1757452162354",
                    "customer_name": "TATUM EYECARE",
                    "order_date": "09-09-2025",
                    "rep_name": "Risa Shaver",
                    "total_pieces": 1,
                    "total_value": "136.52",
                },
                "items": [
                    {
                        "brand": "BURBERRY",
                        "model": "0BE1375",
                        "collection": "DOUGLAS",
                        "color_code": "114513",
                        "color": "LIGHT GOLD / BROWN GRADIENT",
                        "size": "59",
                        "upc": "8053672321005",
                        "unit_price": "136.52",
                        "quantity": 1,
                    }
                ],
                "unique_frames": [
                    {"brand": "BURBERRY", "model": "0BE1375", "collection": "DOUGLAS"}
                ],
            }
        }
    }
