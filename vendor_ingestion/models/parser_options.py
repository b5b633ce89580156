"""Pydantic models for per-vendor parsing tables.

Each document parser validates ``VendorProfile.parsing`` against one of
these models. Pattern tables live in the profile file so that a vendor
whose documents follow an existing format is added without code changes.
"""
import re
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BrandPrefixEntry(BaseModel):
    brand: str = Field(..., min_length=1)
    model_tokens: int = Field(default=1, ge=1, le=6)
    strip_prefix: bool = Field(
        default=False,
        description="Store the model without the prefix token (CARRERA 8800 → 8800)"
    )


BrandPrefixConfig = Dict[str, Union[str, BrandPrefixEntry]]


class TotalsTolerance(BaseModel):
    """Allowed absolute difference between computed and declared totals."""

    value: Decimal = Field(default=Decimal("0.01"), ge=0)
    pieces: int = Field(default=0, ge=0)


class EnrichmentOptions(BaseModel):
    api_url: str = Field(..., min_length=1)
    search_limit: int = Field(default=4, ge=1, le=10)


class _ParsingOptions(BaseModel):
    """Fields shared by every format."""

    header: Dict[str, str] = Field(
        default_factory=dict,
        description="Header field → regex whose first group is the value"
    )
    totals_tolerance: Optional[TotalsTolerance] = None
    enrichment: Optional[EnrichmentOptions] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("header")
    @classmethod
    def validate_header_patterns(cls, v: Dict[str, str]) -> Dict[str, str]:
        for field, pattern in v.items():
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid regex for header field '{field}': {e}")
        return v


def _check_regex(v: Optional[str]) -> Optional[str]:
    if v is not None:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regex: {e}")
    return v


class HtmlSectionsOptions(_ParsingOptions):
    """Brand/model header grouped HTML (items listed under headers)."""

    container_selector: str = "pre"
    header_selector: str = Field(..., min_length=1)
    brand_header_pattern: str
    model_header_pattern: str
    color_line_pattern: str
    item_line_pattern: str
    stop_marker: Optional[str] = None
    brand_aliases: Dict[str, str] = Field(default_factory=dict)

    @field_validator(
        "brand_header_pattern",
        "model_header_pattern",
        "color_line_pattern",
        "item_line_pattern",
    )
    @classmethod
    def validate_patterns(cls, v: str) -> str:
        return _check_regex(v)


class HtmlTableOptions(_ParsingOptions):
    """One table row per line item."""

    row_selector: str = "tbody tr"
    min_cells: int = Field(default=5, ge=1)
    columns: Dict[str, int] = Field(
        ...,
        description="Logical column (model, color, size, quantity, price, image) → cell index"
    )
    brand_model_separator: str = " - "
    skip_row_markers: List[str] = Field(default_factory=list)
    color_abbreviations: Dict[str, str] = Field(default_factory=dict)
    color_code_pattern: Optional[str] = None
    upc_image_pattern: Optional[str] = None

    @field_validator("columns")
    @classmethod
    def validate_required_columns(cls, v: Dict[str, int]) -> Dict[str, int]:
        missing = {"model", "quantity"} - set(v)
        if missing:
            raise ValueError(f"columns must map: {', '.join(sorted(missing))}")
        return v

    @field_validator("color_code_pattern", "upc_image_pattern")
    @classmethod
    def validate_patterns(cls, v: Optional[str]) -> Optional[str]:
        return _check_regex(v)


class PdfLinesOptions(_ParsingOptions):
    """Multi-page PDF with one frame record per (possibly wrapped) line."""

    items_start_marker: str = Field(..., min_length=1)
    skip_line_markers: List[str] = Field(default_factory=list)
    page_noise: List[str] = Field(default_factory=list)
    brand_prefixes: BrandPrefixConfig = Field(..., min_length=1)
    size_pattern: str = r"(\d{2})/(\d{2})\s+(\d{3})"
    quantity_pattern: Optional[str] = Field(
        default=None,
        description="Regex applied after the size; first group is the quantity"
    )
    price_pattern: Optional[str] = Field(
        default=None,
        description="Regex applied after the size; first group is the unit price"
    )
    y_tolerance: float = Field(default=3.0, gt=0, description="Points; words closer than this share a line")

    @field_validator("size_pattern", "quantity_pattern", "price_pattern")
    @classmethod
    def validate_patterns(cls, v: Optional[str]) -> Optional[str]:
        return _check_regex(v)


class TextFixedOptions(_ParsingOptions):
    """Plain-text bodies with one fixed-token line per item."""

    item_line_pattern: str
    color_code_pattern: Optional[str] = None
    brand_prefixes: BrandPrefixConfig = Field(default_factory=dict)
    default_brand: Optional[str] = None

    @field_validator("item_line_pattern")
    @classmethod
    def validate_item_groups(cls, v: str) -> str:
        try:
            compiled = re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regex: {e}")
        missing = {"style", "qty"} - set(compiled.groupindex)
        if missing:
            raise ValueError(f"item_line_pattern needs named groups: {', '.join(sorted(missing))}")
        return v

    @field_validator("color_code_pattern")
    @classmethod
    def validate_color_code_pattern(cls, v: Optional[str]) -> Optional[str]:
        return _check_regex(v)
