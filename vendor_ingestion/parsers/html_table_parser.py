"""Parser for HTML orders that list one frame per table row.

Typical row (Modern Optical / Kenmark receipts):

    | <img src=".../kenmark/889258..."> | MODERN - BLAZE | BLK/GLD | 52 | 2 |
"""
import re
from typing import Dict, List, Optional

import structlog
from bs4 import BeautifulSoup

from vendor_ingestion.errors import FieldParseFailure, ParserError
from vendor_ingestion.models.message import DocumentContent
from vendor_ingestion.models.parsed_order import LineItem, ParsedOrder
from vendor_ingestion.models.parser_options import HtmlTableOptions
from vendor_ingestion.models.vendor_profile import VendorProfile
from vendor_ingestion.parsers.base_parser import ParserInterface
from vendor_ingestion.parsers.common import (
    build_header,
    build_sku,
    check_totals,
    collect_unique_frames,
    extract_header_fields,
    parse_money,
    parse_quantity,
    resolve_tolerance,
    size_parts,
    split_model,
)

logger = structlog.get_logger(__name__)

_WORD_RE = re.compile(r"[A-Za-z]+")


def expand_color(name: str, abbreviations: Dict[str, str]) -> str:
    """Expand color abbreviations word by word (``BLK/GLD`` → ``Black/Gold``).

    Unknown words are title-cased; separators are preserved.
    """
    if not abbreviations:
        return name
    table = {k.upper(): v for k, v in abbreviations.items()}

    def replace(match: re.Match) -> str:
        word = match.group(0)
        return table.get(word.upper(), word.capitalize())

    return _WORD_RE.sub(replace, name)


class HtmlTableParser(ParserInterface):
    """Row-per-item HTML table parser."""

    def get_parser_name(self) -> str:
        return "html_table"

    def validate_config(self, profile: VendorProfile) -> bool:
        self._load_options(profile, HtmlTableOptions)
        return True

    def parse(self, content: DocumentContent, profile: VendorProfile) -> ParsedOrder:
        options = self._load_options(profile, HtmlTableOptions)
        if not content.html:
            raise ParserError("Document has no HTML content", {"vendor": profile.id})

        soup = BeautifulSoup(content.html, "html.parser")
        for br in soup.find_all("br"):
            br.replace_with("\n")

        items: List[LineItem] = []
        for row in soup.select(options.row_selector):
            cells = row.find_all("td")
            if len(cells) < options.min_cells:
                continue
            item = self._parse_row(cells, options, profile)
            if item is not None:
                items.append(item)

        warnings: List = []
        fields = extract_header_fields(soup.get_text("\n"), options.header)
        header = build_header(fields, warnings)

        order = ParsedOrder(
            vendor=profile.id,
            account_number=fields.get("account_number"),
            order=header,
            items=items,
            unique_frames=collect_unique_frames(items),
            warnings=warnings,
        )
        check_totals(order, resolve_tolerance(options.totals_tolerance))

        logger.info(
            "document_parsed",
            vendor=profile.id,
            parser=self.get_parser_name(),
            order_number=header.order_number,
            items=len(items),
            warnings=len(order.warnings),
        )
        return order

    def _cell_text(self, cells, index: Optional[int]) -> str:
        if index is None or index >= len(cells):
            return ""
        return " ".join(cells[index].get_text(" ", strip=True).split())

    def _parse_row(self, cells, options: HtmlTableOptions, profile: VendorProfile) -> Optional[LineItem]:
        columns = options.columns
        model_cell = self._cell_text(cells, columns.get("model"))
        quantity_cell = self._cell_text(cells, columns.get("quantity"))

        if not model_cell or not quantity_cell:
            return None
        if any(marker in model_cell for marker in options.skip_row_markers):
            return None

        raw_line = " | ".join(self._cell_text(cells, i) for i in range(len(cells)))

        separator = options.brand_model_separator
        if separator and separator in model_cell:
            brand, _, model_text = model_cell.partition(separator)
            brand = brand.strip()
        else:
            brand, model_text = profile.name, model_cell
        model, variant, _ = split_model(model_text.split(), len(model_text.split()))

        color_code: Optional[str] = None
        color = self._cell_text(cells, columns.get("color")) or None
        if color and options.color_code_pattern:
            code_match = re.match(options.color_code_pattern, color)
            if code_match:
                color_code = code_match.group(1)
                color = code_match.group(2).strip()
        if color:
            color = expand_color(color, options.color_abbreviations)

        size = self._cell_text(cells, columns.get("size")) or None
        eye, bridge, temple = size_parts(size)

        upc: Optional[str] = None
        if options.upc_image_pattern and "image" in columns and columns["image"] < len(cells):
            upc_match = re.search(options.upc_image_pattern, str(cells[columns["image"]]))
            if upc_match:
                upc = upc_match.group(1)

        item = LineItem(
            brand=brand,
            model=model or None,
            variant=variant,
            color=color,
            color_code=color_code,
            size=size,
            eye_size=eye,
            bridge=bridge,
            temple=temple,
            upc=upc,
            sku=build_sku(brand, model, color_code or color),
            raw_line=raw_line,
        )

        try:
            item.quantity = parse_quantity(quantity_cell)
        except FieldParseFailure as e:
            e.context["line"] = raw_line
            item.record_failure(e)

        price_cell = self._cell_text(cells, columns.get("price"))
        if price_cell:
            try:
                item.unit_price = parse_money(price_cell)
            except FieldParseFailure as e:
                e.context["line"] = raw_line
                item.record_failure(e)

        return item
