"""Parser for HTML orders grouped under brand and model headers.

Layout (inside a <pre> block, lines separated by <br>):

    <font size="5"><b><i>BURBERRY (2)</i></b></font>        brand header
    <font size="5"><b><i>0BE1375 - DOUGLAS (1)</i></b></font> model header
    114513 - LIGHT GOLD / BROWN GRADIENT                      color line
    59 8053672321005 USD 136.52 1 09-10-2025                  item line

A header applies to every following row until the next header of the
same kind.
"""
import re
from typing import List, Optional

import structlog
from bs4 import BeautifulSoup

from vendor_ingestion.errors import FieldParseFailure, ParserError
from vendor_ingestion.models.message import DocumentContent
from vendor_ingestion.models.parsed_order import LineItem, ParsedOrder
from vendor_ingestion.models.parser_options import HtmlSectionsOptions
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
)

logger = structlog.get_logger(__name__)

# Prefix marking lines that came from a header tag
HEADER_MARK = "\x1e"


class HtmlSectionsParser(ParserInterface):
    """Section-grouped HTML order parser (Luxottica style)."""

    def get_parser_name(self) -> str:
        return "html_sections"

    def validate_config(self, profile: VendorProfile) -> bool:
        self._load_options(profile, HtmlSectionsOptions)
        return True

    def parse(self, content: DocumentContent, profile: VendorProfile) -> ParsedOrder:
        options = self._load_options(profile, HtmlSectionsOptions)
        log = logger.bind(vendor=profile.id, parser=self.get_parser_name())

        if content.html:
            lines, full_text = self._html_lines(content.html, options)
        elif content.plain_text:
            lines = [" ".join(l.split()) for l in content.plain_text.splitlines()]
            lines = [l for l in lines if l]
            full_text = content.plain_text
        else:
            raise ParserError("Document has no HTML or text content", {"vendor": profile.id})

        warnings: List = []
        fields = extract_header_fields(full_text, options.header)
        header = build_header(fields, warnings)
        items = self._extract_items(lines, options, from_html=bool(content.html))

        order = ParsedOrder(
            vendor=profile.id,
            account_number=fields.get("account_number"),
            order=header,
            items=items,
            unique_frames=collect_unique_frames(items),
            warnings=warnings,
        )
        check_totals(order, resolve_tolerance(options.totals_tolerance))

        log.info(
            "document_parsed",
            order_number=header.order_number,
            items=len(items),
            unique_frames=len(order.unique_frames),
            warnings=len(order.warnings),
        )
        return order

    def _html_lines(self, html: str, options: HtmlSectionsOptions) -> tuple[List[str], str]:
        soup = BeautifulSoup(html, "html.parser")

        for br in soup.find_all("br"):
            br.replace_with("\n")

        container = soup.select_one(options.container_selector) or soup.body or soup
        for tag in container.select(options.header_selector):
            text = " ".join(tag.get_text(" ", strip=True).split())
            tag.replace_with(f"\n{HEADER_MARK}{text}\n")

        container_text = container.get_text()
        lines = [" ".join(raw.split()) for raw in container_text.splitlines()]
        lines = [line for line in lines if line]

        full_text = soup.get_text().replace(HEADER_MARK, "")
        return lines, full_text

    def _extract_items(
        self,
        lines: List[str],
        options: HtmlSectionsOptions,
        from_html: bool,
    ) -> List[LineItem]:
        brand_re = re.compile(options.brand_header_pattern)
        model_re = re.compile(options.model_header_pattern)
        color_re = re.compile(options.color_line_pattern)
        item_re = re.compile(options.item_line_pattern)
        aliases = {k.upper(): v for k, v in options.brand_aliases.items()}

        items: List[LineItem] = []
        brand: Optional[str] = None
        model: Optional[str] = None
        collection: Optional[str] = None
        color_code: Optional[str] = None
        color: Optional[str] = None

        for line in lines:
            if options.stop_marker and options.stop_marker in line:
                break

            is_header = line.startswith(HEADER_MARK)
            text = line[len(HEADER_MARK):] if is_header else line

            if is_header or not from_html:
                brand_match = brand_re.match(text)
                if brand_match:
                    name = brand_match.group("brand").strip()
                    brand = aliases.get(name.upper(), name)
                    model = collection = color_code = color = None
                    continue
                model_match = model_re.match(text)
                if model_match and (is_header or not item_re.match(text)):
                    model = model_match.group("model").strip()
                    collection = (model_match.groupdict().get("collection") or "").strip() or None
                    color_code = color = None
                    continue
                if is_header:
                    continue

            if brand is None:
                # Preamble before the first brand section
                continue

            item_match = item_re.match(text)
            if item_match:
                items.append(
                    self._build_item(item_match, text, brand, model, collection, color_code, color)
                )
                continue

            color_match = color_re.match(text)
            if color_match:
                color_code = color_match.group("code").strip()
                color = color_match.group("name").strip()

        return items

    def _build_item(
        self,
        match: re.Match,
        raw_line: str,
        brand: str,
        model: Optional[str],
        collection: Optional[str],
        color_code: Optional[str],
        color: Optional[str],
    ) -> LineItem:
        groups = match.groupdict()
        size = groups.get("size")
        eye, bridge, temple = size_parts(size)
        item = LineItem(
            brand=brand,
            model=model,
            collection=collection,
            color_code=color_code,
            color=color,
            size=size,
            eye_size=eye,
            bridge=bridge,
            temple=temple,
            upc=groups.get("upc"),
            shipping_date=groups.get("ship_date"),
            sku=build_sku(brand, model, color_code, size),
            raw_line=raw_line,
        )

        if model is None:
            item.record_failure(FieldParseFailure("model", None, {"line": raw_line}))
        if color_code is None:
            item.record_failure(FieldParseFailure("color", None, {"line": raw_line}))

        try:
            item.unit_price = parse_money(groups.get("price"))
        except FieldParseFailure as e:
            e.context["line"] = raw_line
            item.record_failure(e)
        try:
            item.quantity = parse_quantity(groups.get("qty"))
        except FieldParseFailure as e:
            e.context["line"] = raw_line
            item.record_failure(e)

        return item
