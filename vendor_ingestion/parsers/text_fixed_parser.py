"""Parser for plain-text orders with one fixed-shape line per item.

Typical line (Marchon confirmations):

    SF2223N 717 LIGHT GOLD/BURGUNDY (54 eye) 2 $89.00

The profile's ``item_line_pattern`` carries named groups: ``style`` (model
plus color) and ``qty`` are required; ``eye`` and ``price`` are optional.
"""
import re
from typing import List

import structlog

from vendor_ingestion.errors import FieldParseFailure, ParserError
from vendor_ingestion.models.message import DocumentContent
from vendor_ingestion.models.parsed_order import LineItem, ParsedOrder
from vendor_ingestion.models.parser_options import TextFixedOptions
from vendor_ingestion.models.vendor_profile import VendorProfile
from vendor_ingestion.parsers.base_parser import ParserInterface
from vendor_ingestion.parsers.common import (
    BrandPrefixTable,
    build_header,
    build_sku,
    check_totals,
    collect_unique_frames,
    extract_header_fields,
    parse_money,
    parse_quantity,
    resolve_tolerance,
    split_model,
)
from vendor_ingestion.services.classification.classifier import html_to_text

logger = structlog.get_logger(__name__)


class TextFixedParser(ParserInterface):
    """Fixed-token line parser for text bodies."""

    def get_parser_name(self) -> str:
        return "text_fixed"

    def validate_config(self, profile: VendorProfile) -> bool:
        self._load_options(profile, TextFixedOptions)
        return True

    def parse(self, content: DocumentContent, profile: VendorProfile) -> ParsedOrder:
        options = self._load_options(profile, TextFixedOptions)
        if content.plain_text:
            text = content.plain_text
        elif content.html:
            text = html_to_text(content.html)
        else:
            raise ParserError("Document has no text content", {"vendor": profile.id})

        prefixes = BrandPrefixTable(options.brand_prefixes)
        item_re = re.compile(options.item_line_pattern)
        color_re = re.compile(options.color_code_pattern) if options.color_code_pattern else None

        items: List[LineItem] = []
        for raw in text.splitlines():
            line = " ".join(raw.split())
            match = item_re.match(line) if line else None
            if match:
                items.append(self._build_item(match, line, prefixes, color_re, options, profile))

        warnings: List = []
        fields = extract_header_fields(text, options.header)
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

    def _build_item(
        self,
        match: re.Match,
        line: str,
        prefixes: BrandPrefixTable,
        color_re,
        options: TextFixedOptions,
        profile: VendorProfile,
    ) -> LineItem:
        groups = match.groupdict()
        tokens = groups["style"].split()

        prefix = prefixes.lookup(tokens[0]) if tokens else None
        brand = prefix.brand if prefix else (options.default_brand or profile.name)
        model, variant, rest = split_model(tokens, 1)

        color = " ".join(rest) or None
        color_code = None
        if color and color_re is not None:
            code_match = color_re.match(color)
            if code_match:
                color_code = code_match.group(1)
                color = code_match.group(2).strip()

        eye = int(groups["eye"]) if groups.get("eye") else None
        item = LineItem(
            brand=brand,
            model=model or None,
            variant=variant,
            color=color,
            color_code=color_code,
            size=str(eye) if eye is not None else None,
            eye_size=eye,
            sku=build_sku(model, color_code or color, str(eye) if eye else None),
            raw_line=line,
        )

        try:
            item.quantity = parse_quantity(groups.get("qty"))
        except FieldParseFailure as e:
            e.context["line"] = line
            item.record_failure(e)
        if groups.get("price") is not None:
            try:
                item.unit_price = parse_money(groups["price"])
            except FieldParseFailure as e:
                e.context["line"] = line
                item.record_failure(e)

        return item
