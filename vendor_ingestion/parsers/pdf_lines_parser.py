"""Parser for multi-page PDF order confirmations (Safilo style).

Each frame is one logical record that pdf text extraction may wrap over
several physical lines, and occasionally over a page break:

    KS CHERETTE2/US X19 PATTERN MULTICOLOR 52/17
    140
    CARRERA 1234 807 BLACK 54/18 145

Records start with a known brand prefix token. Following lines are joined
to the record until the next record, a section marker, or a date line.
"""
import io
import re
from dataclasses import dataclass, field
from typing import List, Optional

import pdfplumber
import structlog

from vendor_ingestion.errors import ErrorRecord, FieldParseFailure, ParserError
from vendor_ingestion.models.message import DocumentContent
from vendor_ingestion.models.parsed_order import LineItem, OrderHeader, ParsedOrder
from vendor_ingestion.models.parser_options import PdfLinesOptions
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

logger = structlog.get_logger(__name__)

# Records never span more than this many physical lines after the first
MAX_CONTINUATION_LINES = 3

_DATE_LINE_RE = re.compile(r"^\d+/\d+/\d+")
_DATE_STAMP_RE = re.compile(r"\d{5}/\d{2}/\d{4}\.?")
_TEMPLE_RE = re.compile(r"^\d{3}$")


@dataclass
class PdfExtraction:
    """Header fields and frame records pulled out of one PDF."""

    order_info: OrderHeader
    account_number: Optional[str]
    frames: List[LineItem] = field(default_factory=list)
    warnings: List[ErrorRecord] = field(default_factory=list)


def extract_page_lines(buffer: bytes, y_tolerance: float = 3.0) -> List[str]:
    """Read a PDF and rebuild its text lines page by page.

    Words whose ``top`` coordinates are within ``y_tolerance`` points share
    a line; words in a line are ordered left to right.

    Returns:
        One string per page, lines separated by newlines

    Raises:
        ParserError: If the buffer is not a readable PDF
    """
    pages: List[str] = []
    try:
        with pdfplumber.open(io.BytesIO(buffer)) as pdf:
            for page in pdf.pages:
                words = sorted(page.extract_words(), key=lambda w: (w["top"], w["x0"]))
                rows: List[List[dict]] = []
                for word in words:
                    if rows and abs(word["top"] - rows[-1][0]["top"]) <= y_tolerance:
                        rows[-1].append(word)
                    else:
                        rows.append([word])
                lines = [
                    " ".join(w["text"] for w in sorted(row, key=lambda w: w["x0"]))
                    for row in rows
                ]
                pages.append("\n".join(lines))
    except Exception as e:
        logger.error(
            "pdf_read_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ParserError(f"Cannot read PDF document: {e}", {"size": len(buffer)}) from e

    logger.debug("pdf_text_extracted", pages=len(pages))
    return pages


class PdfLinesParser(ParserInterface):
    """Line-record PDF parser driven by a brand prefix table."""

    def get_parser_name(self) -> str:
        return "pdf_lines"

    def validate_config(self, profile: VendorProfile) -> bool:
        self._load_options(profile, PdfLinesOptions)
        return True

    def parse(self, content: DocumentContent, profile: VendorProfile) -> ParsedOrder:
        if not content.pdf:
            raise ParserError("Document has no PDF attachment", {"vendor": profile.id})
        options = self._load_options(profile, PdfLinesOptions)
        pages = extract_page_lines(content.pdf, options.y_tolerance)
        return self.parse_pages(pages, profile)

    def parse_pdf(self, buffer: bytes, profile: VendorProfile) -> PdfExtraction:
        """Parse a raw PDF into its header fields and frame records."""
        order = self.parse(DocumentContent(pdf=buffer), profile)
        return PdfExtraction(
            order_info=order.order,
            account_number=order.account_number,
            frames=order.items,
            warnings=order.warnings,
        )

    def parse_pages(self, pages: List[str], profile: VendorProfile) -> ParsedOrder:
        """Parse already-extracted page texts."""
        options = self._load_options(profile, PdfLinesOptions)
        prefixes = BrandPrefixTable(options.brand_prefixes)

        full_text = "\n".join(pages)
        warnings: List = []
        fields = extract_header_fields(full_text, options.header)
        header = build_header(fields, warnings)

        lines = self._item_lines(full_text, options)
        items = [
            self._parse_record(record, prefixes, options)
            for record in self._group_records(lines, prefixes, options)
        ]

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
            pages=len(pages),
            order_number=header.order_number,
            items=len(items),
            low_confidence=sum(1 for i in items if i.parse_errors),
            warnings=len(order.warnings),
        )
        return order

    def _item_lines(self, text: str, options: PdfLinesOptions) -> List[str]:
        """Lines after the first start marker with page furniture removed."""
        raw = [" ".join(line.split()) for line in text.splitlines()]
        start = next(
            (i + 1 for i, line in enumerate(raw) if options.items_start_marker in line),
            None,
        )
        if start is None:
            return []

        noise = [re.compile(p) for p in options.page_noise]
        return [
            line for line in raw[start:]
            if line and not any(p.search(line) for p in noise)
        ]

    def _group_records(
        self,
        lines: List[str],
        prefixes: BrandPrefixTable,
        options: PdfLinesOptions,
    ) -> List[str]:
        size_re = re.compile(options.size_pattern)
        records: List[str] = []
        index = 0
        while index < len(lines):
            line = lines[index]
            index += 1
            if self._is_marker(line, options) or not prefixes.starts_frame(line):
                continue

            record = line
            joined = 0
            while index < len(lines) and joined < MAX_CONTINUATION_LINES:
                nxt = lines[index]
                if (
                    prefixes.starts_frame(nxt)
                    or self._is_marker(nxt, options)
                    or _DATE_LINE_RE.match(nxt)
                    or size_re.search(_DATE_STAMP_RE.sub("", record))
                ):
                    break
                if _TEMPLE_RE.match(nxt) or (len(nxt) > 3 and not nxt.isdigit()):
                    record = f"{record} {nxt}"
                    index += 1
                    joined += 1
                    continue
                break
            records.append(record)
        return records

    def _is_marker(self, line: str, options: PdfLinesOptions) -> bool:
        return any(marker in line for marker in options.skip_line_markers)

    def _parse_record(
        self,
        record: str,
        prefixes: BrandPrefixTable,
        options: PdfLinesOptions,
    ) -> LineItem:
        line = " ".join(_DATE_STAMP_RE.sub("", record).split())
        tokens_all = line.split()
        prefix = prefixes.lookup(tokens_all[0])
        brand = prefix.brand if prefix else tokens_all[0]
        model_tokens = prefix.model_tokens if prefix else 2

        size_match = re.search(options.size_pattern, line)
        if size_match is None:
            # Keep what we can read; the record stays visible for review
            model, variant, rest = split_model(tokens_all, model_tokens)
            if prefix and model:
                model = prefix.model_name(model)
            item = LineItem(
                brand=brand,
                model=model or None,
                variant=variant,
                color_code=rest[0] if rest else None,
                raw_line=record,
            )
            item.record_failure(FieldParseFailure("size", line, {"line": record}))
            return item

        before = line[:size_match.start()].split()
        after = line[size_match.end():].strip()
        model, variant, rest = split_model(before, model_tokens)
        if prefix and model:
            model = prefix.model_name(model)
        color_code = rest[0] if rest else None
        color = " ".join(" ".join(rest[1:]).replace("_", " ").split()) or None

        eye, bridge, temple = (int(g) for g in size_match.groups()[:3])
        item = LineItem(
            brand=brand,
            model=model or None,
            variant=variant,
            color_code=color_code,
            color=color,
            size=f"{eye}/{bridge}/{temple}",
            eye_size=eye,
            bridge=bridge,
            temple=temple,
            sku=build_sku(brand, model, color_code),
            raw_line=record,
        )

        if not model:
            item.record_failure(FieldParseFailure("model", line, {"line": record}))
        if color_code is None:
            item.record_failure(FieldParseFailure("color", line, {"line": record}))

        if options.quantity_pattern:
            qty_match = re.search(options.quantity_pattern, after)
            try:
                item.quantity = parse_quantity(qty_match.group(1) if qty_match else None)
            except FieldParseFailure as e:
                e.context["line"] = record
                item.record_failure(e)
        if options.price_pattern:
            price_match = re.search(options.price_pattern, after)
            try:
                item.unit_price = parse_money(price_match.group(1) if price_match else None)
            except FieldParseFailure as e:
                e.context["line"] = record
                item.record_failure(e)

        return item
