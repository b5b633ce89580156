"""Helpers shared by every document parser.

Numeric parsing, header extraction, brand prefix lookup, model suffix
stripping and the totals cross-check all live here so that each format
parser only deals with how its documents are laid out.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import re

import structlog

from vendor_ingestion.config import parsing_settings
from vendor_ingestion.errors import FieldParseFailure, TotalsMismatch
from vendor_ingestion.models.parsed_order import (
    LineItem,
    OrderHeader,
    ParsedOrder,
    UniqueFrame,
)
from vendor_ingestion.models.parser_options import BrandPrefixEntry, TotalsTolerance

logger = structlog.get_logger(__name__)


_MONEY_RE = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$|^\.\d+$")
_QUANTITY_RE = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)$")
_CURRENCY_TOKENS = ("USD", "US$", "$")


def parse_money(raw: Any, field: str = "unit_price") -> Decimal:
    """Parse a currency amount such as ``$1,234.50``, ``1234.5`` or ``USD 89.00``.

    Raises:
        FieldParseFailure: If the value is empty, negative or malformed
    """
    if raw is None:
        raise FieldParseFailure(field, raw)
    if isinstance(raw, Decimal):
        text = str(raw)
    else:
        text = str(raw).strip()
    for token in _CURRENCY_TOKENS:
        text = text.replace(token, "")
    text = text.strip()

    if not _MONEY_RE.match(text):
        raise FieldParseFailure(field, raw)
    try:
        value = Decimal(text.replace(",", ""))
    except InvalidOperation as e:
        raise FieldParseFailure(field, raw) from e
    return value.quantize(Decimal("0.01"))


def parse_quantity(raw: Any, field: str = "quantity") -> int:
    """Parse a whole, non-negative quantity such as ``2`` or ``1,200``."""
    if raw is None:
        raise FieldParseFailure(field, raw)
    text = str(raw).strip()
    if not _QUANTITY_RE.match(text):
        raise FieldParseFailure(field, raw)
    return int(text.replace(",", ""))


def extract_header_fields(text: str, patterns: Mapping[str, str]) -> Dict[str, str]:
    """Apply header regexes to document text.

    Each pattern's first capture group is the value; unmatched fields are
    omitted from the result.
    """
    found: Dict[str, str] = {}
    for field, pattern in patterns.items():
        match = re.search(pattern, text, re.MULTILINE)
        if match and match.groups() and match.group(1) is not None:
            value = " ".join(match.group(1).split())
            if value:
                found[field] = value
    return found


def build_header(fields: Mapping[str, str], warnings: List) -> OrderHeader:
    """Build an OrderHeader, recording unparseable declared totals as warnings."""
    header = OrderHeader(
        order_number=fields.get("order_number"),
        customer_name=fields.get("customer_name"),
        order_date=fields.get("order_date"),
        rep_name=fields.get("rep_name"),
        payment_terms=fields.get("payment_terms"),
        promo_code=fields.get("promo_code"),
    )
    if "total_pieces" in fields:
        try:
            header.total_pieces = parse_quantity(fields["total_pieces"], "total_pieces")
        except FieldParseFailure as e:
            warnings.append(e.to_record())
    if "total_value" in fields:
        try:
            header.total_value = parse_money(fields["total_value"], "total_value")
        except FieldParseFailure as e:
            warnings.append(e.to_record())
    return header


@dataclass(frozen=True)
class BrandPrefix:
    prefix: str
    brand: str
    model_tokens: int = 1
    strip_prefix: bool = False

    def model_name(self, model: str) -> str:
        """Model as stored; drops a leading prefix token when configured."""
        tokens = model.split()
        if self.strip_prefix and len(tokens) > 1 and tokens[0].upper() == self.prefix:
            return " ".join(tokens[1:])
        return model


class BrandPrefixTable:
    """Maps model-code prefixes to brand names.

    A prefix applies when the first token of a frame equals it (``KS``) or
    starts with it followed by a digit (``SF2223N`` → ``SF``). The longest
    applicable prefix wins, so ``CKJ`` beats ``CK`` beats ``C``.
    """

    def __init__(self, entries: Mapping[str, Union[str, BrandPrefixEntry, Mapping[str, Any]]]):
        self._entries: Dict[str, BrandPrefix] = {}
        for prefix, entry in entries.items():
            key = prefix.strip().upper()
            if isinstance(entry, str):
                self._entries[key] = BrandPrefix(key, entry)
            elif isinstance(entry, BrandPrefixEntry):
                self._entries[key] = BrandPrefix(key, entry.brand, entry.model_tokens, entry.strip_prefix)
            else:
                parsed = BrandPrefixEntry.model_validate(entry)
                self._entries[key] = BrandPrefix(key, parsed.brand, parsed.model_tokens, parsed.strip_prefix)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, token: str) -> Optional[BrandPrefix]:
        token = token.strip().upper()
        best: Optional[BrandPrefix] = None
        for prefix, entry in self._entries.items():
            if token == prefix or (
                token.startswith(prefix)
                and len(token) > len(prefix)
                and token[len(prefix)].isdigit()
            ):
                if best is None or len(prefix) > len(best.prefix):
                    best = entry
        return best

    def starts_frame(self, line: str) -> bool:
        """True when the first token of ``line`` is an exact prefix key."""
        tokens = line.split()
        return bool(tokens) and tokens[0].upper() in self._entries


def split_model_suffix(token: str) -> Tuple[str, Optional[str]]:
    """Strip trailing slash-delimited qualifiers from a model token.

    ``CHERETTE2/US`` → (``CHERETTE2``, ``US``); ``2/G/S`` → (``2``, ``G/S``)
    """
    if "/" not in token:
        return token, None
    base, _, suffix = token.partition("/")
    return base, suffix or None


def split_model(tokens: List[str], model_tokens: int) -> Tuple[str, Optional[str], List[str]]:
    """Split leading tokens into (model, variant, remaining tokens).

    The model spans ``model_tokens`` tokens unless a slash-qualified token
    appears first; that token then ends the model and its qualifier is
    returned as the variant.
    """
    span = min(model_tokens, len(tokens))
    for index in range(span):
        if "/" in tokens[index]:
            base, variant = split_model_suffix(tokens[index])
            model_parts = tokens[:index] + ([base] if base else [])
            return " ".join(model_parts), variant, tokens[index + 1:]
    return " ".join(tokens[:span]), None, tokens[span:]


def resolve_tolerance(override: Optional[TotalsTolerance]) -> TotalsTolerance:
    if override is not None:
        return override
    return TotalsTolerance(
        value=parsing_settings.totals_value_tolerance,
        pieces=parsing_settings.totals_pieces_tolerance,
    )


def check_totals(order: ParsedOrder, tolerance: TotalsTolerance) -> bool:
    """Compare computed sums against the declared totals.

    A disagreement beyond tolerance is attached to ``order.warnings`` as a
    totals mismatch; it never fails the parse.

    The value is only compared when at least one item carries a unit
    price; documents without line prices declare a total nothing can be
    checked against.

    Returns:
        True if the totals agree (or nothing was declared)
    """
    declared_pieces = order.order.total_pieces
    declared_value = order.order.total_value
    computed_pieces = order.computed_pieces
    computed_value = order.computed_value

    pieces_off = (
        declared_pieces is not None
        and abs(computed_pieces - declared_pieces) > tolerance.pieces
    )
    priced = any(item.unit_price is not None for item in order.items)
    value_off = (
        declared_value is not None
        and priced
        and abs(computed_value - declared_value) > tolerance.value
    )
    if not (pieces_off or value_off):
        return True

    mismatch = TotalsMismatch(
        "Computed totals disagree with declared totals",
        {
            "order_number": order.order.order_number,
            "declared_pieces": declared_pieces,
            "computed_pieces": computed_pieces,
            "declared_value": str(declared_value) if declared_value is not None else None,
            "computed_value": str(computed_value),
            "pieces_mismatch": pieces_off,
            "value_mismatch": value_off,
        },
    )
    order.warnings.append(mismatch.to_record())
    logger.warning("totals_mismatch", vendor=order.vendor, **mismatch.context)
    return False


def collect_unique_frames(items: List[LineItem]) -> List[UniqueFrame]:
    """Distinct (brand, model) pairs in first-seen order."""
    seen = set()
    frames: List[UniqueFrame] = []
    for item in items:
        key = (item.brand, item.model)
        if key in seen:
            continue
        seen.add(key)
        frames.append(UniqueFrame(brand=item.brand, model=item.model, collection=item.collection))
    return frames


def build_sku(*parts: Optional[str]) -> Optional[str]:
    """``brand-model-color`` style SKU with spaces replaced by underscores."""
    present = [p for p in parts if p]
    if not present:
        return None
    return "-".join(present).replace(" ", "_")


def size_parts(size: Optional[str]) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """Eye, bridge and temple from ``52/17/140``, ``52-17-140`` or ``52``."""
    if not size:
        return None, None, None
    numbers = [int(n) for n in re.findall(r"\d+", size)][:3]
    numbers += [None] * (3 - len(numbers))
    return numbers[0], numbers[1], numbers[2]
