"""Cross-reference parsed frames against a vendor catalog.

Scoring per catalog variant (max 105):
    brand contained either way        20
    model similar (rapidfuzz)         25
    color code contained either way   20
    eye / bridge / temple equal       10 each

The best variant at or above ``min_confidence`` fills the frame's missing
identifiers, pricing and size fields.

Every frame runs as its own task bounded by a semaphore and a per-item
timeout; a frame that fails or times out is marked ``enriched=False`` and
never cancels the others.
"""
import asyncio
from typing import Dict, List, Optional, Tuple

import structlog
from rapidfuzz import fuzz

from vendor_ingestion.config import enrichment_settings
from vendor_ingestion.models.ingestion import EnrichmentSummary
from vendor_ingestion.models.parsed_order import LineItem
from vendor_ingestion.services.enrichment.client import (
    CatalogLookupClient,
    CatalogProduct,
    CatalogVariant,
)

logger = structlog.get_logger(__name__)

BRAND_WEIGHT = 20
MODEL_WEIGHT = 25
COLOR_WEIGHT = 20
SIZE_WEIGHT = 10

# rapidfuzz ratio at which two model codes count as the same style
MODEL_SIMILARITY = 90.0


def search_variations(item: LineItem, limit: Optional[int] = None) -> List[str]:
    """Ordered, de-duplicated catalog queries for a frame."""
    model = " ".join((item.model or "").split())
    brand = " ".join((item.brand or "").split())
    if not model:
        return []

    candidates = [model]
    if brand:
        candidates.append(f"{brand} {model}")
        first_word = brand.split()[0]
        if not model.upper().startswith(first_word.upper()):
            candidates.append(f"{first_word} {model}")
    tokens = model.split()
    if len(tokens) > 1 and brand:
        # "KS CHERETTE2" → "KATE SPADE CHERETTE2"
        candidates.append(f"{brand} {' '.join(tokens[1:])}")

    seen = set()
    variations: List[str] = []
    for candidate in candidates:
        key = candidate.upper()
        if key not in seen:
            seen.add(key)
            variations.append(candidate)
    return variations[:limit] if limit else variations


def _contains_either(a: str, b: str) -> bool:
    a, b = a.strip().lower(), b.strip().lower()
    return bool(a and b) and (a in b or b in a)


def score_variant(
    item: LineItem,
    product: CatalogProduct,
    variant: CatalogVariant,
) -> Tuple[int, Dict[str, bool]]:
    """Cross-reference score of one catalog variant against a frame."""
    parsed_model = " ".join((item.model or "").split()).lower()
    catalog_model = " ".join(product.model.split()).lower()

    matches = {
        "brand": _contains_either(item.brand or "", product.brand),
        "model": bool(parsed_model and catalog_model) and (
            parsed_model in catalog_model
            or catalog_model in parsed_model
            or fuzz.ratio(parsed_model, catalog_model) >= MODEL_SIMILARITY
        ),
        "color_code": _contains_either(item.color_code or "", variant.color_code),
        "eye_size": variant.eye_size is not None and variant.eye_size == item.eye_size,
        "bridge": variant.bridge is not None and variant.bridge == item.bridge,
        "temple": variant.temple is not None and variant.temple == item.temple,
    }
    score = (
        BRAND_WEIGHT * matches["brand"]
        + MODEL_WEIGHT * matches["model"]
        + COLOR_WEIGHT * matches["color_code"]
        + SIZE_WEIGHT * (matches["eye_size"] + matches["bridge"] + matches["temple"])
    )
    return score, matches


class FrameEnricher:
    """Looks up frames in a vendor catalog and fills what the document lacked."""

    def __init__(
        self,
        client: CatalogLookupClient,
        min_confidence: Optional[float] = None,
        concurrency: Optional[int] = None,
        per_item_timeout: Optional[float] = None,
        search_limit: Optional[int] = None,
    ):
        self.client = client
        self.min_confidence = (
            min_confidence if min_confidence is not None else enrichment_settings.min_confidence
        )
        self.concurrency = concurrency or enrichment_settings.concurrency
        self.per_item_timeout = per_item_timeout or enrichment_settings.per_item_timeout
        self.search_limit = search_limit
        self.log = logger.bind(component="frame_enricher")

    async def enrich(self, items: List[LineItem]) -> EnrichmentSummary:
        """Enrich items in place.

        Returns:
            EnrichmentSummary with validated, failed and timed-out counts
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(item: LineItem) -> str:
            async with semaphore:
                try:
                    validated = await asyncio.wait_for(
                        self.enrich_item(item), timeout=self.per_item_timeout
                    )
                except asyncio.TimeoutError:
                    item.enriched = False
                    item.attributes["enrichment_error"] = "timeout"
                    self.log.warning("enrichment_timeout", model=item.model, timeout=self.per_item_timeout)
                    return "timed_out"
                except Exception as e:
                    item.enriched = False
                    item.attributes["enrichment_error"] = str(e)
                    self.log.warning(
                        "enrichment_failed",
                        model=item.model,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return "failed"
                return "validated" if validated else "failed"

        outcomes = await asyncio.gather(*(run(item) for item in items))

        summary = EnrichmentSummary(
            requested=len(items),
            validated=outcomes.count("validated"),
            failed=outcomes.count("failed"),
            timed_out=outcomes.count("timed_out"),
        )
        self.log.info("enrichment_completed", **summary.model_dump())
        return summary

    async def enrich_item(self, item: LineItem) -> bool:
        """Search, score and apply the best variant. Returns True if validated."""
        variations = search_variations(item, self.search_limit)
        product: Optional[CatalogProduct] = None
        for query in variations:
            product = await self.client.search(query)
            if product is not None:
                break

        if product is None:
            item.enriched = False
            item.attributes["enrichment_error"] = "not_found"
            item.attributes["search_attempts"] = len(variations)
            return False

        best: Optional[CatalogVariant] = None
        best_score = 0
        best_matches: Dict[str, bool] = {}
        for variant in product.variants:
            score, matches = score_variant(item, product, variant)
            if score > best_score:
                best, best_score, best_matches = variant, score, matches

        item.attributes["enrichment_confidence"] = best_score
        if best is None or best_score < self.min_confidence:
            item.enriched = False
            item.attributes["enrichment_error"] = "insufficient_match"
            return False

        self._apply(item, best)
        item.attributes["enrichment_matches"] = best_matches
        item.enriched = True
        return True

    def _apply(self, item: LineItem, variant: CatalogVariant) -> None:
        for field in ("upc", "ean", "sku"):
            value = getattr(variant, field)
            if value:
                setattr(item, field, value)
        if variant.wholesale is not None:
            item.unit_price = variant.wholesale
        if variant.msrp is not None:
            item.msrp = variant.msrp
        for field in ("eye_size", "bridge", "temple"):
            if getattr(item, field) is None:
                setattr(item, field, getattr(variant, field))
        if item.color is None and variant.color_name:
            item.color = variant.color_name

        item.attributes["in_stock"] = variant.in_stock
        for source, target in (
            ("availability", "availability_status"),
            ("material", "material"),
            ("gender", "gender"),
        ):
            value = getattr(variant, source)
            if value is not None:
                item.attributes[target] = value
