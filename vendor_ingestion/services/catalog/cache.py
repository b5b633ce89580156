"""Shared vendor catalog cache.

Frames seen on past orders (or looked up from a vendor catalog API) are
remembered per vendor so repeated orders skip enrichment.

Concurrency contract: every write for a key is ONE atomic
``INSERT ... ON CONFLICT DO UPDATE`` statement. The popularity counter is
always incremented; stored attributes are replaced only when the incoming
confidence is greater than or equal to the stored one (compare-and-swap),
so concurrent writers converge regardless of arrival order.

Example:
    cache = CatalogCache(session)
    check = await cache.check("safilo", parsed.items)
    # check.cache_misses → items to enrich
    written = await cache.cache("safilo", "Safilo", enriched, DataSource.API)
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog
from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vendor_ingestion.config import catalog_settings
from vendor_ingestion.db.models.catalog_entry import CatalogEntry
from vendor_ingestion.errors import CacheWriteConflict, DatabaseError, DataIngestionError
from vendor_ingestion.models.catalog import (
    BrandBreakdown,
    CatalogCheckResult,
    CatalogStats,
    CatalogWriteResult,
    DataSource,
    ModelPopularity,
    VendorAnalytics,
)
from vendor_ingestion.models.parsed_order import LineItem

logger = structlog.get_logger(__name__)

CatalogKey = Tuple[str, str, str]

# Attribute columns replaced on a winning write (absent values keep the stored ones)
_MERGE_COLUMNS = (
    "vendor_name",
    "brand",
    "model",
    "color",
    "color_code",
    "size",
    "eye_size",
    "bridge",
    "temple",
    "sku",
    "upc",
    "ean",
    "wholesale_cost",
    "msrp",
    "material",
    "gender",
    "in_stock",
    "availability_status",
    "metadata",
)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def normalize_key(value: Optional[Any]) -> str:
    """Trim, collapse internal whitespace and uppercase; None becomes ''."""
    if value is None:
        return ""
    return " ".join(str(value).split()).upper()


def catalog_key(item: LineItem) -> CatalogKey:
    """Compound lookup key: (model, color code or color name, size)."""
    return (
        normalize_key(item.model),
        normalize_key(item.color_code or item.color),
        normalize_key(item.size),
    )


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))


class CatalogCache:
    """Catalog cache bound to one async session.

    Write operations commit their own unit of work; on failure the session
    is rolled back and DatabaseError is raised.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.log = logger.bind(component="catalog_cache")

    async def check(self, vendor_id: str, items: Iterable[LineItem]) -> CatalogCheckResult:
        """Annotate items with cache state and fill attributes from hits.

        Matching is exact on the normalized key. Returned items are copies;
        the inputs are not modified. A hit on an entry without a UPC or
        wholesale cost is flagged ``cache_incomplete`` so it is looked up again.
        """
        items = list(items)
        keyed = [(item, catalog_key(item)) for item in items]
        model_keys = {key[0] for _, key in keyed if key[0]}

        entries: Dict[CatalogKey, CatalogEntry] = {}
        if model_keys:
            try:
                result = await self.session.execute(
                    select(CatalogEntry)
                    .where(CatalogEntry.vendor_id == vendor_id)
                    .where(CatalogEntry.model_key.in_(model_keys))
                    # upserts bypass the identity map
                    .execution_options(populate_existing=True)
                )
            except Exception as e:
                self.log.error(
                    "catalog_check_failed",
                    vendor_id=vendor_id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise DatabaseError(f"Failed to check catalog: {e}") from e
            for entry in result.scalars():
                entries[(entry.model_key, entry.color_key, entry.size_key)] = entry

        annotated: List[LineItem] = []
        hits = 0
        incomplete = 0
        for item, key in keyed:
            copy = item.model_copy(deep=True)
            entry = entries.get(key) if key[0] else None
            if entry is not None:
                self._apply_entry(copy, entry)
                hits += 1
                if copy.attributes.get("cache_incomplete"):
                    incomplete += 1
            else:
                copy.cached = False
            annotated.append(copy)

        misses = len(annotated) - hits
        hit_rate = round(hits / len(annotated) * 100, 1) if annotated else 0.0

        self.log.info(
            "catalog_checked",
            vendor_id=vendor_id,
            items=len(annotated),
            cache_hits=hits,
            cache_misses=misses,
            cache_incomplete=incomplete,
            hit_rate=hit_rate,
        )
        return CatalogCheckResult(
            items=annotated,
            cache_hits=hits,
            cache_misses=misses,
            cache_incomplete=incomplete,
            hit_rate=hit_rate,
        )

    def _apply_entry(self, item: LineItem, entry: CatalogEntry) -> None:
        item.cached = True
        if item.brand is None:
            item.brand = entry.brand
        if item.color is None:
            item.color = entry.color
        if item.color_code is None:
            item.color_code = entry.color_code
        if item.unit_price is None and entry.wholesale_cost is not None:
            item.unit_price = _to_decimal(entry.wholesale_cost)
        if item.msrp is None and entry.msrp is not None:
            item.msrp = _to_decimal(entry.msrp)
        for field in ("sku", "upc", "ean", "eye_size", "bridge", "temple"):
            if getattr(item, field) is None:
                setattr(item, field, getattr(entry, field))

        for field in ("material", "gender", "in_stock", "availability_status"):
            value = getattr(entry, field)
            if value is not None:
                item.attributes.setdefault(field, value)
        item.attributes["catalog_confidence"] = entry.confidence_score
        item.attributes["catalog_verified"] = entry.verified
        # never enriched, or enrichment failed when it was cached
        if entry.upc is None or entry.wholesale_cost is None:
            item.attributes["cache_incomplete"] = True

    async def cache(
        self,
        vendor_id: str,
        vendor_name: Optional[str],
        items: Iterable[LineItem],
        data_source: Union[DataSource, str] = DataSource.EMAIL_PARSE,
        confidence: Optional[int] = None,
    ) -> CatalogWriteResult:
        """Upsert items into the catalog.

        Args:
            vendor_id: Vendor profile id
            vendor_name: Display name stored with the entries
            items: Line items to remember; items without a model are skipped
            data_source: Where the attributes came from
            confidence: Override for the data source's default confidence

        Returns:
            CatalogWriteResult counting inserted (``cached``), ``updated``
            and ``skipped`` items; lost compare-and-swap writes are listed in
            ``conflicts``.

        Raises:
            DatabaseError: If a write fails (the batch is rolled back)
        """
        source = DataSource(data_source)
        score = confidence
        if score is None:
            score = catalog_settings.source_confidence.get(source.value, 0)
        verified = source in (DataSource.API, DataSource.MANUAL)

        items = list(items)
        outcome = CatalogWriteResult(total=len(items))
        try:
            insert = _INSERTS[self.session.get_bind().dialect.name]
        except KeyError:
            raise DatabaseError(
                "Catalog upsert is not supported on this database",
                {"dialect": self.session.get_bind().dialect.name},
            )

        try:
            for item in items:
                key = catalog_key(item)
                if not key[0]:
                    outcome.skipped += 1
                    continue

                row = self._row(vendor_id, vendor_name, item, key, source, score, verified)
                returned = (await self.session.execute(self._upsert(insert, row))).one()

                if returned.times_ordered == 1:
                    outcome.cached += 1
                elif returned.confidence_score > score:
                    outcome.skipped += 1
                    conflict = CacheWriteConflict(
                        "Stored entry has higher confidence; attributes kept",
                        {
                            "vendor_id": vendor_id,
                            "model": key[0],
                            "color": key[1],
                            "size": key[2],
                            "stored_confidence": returned.confidence_score,
                            "incoming_confidence": score,
                        },
                    )
                    outcome.conflicts.append(conflict.to_record())
                    self.log.debug("catalog_write_skipped", **conflict.context)
                else:
                    outcome.updated += 1

            await self.session.commit()
        except DataIngestionError:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            self.log.error(
                "catalog_cache_failed",
                vendor_id=vendor_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to cache catalog items: {e}") from e

        self.log.info(
            "catalog_upserted",
            vendor_id=vendor_id,
            data_source=source.value,
            cached=outcome.cached,
            updated=outcome.updated,
            skipped=outcome.skipped,
            total=outcome.total,
        )
        return outcome

    def _row(
        self,
        vendor_id: str,
        vendor_name: Optional[str],
        item: LineItem,
        key: CatalogKey,
        source: DataSource,
        score: int,
        verified: bool,
    ) -> Dict[str, Any]:
        attributes = item.attributes
        return {
            "vendor_id": vendor_id,
            "vendor_name": vendor_name,
            "brand": item.brand,
            "model": item.model,
            "color": item.color,
            "color_code": item.color_code,
            "size": item.size,
            "eye_size": item.eye_size,
            "bridge": item.bridge,
            "temple": item.temple,
            "model_key": key[0],
            "color_key": key[1],
            "size_key": key[2],
            "sku": item.sku,
            "upc": item.upc,
            "ean": item.ean,
            "wholesale_cost": item.unit_price,
            "msrp": item.msrp,
            "material": attributes.get("material"),
            "gender": attributes.get("gender"),
            "in_stock": attributes.get("in_stock"),
            "availability_status": attributes.get("availability_status"),
            "confidence_score": score,
            "verified": verified,
            "data_source": source.value,
            "times_ordered": 1,
            "metadata": attributes.get("metadata"),
        }

    def _upsert(self, insert, row: Dict[str, Any]):
        table = CatalogEntry.__table__
        stmt = insert(table).values(row)
        excluded = stmt.excluded
        wins = excluded.confidence_score >= table.c.confidence_score

        update: Dict[str, Any] = {
            "times_ordered": table.c.times_ordered + 1,
            "last_updated": func.now(),
            "confidence_score": case((wins, excluded.confidence_score), else_=table.c.confidence_score),
            "data_source": case((wins, excluded.data_source), else_=table.c.data_source),
            "verified": case((wins, or_(table.c.verified, excluded.verified)), else_=table.c.verified),
        }
        for column in _MERGE_COLUMNS:
            update[column] = case(
                (wins, func.coalesce(excluded[column], table.c[column])),
                else_=table.c[column],
            )

        return stmt.on_conflict_do_update(
            index_elements=[
                table.c.vendor_id,
                table.c.model_key,
                table.c.color_key,
                table.c.size_key,
            ],
            set_=update,
        ).returning(table.c.id, table.c.times_ordered, table.c.confidence_score)

    async def stats(self, vendor_id: Optional[str] = None) -> CatalogStats:
        """Aggregate counts with a per-brand breakdown (read-only)."""
        brand = func.coalesce(CatalogEntry.brand, "Unknown")
        query = (
            select(
                brand.label("brand"),
                func.count(CatalogEntry.id).label("unique_items"),
                func.sum(CatalogEntry.times_ordered).label("total_orders"),
            )
            .group_by(CatalogEntry.brand)
        )
        if vendor_id is not None:
            query = query.where(CatalogEntry.vendor_id == vendor_id)

        try:
            rows = (await self.session.execute(query)).all()
        except Exception as e:
            self.log.error(
                "catalog_stats_failed",
                vendor_id=vendor_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to compute catalog stats: {e}") from e

        breakdown = [
            BrandBreakdown(
                brand=row.brand,
                unique_items=row.unique_items,
                total_orders=int(row.total_orders or 0),
                avg_orders_per_item=round(int(row.total_orders or 0) / row.unique_items, 2),
            )
            for row in rows
        ]
        breakdown.sort(key=lambda b: (-b.total_orders, b.brand))

        return CatalogStats(
            total_items=sum(b.unique_items for b in breakdown),
            total_orders=sum(b.total_orders for b in breakdown),
            brands=len(breakdown),
            brand_breakdown=breakdown,
        )

    async def vendor_analytics(self, vendor_id: str, top: int = 5) -> VendorAnalytics:
        """Pricing, availability and popularity summary for one vendor."""
        summary_query = select(
            func.count(CatalogEntry.id).label("total_items"),
            func.avg(CatalogEntry.wholesale_cost).label("avg_wholesale"),
            func.min(CatalogEntry.wholesale_cost).label("min_wholesale"),
            func.max(CatalogEntry.wholesale_cost).label("max_wholesale"),
            func.avg(CatalogEntry.msrp).label("avg_msrp"),
            func.min(CatalogEntry.msrp).label("min_msrp"),
            func.max(CatalogEntry.msrp).label("max_msrp"),
            func.sum(case((CatalogEntry.in_stock.is_(True), 1), else_=0)).label("in_stock"),
            func.sum(case((CatalogEntry.verified.is_(True), 1), else_=0)).label("verified"),
        ).where(CatalogEntry.vendor_id == vendor_id)

        popularity = func.sum(CatalogEntry.times_ordered)
        top_query = (
            select(CatalogEntry.brand, CatalogEntry.model, popularity.label("times_ordered"))
            .where(CatalogEntry.vendor_id == vendor_id)
            .group_by(CatalogEntry.brand, CatalogEntry.model)
            .order_by(popularity.desc(), CatalogEntry.model)
            .limit(top)
        )

        try:
            summary = (await self.session.execute(summary_query)).one()
            top_rows = (await self.session.execute(top_query)).all()
        except Exception as e:
            self.log.error(
                "vendor_analytics_failed",
                vendor_id=vendor_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to compute vendor analytics: {e}") from e

        total = summary.total_items or 0
        return VendorAnalytics(
            vendor_id=vendor_id,
            total_items=total,
            avg_wholesale=_to_decimal(summary.avg_wholesale),
            min_wholesale=_to_decimal(summary.min_wholesale),
            max_wholesale=_to_decimal(summary.max_wholesale),
            avg_msrp=_to_decimal(summary.avg_msrp),
            min_msrp=_to_decimal(summary.min_msrp),
            max_msrp=_to_decimal(summary.max_msrp),
            in_stock_percentage=round((summary.in_stock or 0) / total * 100, 1) if total else 0.0,
            verified_items=int(summary.verified or 0),
            top_models=[
                ModelPopularity(brand=row.brand, model=row.model, times_ordered=int(row.times_ordered))
                for row in top_rows
            ],
        )

    async def evict_stale(
        self,
        older_than_days: Optional[int] = None,
        vendor_id: Optional[str] = None,
    ) -> int:
        """Delete unverified, rarely ordered entries not touched since the cutoff.

        Returns:
            Number of entries removed
        """
        days = older_than_days if older_than_days is not None else catalog_settings.stale_after_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        stmt = (
            delete(CatalogEntry)
            .where(CatalogEntry.verified.is_(False))
            .where(CatalogEntry.times_ordered <= catalog_settings.evict_max_times_ordered)
            .where(CatalogEntry.last_updated < cutoff)
        )
        if vendor_id is not None:
            stmt = stmt.where(CatalogEntry.vendor_id == vendor_id)

        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            self.log.error(
                "catalog_evict_failed",
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError(f"Failed to evict stale catalog entries: {e}") from e

        removed = result.rowcount or 0
        self.log.info(
            "catalog_evicted",
            vendor_id=vendor_id,
            older_than_days=days,
            removed=removed,
        )
        return removed
