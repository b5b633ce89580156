"""End-to-end ingestion of one vendor order message.

Flow:
    1. Classify the sender (unknown → needs_review, logged)
    2. Resolve the document parser (unregistered format → unsupported_format)
    3. Parse, then check the shared catalog
    4. Enrich catalog misses and incomplete hits from the vendor API when the
       profile configures one
    5. Remember every frame in the catalog (API-verified or email-parsed)
    6. Persist the order and its inventory rows

Example:
    pipeline = IngestionPipeline(ProfileRepository())
    async with async_session_maker() as session:
        outcome = await pipeline.ingest(session, message, account_id="acct-1")
"""
from typing import List, Optional, Union

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from vendor_ingestion.db.operations import create_order_with_items, log_ingestion_error
from vendor_ingestion.errors import (
    DataIngestionError,
    DetectionAmbiguous,
    ParserError,
    UnknownVendorFormat,
    ValidationError,
)
from vendor_ingestion.models.catalog import CatalogWriteResult, DataSource
from vendor_ingestion.models.ingestion import EnrichmentSummary, IngestionOutcome, IngestionStatus
from vendor_ingestion.models.message import DocumentContent, RawMessage
from vendor_ingestion.models.parsed_order import LineItem
from vendor_ingestion.models.parser_options import EnrichmentOptions
from vendor_ingestion.models.vendor_profile import VendorProfile, VendorProfileSet
from vendor_ingestion.parsers import parser_for_profile
from vendor_ingestion.services.catalog import CatalogCache
from vendor_ingestion.services.classification import ProfileRepository, VendorClassifier
from vendor_ingestion.services.enrichment import CatalogLookupClient, FrameEnricher

logger = structlog.get_logger(__name__)


def merge_write_results(results: List[CatalogWriteResult]) -> CatalogWriteResult:
    merged = CatalogWriteResult()
    for result in results:
        merged.cached += result.cached
        merged.updated += result.updated
        merged.skipped += result.skipped
        merged.total += result.total
        merged.conflicts.extend(result.conflicts)
    return merged


class IngestionPipeline:
    """Turns raw vendor messages into cataloged, persisted orders."""

    def __init__(
        self,
        profiles: Union[ProfileRepository, VendorProfileSet],
        enrich: bool = True,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait=None,
    ):
        """
        Args:
            profiles: Profile repository (TTL cached) or a fixed profile table
            enrich: Look up catalog misses and incomplete hits on the vendor API when configured
            http_transport: Optional httpx transport for the catalog client
            retry_wait: Optional tenacity wait strategy for catalog retries
        """
        self.profiles = profiles
        self.enrich = enrich
        self.http_transport = http_transport
        self.retry_wait = retry_wait

    def _profile_table(self) -> VendorProfileSet:
        if isinstance(self.profiles, ProfileRepository):
            return self.profiles.get()
        return self.profiles

    async def ingest(
        self,
        session: AsyncSession,
        message: RawMessage,
        account_id: str,
    ) -> IngestionOutcome:
        """Process one message.

        Non-fatal problems (unknown vendor, unsupported format, unreadable
        document) are returned as outcome statuses and written to the
        ingestion log; database failures raise DatabaseError.
        """
        document_ref = message.attachment_name or message.subject or None
        log = logger.bind(component="ingestion_pipeline", account_id=account_id, document=document_ref)

        profiles = self._profile_table()
        detection = VendorClassifier(profiles).classify_message(message)

        if detection.is_unknown:
            error = DetectionAmbiguous(
                "No vendor identification tier matched",
                {"sender": message.sender, "subject": message.subject, "signals": detection.signals},
            )
            await self._record(session, error, None, document_ref)
            log.warning("ingestion_needs_review", sender=message.sender)
            return IngestionOutcome(
                status=IngestionStatus.NEEDS_REVIEW,
                detection=detection,
                errors=[error.to_record()],
            )

        profile = profiles.get(detection.vendor)
        log = log.bind(vendor=profile.id)

        try:
            parser = parser_for_profile(profile)
        except UnknownVendorFormat as e:
            await self._record(session, e, profile.id, document_ref)
            log.warning("ingestion_unsupported_format", parser=profile.parser)
            return IngestionOutcome(
                status=IngestionStatus.UNSUPPORTED_FORMAT,
                detection=detection,
                errors=[e.to_record()],
            )

        try:
            parsed = parser.parse(DocumentContent.from_message(message), profile)
        except (ParserError, ValidationError) as e:
            await self._record(session, e, profile.id, document_ref)
            log.error("ingestion_parse_failed", error=e.message, kind=e.kind)
            return IngestionOutcome(
                status=IngestionStatus.FAILED,
                detection=detection,
                errors=[e.to_record()],
            )

        catalog = CatalogCache(session)
        check = await catalog.check(profile.id, parsed.items)
        parsed.items = check.items

        enrichment: Optional[EnrichmentSummary] = None
        pending = check.needs_enrichment
        if self.enrich and pending:
            enrichment = await self._enrich(profile, pending)

        api_items = [item for item in parsed.items if item.enriched]
        for item in api_items:
            item.attributes.pop("cache_incomplete", None)
        parsed_items = [item for item in parsed.items if not item.enriched]
        writes = []
        if api_items:
            writes.append(await catalog.cache(profile.id, profile.name, api_items, DataSource.API))
        if parsed_items:
            writes.append(await catalog.cache(profile.id, profile.name, parsed_items, DataSource.EMAIL_PARSE))

        order = await create_order_with_items(session, parsed, account_id)
        order_id = order.id
        await session.commit()

        log.info(
            "ingestion_completed",
            order_id=str(order_id),
            items=len(parsed.items),
            cache_hits=check.cache_hits,
            enriched=len(api_items),
            warnings=len(parsed.warnings),
        )
        return IngestionOutcome(
            status=IngestionStatus.INGESTED,
            detection=detection,
            parsed=parsed,
            catalog_check=check,
            catalog_write=merge_write_results(writes),
            enrichment=enrichment,
            order_id=order_id,
            errors=list(parsed.warnings),
        )

    async def _enrich(
        self,
        profile: VendorProfile,
        items: List[LineItem],
    ) -> Optional[EnrichmentSummary]:
        raw = profile.parsing.get("enrichment")
        if not raw:
            return None
        try:
            options = EnrichmentOptions.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid enrichment options for vendor '{profile.id}'",
                {"vendor": profile.id, "errors": e.errors(include_url=False)},
            ) from e

        async with CatalogLookupClient(
            options.api_url,
            transport=self.http_transport,
            retry_wait=self.retry_wait,
        ) as client:
            enricher = FrameEnricher(client, search_limit=options.search_limit)
            return await enricher.enrich(items)

    async def _record(
        self,
        session: AsyncSession,
        error: DataIngestionError,
        vendor_id: Optional[str],
        document_ref: Optional[str],
    ) -> None:
        await log_ingestion_error(session, error.to_record(), vendor_id, document_ref)
        await session.commit()
