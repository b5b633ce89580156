"""End-to-end pipeline tests: classify → parse → catalog → enrich → persist."""
import json
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy import func, select
from tenacity import wait_none

from tests.unit.documents import KS_CHERETTE_CATALOG, MARCHON_TEXT, safilo_pages
from vendor_ingestion.db.models.catalog_entry import CatalogEntry
from vendor_ingestion.db.models.inventory_item import InventoryItem
from vendor_ingestion.db.operations import get_ingestion_logs
from vendor_ingestion.models.ingestion import IngestionStatus
from vendor_ingestion.models.message import RawMessage
from vendor_ingestion.services.ingestion import IngestionPipeline


def catalog_handler(request: httpx.Request) -> httpx.Response:
    """Answer only the KS CHERETTE2 style; everything else is unknown."""
    if json.loads(request.content)["search"] == "KS CHERETTE2":
        return httpx.Response(200, json=KS_CHERETTE_CATALOG)
    return httpx.Response(404)


@pytest.fixture
def pipeline(vendor_profiles):
    return IngestionPipeline(
        vendor_profiles,
        http_transport=httpx.MockTransport(catalog_handler),
        retry_wait=wait_none(),
    )


async def _inventory_count(session) -> int:
    result = await session.execute(select(func.count(InventoryItem.id)))
    return result.scalar_one()


class TestNonIngestedOutcomes:
    """Test messages that never become orders."""

    @pytest.mark.asyncio
    async def test_unknown_vendor_needs_review(self, pipeline, db_session):
        message = RawMessage(sender="someone@gmail.com", subject="Lunch?", plain_text="See you at noon")

        outcome = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert outcome.status == IngestionStatus.NEEDS_REVIEW
        assert outcome.detection.is_unknown
        assert outcome.errors[0].kind == "detection_ambiguous"
        logs = await get_ingestion_logs(db_session)
        assert len(logs) == 1
        assert logs[0].kind == "detection_ambiguous"
        assert logs[0].document_ref == "Lunch?"
        assert await _inventory_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_detection_only_vendor_is_unsupported(self, pipeline, db_session):
        message = RawMessage(sender="orders@etniabarcelona.com", subject="Order 1", plain_text="...")

        outcome = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert outcome.status == IngestionStatus.UNSUPPORTED_FORMAT
        assert outcome.detection.vendor == "etnia_barcelona"
        logs = await get_ingestion_logs(db_session, kind="unknown_vendor_format")
        assert logs[0].vendor_id == "etnia_barcelona"

    @pytest.mark.asyncio
    async def test_unreadable_document_fails(self, pipeline, db_session):
        message = RawMessage(sender="noreply@safilo.com", subject="Order", plain_text="no attachment")

        outcome = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert outcome.status == IngestionStatus.FAILED
        assert outcome.errors[0].kind == "parse_failure"
        assert await _inventory_count(db_session) == 0


class TestIngested:
    """Test messages that become orders."""

    @pytest.mark.asyncio
    async def test_text_order_is_persisted_and_cached(self, pipeline, db_session):
        message = RawMessage(sender="orders@marchon.com", subject="Order confirmation", plain_text=MARCHON_TEXT)

        first = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert first.status == IngestionStatus.INGESTED
        assert first.order_id is not None
        assert first.enrichment is None
        assert first.catalog_check.cache_misses == 3
        assert first.catalog_write.cached == 3
        assert await _inventory_count(db_session) == 3

        second = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert second.catalog_check.cache_hits == 3
        assert second.catalog_write.updated == 3
        assert second.order_id != first.order_id
        assert await _inventory_count(db_session) == 6

    @pytest.mark.asyncio
    async def test_pdf_order_is_enriched_from_catalog_api(self, pipeline, db_session):
        message = RawMessage(
            sender="Safilo <noreply@safilo.com>",
            subject="Order 987654",
            attachment=b"%PDF-1.4",
            attachment_name="order_987654.pdf",
        )

        with patch(
            "vendor_ingestion.parsers.pdf_lines_parser.extract_page_lines",
            return_value=safilo_pages(),
        ):
            outcome = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert outcome.status == IngestionStatus.INGESTED
        assert len(outcome.parsed.items) == 41
        assert outcome.enrichment.requested == 41
        assert outcome.enrichment.validated == 1
        assert outcome.enrichment.failed == 40

        result = await db_session.execute(
            select(InventoryItem.upc, InventoryItem.wholesale_price)
            .where(InventoryItem.model == "KS CHERETTE2")
        )
        row = result.one()
        assert row.upc == "716736123456"
        assert row.wholesale_price == Decimal("61.50")

        result = await db_session.execute(
            select(CatalogEntry.data_source, CatalogEntry.verified, CatalogEntry.confidence_score)
            .where(CatalogEntry.model == "KS CHERETTE2")
        )
        entry = result.one()
        assert entry.data_source == "api"
        assert entry.verified is True
        assert entry.confidence_score == 95

    @pytest.mark.asyncio
    async def test_enrichment_can_be_disabled(self, vendor_profiles, db_session):
        pipeline = IngestionPipeline(vendor_profiles, enrich=False)
        message = RawMessage(sender="noreply@safilo.com", subject="Order", attachment=b"%PDF-1.4")

        with patch(
            "vendor_ingestion.parsers.pdf_lines_parser.extract_page_lines",
            return_value=safilo_pages(),
        ):
            outcome = await pipeline.ingest(db_session, message, account_id="acct-1")

        assert outcome.status == IngestionStatus.INGESTED
        assert outcome.enrichment is None
        assert outcome.catalog_write.cached == 41

    @pytest.mark.asyncio
    async def test_frames_cached_while_api_down_are_enriched_on_next_order(
        self, vendor_profiles, db_session
    ):
        """Frames remembered after a failed lookup are looked up again once the API is back."""
        message = RawMessage(sender="noreply@safilo.com", subject="Order 987654", attachment=b"%PDF-1.4")
        down = IngestionPipeline(
            vendor_profiles,
            http_transport=httpx.MockTransport(lambda request: httpx.Response(503)),
            retry_wait=wait_none(),
        )
        up = IngestionPipeline(
            vendor_profiles,
            http_transport=httpx.MockTransport(catalog_handler),
            retry_wait=wait_none(),
        )

        with patch(
            "vendor_ingestion.parsers.pdf_lines_parser.extract_page_lines",
            return_value=safilo_pages(),
        ):
            first = await down.ingest(db_session, message, account_id="acct-1")
            second = await up.ingest(db_session, message, account_id="acct-1")

        assert first.status == IngestionStatus.INGESTED
        assert first.enrichment.failed == 41
        assert first.catalog_write.cached == 41

        assert second.status == IngestionStatus.INGESTED
        assert second.catalog_check.cache_hits == 41
        assert second.catalog_check.cache_incomplete == 41
        assert second.enrichment.requested == 41
        assert second.enrichment.validated == 1

        result = await db_session.execute(
            select(InventoryItem.upc)
            .where(InventoryItem.model == "KS CHERETTE2")
            .where(InventoryItem.order_id == second.order_id)
        )
        assert result.scalar_one() == "716736123456"

        result = await db_session.execute(
            select(
                CatalogEntry.data_source,
                CatalogEntry.verified,
                CatalogEntry.confidence_score,
                CatalogEntry.upc,
                CatalogEntry.times_ordered,
            )
            .where(CatalogEntry.model == "KS CHERETTE2")
        )
        entry = result.one()
        assert entry.data_source == "api"
        assert entry.verified is True
        assert entry.confidence_score == 95
        assert entry.upc == "716736123456"
        assert entry.times_ordered == 2
