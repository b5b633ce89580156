"""Unit tests for the document format parsers and the parser registry.

PDF tests feed already-extracted page text to ``parse_pages``; the
pdfplumber layer is exercised separately with a mocked document.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from tests.unit.documents import (
    KENMARK_HTML,
    LUXOTTICA_HTML,
    MARCHON_TEXT,
    MODERN_OPTICAL_HTML,
    safilo_pages,
)
from vendor_ingestion.errors import ParserError, UnknownVendorFormat, ValidationError
from vendor_ingestion.models.message import DocumentContent
from vendor_ingestion.models.parsed_order import ItemConfidence
from vendor_ingestion.models.vendor_profile import VendorProfile
from vendor_ingestion.parsers import (
    HtmlSectionsParser,
    HtmlTableParser,
    ParserInterface,
    PdfLinesParser,
    TextFixedParser,
    create_parser_instance,
    list_registered_parsers,
    parser_for_profile,
    register_parser,
)
from vendor_ingestion.parsers.html_table_parser import expand_color
from vendor_ingestion.parsers.pdf_lines_parser import extract_page_lines


class TestPdfLinesParser:
    """Test the multi-page line-record PDF parser."""

    @pytest.fixture
    def parser(self):
        return PdfLinesParser()

    @pytest.fixture
    def safilo(self, get_profile):
        return get_profile("safilo")

    def test_two_page_document_yields_every_frame(self, parser, safilo):
        """23 + 18 frame records, one split over the page break, give 41 items."""
        order = parser.parse_pages(safilo_pages(), safilo)

        assert len(order.items) == 41
        assert order.vendor == "safilo"
        assert order.warnings == []
        assert order.computed_pieces == 41

    def test_us_suffix_is_stripped_from_model(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(), safilo)

        item = next(i for i in order.items if i.model and "CHERETTE2" in i.model)
        assert item.model == "KS CHERETTE2"
        assert "/" not in item.model
        assert item.variant == "US"
        assert item.brand == "KATE SPADE"
        assert item.color_code == "X19"
        assert item.color == "PATTERN MULTICOLOR"

    def test_record_split_over_page_break_keeps_temple(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(), safilo)

        item = next(i for i in order.items if i.model == "KS CHERETTE2")
        assert item.size == "52/17/140"
        assert (item.eye_size, item.bridge, item.temple) == (52, 17, 140)
        assert item.parse_errors == []

    def test_wrapped_line_is_joined(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(), safilo)

        item = next(i for i in order.items if i.model == "CARDUC 020")
        assert item.brand == "CARRERA DUCATI"
        assert item.color_code == "003"
        assert item.color == "MATTE BLACK"
        assert item.size == "55/19/145"

    def test_header_fields(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(), safilo)

        assert order.account_number == "0001234567"
        assert order.order.order_number == "987654"
        assert order.order.order_date == "10/01/2025"
        assert order.order.rep_name == "Jane Rep"
        assert order.order.customer_name == "TATUM EYECARE"
        assert order.order.total_pieces == 41

    def test_page_noise_and_markers_are_not_items(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(), safilo)

        raw_lines = [item.raw_line for item in order.items]
        assert not any("Page" in line for line in raw_lines)
        assert not any("Date Available" in line for line in raw_lines)
        assert order.items[-1].model == "MIS 0101"
        assert order.items[-2].model == "JC HAVANA"
        assert order.items[-2].variant == "G"

    def test_totals_mismatch_is_a_warning(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(total_quantity=40), safilo)

        assert len(order.items) == 41
        assert order.has_warning("totals_mismatch")

    def test_carrera_model_is_stored_without_brand_token(self, parser, safilo):
        order = parser.parse_pages(safilo_pages(), safilo)

        first = order.items[0]
        assert first.brand == "CARRERA"
        assert first.model == "8800"
        assert first.color_code == "807"
        assert first.sku == "CARRERA-8800-807"

        ducati = next(i for i in order.items if i.brand == "CARRERA DUCATI")
        assert ducati.model == "CARDUC 020"

    def test_declared_order_total_without_line_prices_is_not_a_mismatch(self, parser, safilo):
        pages = safilo_pages()
        pages[-1] = pages[-1].replace("Page 2 of 2", "Order Total: $2,521.50\nPage 2 of 2")

        order = parser.parse_pages(pages, safilo)

        assert order.order.total_value == Decimal("2521.50")
        assert len(order.items) == 41
        assert order.warnings == []

    def test_record_without_size_is_kept_with_failure(self, parser, safilo):
        pages = ["Item Description\nMIS 0101 807 BLACK\nCARRERA 8800 807 BLACK 54/18 145"]

        order = parser.parse_pages(pages, safilo)

        assert len(order.items) == 2
        broken = order.items[0]
        assert broken.model == "MIS 0101"
        assert broken.size is None
        assert broken.confidence == ItemConfidence.LOW
        assert broken.parse_errors[0].context["field"] == "size"
        assert order.items[1].confidence == ItemConfidence.HIGH

    def test_missing_start_marker_yields_no_items(self, parser, safilo):
        order = parser.parse_pages(["CARRERA 8800 807 BLACK 54/18 145"], safilo)

        assert order.items == []

    def test_parse_requires_pdf(self, parser, safilo):
        with pytest.raises(ParserError):
            parser.parse(DocumentContent(html="<p>hi</p>"), safilo)

    def test_unreadable_pdf_raises_parser_error(self, parser, safilo):
        with pytest.raises(ParserError) as exc_info:
            parser.parse(DocumentContent(pdf=b"definitely not a pdf"), safilo)

        assert exc_info.value.kind == "parse_failure"

    @patch("vendor_ingestion.parsers.pdf_lines_parser.pdfplumber.open")
    def test_extract_page_lines_groups_words_by_position(self, mock_open):
        page = MagicMock()
        page.extract_words.return_value = [
            {"text": "52/17", "top": 100.0, "x0": 300.0},
            {"text": "KS", "top": 101.5, "x0": 10.0},
            {"text": "CHERETTE2/US", "top": 99.0, "x0": 40.0},
            {"text": "140", "top": 120.0, "x0": 10.0},
        ]
        pdf = MagicMock()
        pdf.pages = [page]
        mock_open.return_value.__enter__.return_value = pdf

        pages = extract_page_lines(b"%PDF-1.4", y_tolerance=3.0)

        assert pages == ["KS CHERETTE2/US 52/17\n140"]

    @patch("vendor_ingestion.parsers.pdf_lines_parser.extract_page_lines")
    def test_parse_pdf_returns_extraction(self, mock_extract, parser, safilo):
        mock_extract.return_value = safilo_pages()

        extraction = parser.parse_pdf(b"%PDF-1.4", safilo)

        assert len(extraction.frames) == 41
        assert extraction.account_number == "0001234567"
        assert extraction.order_info.order_number == "987654"
        assert extraction.warnings == []


class TestHtmlSectionsParser:
    """Test the brand/model header grouped HTML parser."""

    @pytest.fixture
    def order(self, get_profile):
        return HtmlSectionsParser().parse(
            DocumentContent(html=LUXOTTICA_HTML), get_profile("luxottica")
        )

    def test_items_inherit_section_headers(self, order):
        assert len(order.items) == 3

        first = order.items[0]
        assert first.brand == "BURBERRY"
        assert first.model == "0BE1375"
        assert first.collection == "DOUGLAS"
        assert first.color_code == "114513"
        assert first.color == "LIGHT GOLD / BROWN GRADIENT"
        assert first.size == "59"
        assert first.eye_size == 59
        assert first.upc == "8053672321005"
        assert first.unit_price == Decimal("136.52")
        assert first.quantity == 1
        assert first.shipping_date == "09-10-2025"

    def test_model_header_resets_color_and_collection(self, order):
        second = order.items[1]

        assert second.brand == "BURBERRY"
        assert second.model == "0BE2345"
        assert second.collection is None
        assert second.color_code == "3001"

    def test_brand_aliases_are_applied(self, order):
        third = order.items[2]

        assert third.brand == "RAY-BAN"
        assert third.collection == "CLUBMASTER"
        assert third.quantity == 2

    def test_header_and_totals(self, order):
        assert order.account_number == "0001247652"
        assert order.order.order_number == "1757452162354"
        assert order.order.customer_name == "TATUM EYECARE"
        assert order.order.rep_name == "Risa Shaver"
        assert order.order.order_date == "09-09-2025"
        assert order.order.total_pieces == 4
        assert order.order.total_value == Decimal("474.52")
        assert order.warnings == []
        assert len(order.unique_frames) == 3

    def test_item_without_color_line_is_annotated(self, get_profile):
        html = (
            '<pre><font size="5">PERSOL (1)</font><br>'
            '<font size="5">0PO3019S (1)</font><br>'
            "52 8053672999999 USD 150.00 1 09-10-2025<br></pre>"
        )

        order = HtmlSectionsParser().parse(DocumentContent(html=html), get_profile("luxottica"))

        assert len(order.items) == 1
        item = order.items[0]
        assert item.model == "0PO3019S"
        assert item.confidence == ItemConfidence.LOW
        assert [e.context["field"] for e in item.parse_errors] == ["color"]

    def test_empty_document_raises(self, get_profile):
        with pytest.raises(ParserError):
            HtmlSectionsParser().parse(DocumentContent(), get_profile("luxottica"))


class TestHtmlTableParser:
    """Test the row-per-item HTML table parser."""

    @pytest.fixture
    def order(self, get_profile):
        return HtmlTableParser().parse(
            DocumentContent(html=MODERN_OPTICAL_HTML), get_profile("modern_optical")
        )

    def test_rows_become_items(self, order):
        assert len(order.items) == 3

        first = order.items[0]
        assert first.brand == "MODERN"
        assert first.model == "BLAZE"
        assert first.color == "Black/Gold"
        assert first.size == "52"
        assert first.quantity == 2

    def test_model_suffix_and_full_size(self, order):
        second = order.items[1]

        assert second.model == "BOLD"
        assert second.variant == "US"
        assert second.color == "Tortoise"
        assert (second.eye_size, second.bridge, second.temple) == (50, 18, 140)

    def test_bad_quantity_keeps_item(self, order):
        third = order.items[2]

        assert third.brand == "B.M.E.C."
        assert third.model == "BIG JON"
        assert third.color == "Matte Black"
        assert third.confidence == ItemConfidence.LOW
        assert third.parse_errors[0].context["field"] == "quantity"

    def test_header_fields(self, order):
        assert order.order.order_number == "556677"
        assert order.order.rep_name == "Dana Cole"
        assert order.order.customer_name == "TATUM EYECARE"
        assert order.account_number == "104223"
        assert order.order.total_pieces == 4
        assert order.warnings == []

    def test_color_code_and_upc_from_image(self, get_profile):
        order = HtmlTableParser().parse(DocumentContent(html=KENMARK_HTML), get_profile("kenmark"))

        assert len(order.items) == 1
        item = order.items[0]
        assert item.brand == "KENMARK"
        assert item.model == "KM1001"
        assert item.color_code == "BLK"
        assert item.color == "Black Matte"
        assert item.upc == "889258123456"
        assert item.sku == "KENMARK-KM1001-BLK"

    def test_expand_color(self):
        table = {"BLK": "Black", "gld": "Gold"}

        assert expand_color("BLK/GLD", table) == "Black/Gold"
        assert expand_color("MATTE BLK", table) == "Matte Black"
        assert expand_color("BLK/GLD", {}) == "BLK/GLD"

    def test_requires_html(self, get_profile):
        with pytest.raises(ParserError):
            HtmlTableParser().parse(DocumentContent(plain_text="x"), get_profile("kenmark"))


class TestTextFixedParser:
    """Test the fixed-token plain text parser."""

    @pytest.fixture
    def marchon(self, get_profile):
        return get_profile("marchon")

    @pytest.fixture
    def order(self, marchon):
        return TextFixedParser().parse(DocumentContent(plain_text=MARCHON_TEXT), marchon)

    def test_lines_become_items(self, order):
        assert len(order.items) == 3

        first = order.items[0]
        assert first.brand == "Salvatore Ferragamo"
        assert first.model == "SF2223N"
        assert first.color_code == "717"
        assert first.color == "LIGHT GOLD/BURGUNDY"
        assert first.eye_size == 54
        assert first.size == "54"
        assert first.quantity == 2
        assert first.unit_price == Decimal("89.00")
        assert first.sku == "SF2223N-717-54"

    def test_longest_prefix_decides_brand(self, order):
        assert order.items[1].brand == "Calvin Klein"
        assert order.items[2].brand == "Nike"

    def test_bad_quantity_is_annotated(self, order):
        item = order.items[2]

        assert item.confidence == ItemConfidence.LOW
        assert item.parse_errors[0].kind == "field_parse_failure"
        assert item.parse_errors[0].context["raw_value"] == "x"

    def test_header_fields(self, order):
        assert order.order.order_number == "MO12345"
        assert order.order.rep_name == "Pat Smith"
        assert order.order.order_date == "2025-10-01"
        assert order.order.customer_name == "TATUM EYECARE"
        assert order.account_number == "104223"
        assert order.order.payment_terms == "NET 60"
        assert order.order.total_value == Decimal("324.50")
        assert order.warnings == []

    def test_profile_tolerance_override(self, marchon):
        text = MARCHON_TEXT.replace("$324.50", "$325.20")

        order = TextFixedParser().parse(DocumentContent(plain_text=text), marchon)

        assert order.warnings == []

    def test_mismatch_beyond_tolerance(self, marchon):
        text = MARCHON_TEXT.replace("$324.50", "$330.00")

        order = TextFixedParser().parse(DocumentContent(plain_text=text), marchon)

        assert order.has_warning("totals_mismatch")

    def test_reads_html_body(self, marchon):
        html = "<div>" + MARCHON_TEXT.replace("\n", "<br>\n") + "</div>"

        order = TextFixedParser().parse(DocumentContent(html=html), marchon)

        assert len(order.items) == 3

    def test_unknown_prefix_uses_default_brand(self, marchon):
        text = "ZZ100 001 BLACK (50 eye) 1 $10.00"

        order = TextFixedParser().parse(DocumentContent(plain_text=text), marchon)

        assert order.items[0].brand == "Marchon"


class TestParserRegistry:
    """Test registry dispatch by profile format id."""

    def test_builtin_parsers_registered(self):
        registered = list_registered_parsers()

        for parser_type in ("html_sections", "html_table", "pdf_lines", "text_fixed"):
            assert parser_type in registered

    def test_parser_for_profile(self, get_profile):
        assert isinstance(parser_for_profile(get_profile("safilo")), PdfLinesParser)
        assert isinstance(parser_for_profile(get_profile("kenmark")), HtmlTableParser)
        assert isinstance(parser_for_profile(get_profile("modern_optical")), HtmlTableParser)

    def test_detection_only_vendor_has_no_parser(self, get_profile):
        with pytest.raises(UnknownVendorFormat) as exc_info:
            parser_for_profile(get_profile("etnia_barcelona"))

        assert exc_info.value.kind == "unknown_vendor_format"
        assert exc_info.value.context["parser"] == "etnia_portal"

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            register_parser("pdf_lines", PdfLinesParser)

    def test_non_parser_class_rejected(self):
        with pytest.raises(TypeError):
            register_parser("not_a_parser", dict)

    def test_unknown_parser_type(self):
        with pytest.raises(ParserError):
            create_parser_instance("nope")

    def test_invalid_parsing_tables(self):
        profile = VendorProfile(
            id="broken",
            name="Broken",
            parser="html_table",
            parsing={"columns": {"model": 1}},
        )

        with pytest.raises(ValidationError) as exc_info:
            HtmlTableParser().validate_config(profile)

        assert exc_info.value.context["vendor"] == "broken"

    def test_parsers_implement_interface(self):
        for parser in (HtmlSectionsParser(), HtmlTableParser(), PdfLinesParser(), TextFixedParser()):
            assert isinstance(parser, ParserInterface)
