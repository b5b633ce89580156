"""Document format parsers for vendor order emails."""
from vendor_ingestion.parsers.base_parser import ParserInterface
from vendor_ingestion.parsers.parser_registry import (
    register_parser,
    get_parser,
    create_parser_instance,
    list_registered_parsers,
    parser_for_profile,
)
from vendor_ingestion.parsers.html_sections_parser import HtmlSectionsParser
from vendor_ingestion.parsers.html_table_parser import HtmlTableParser
from vendor_ingestion.parsers.pdf_lines_parser import PdfLinesParser, PdfExtraction
from vendor_ingestion.parsers.text_fixed_parser import TextFixedParser

# Register parsers
register_parser("html_sections", HtmlSectionsParser)
register_parser("html_table", HtmlTableParser)
register_parser("pdf_lines", PdfLinesParser)
register_parser("text_fixed", TextFixedParser)

__all__ = [
    "ParserInterface",
    "register_parser",
    "get_parser",
    "create_parser_instance",
    "list_registered_parsers",
    "parser_for_profile",
    "HtmlSectionsParser",
    "HtmlTableParser",
    "PdfLinesParser",
    "PdfExtraction",
    "TextFixedParser",
]
