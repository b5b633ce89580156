"""Parser registry for dynamic parser registration and retrieval.

Vendor profiles name their document format by parser id; dispatch is a
lookup in this registry rather than a chain of vendor checks.
"""
from typing import Dict, Optional, Type

from vendor_ingestion.errors.exceptions import ParserError, UnknownVendorFormat
from vendor_ingestion.models.vendor_profile import VendorProfile
from vendor_ingestion.parsers.base_parser import ParserInterface


# Global registry mapping parser type strings to parser classes
_parser_registry: Dict[str, Type[ParserInterface]] = {}


def register_parser(parser_type: str, parser_class: Type[ParserInterface]) -> None:
    """Register a parser class for a given parser type.

    Args:
        parser_type: Unique identifier for the parser (e.g., "html_sections")
        parser_class: Parser class that inherits from ParserInterface

    Raises:
        ValueError: If parser_type is already registered
        TypeError: If parser_class does not inherit from ParserInterface
    """
    if not issubclass(parser_class, ParserInterface):
        raise TypeError(
            f"Parser class {parser_class.__name__} must inherit from ParserInterface"
        )

    if parser_type in _parser_registry:
        raise ValueError(
            f"Parser type '{parser_type}' is already registered. "
            f"Existing: {_parser_registry[parser_type].__name__}"
        )

    _parser_registry[parser_type] = parser_class


def get_parser(parser_type: str) -> Optional[Type[ParserInterface]]:
    """Get parser class for a given parser type, or None."""
    return _parser_registry.get(parser_type)


def create_parser_instance(parser_type: str, **kwargs) -> ParserInterface:
    """Create an instance of a parser for a given parser type.

    Raises:
        ParserError: If parser type is not registered or construction fails
    """
    parser_class = get_parser(parser_type)
    if parser_class is None:
        available = ", ".join(_parser_registry.keys()) if _parser_registry else "none"
        raise ParserError(
            f"Parser type '{parser_type}' is not registered. "
            f"Available parsers: {available}",
            {"parser": parser_type},
        )

    try:
        return parser_class(**kwargs)
    except Exception as e:
        raise ParserError(
            f"Failed to create parser instance for '{parser_type}': {e}",
            {"parser": parser_type},
        ) from e


def parser_for_profile(profile: VendorProfile) -> ParserInterface:
    """Resolve the document parser a vendor profile points at.

    Raises:
        UnknownVendorFormat: If no parser is registered for the profile's format
    """
    if get_parser(profile.parser) is None:
        raise UnknownVendorFormat(
            f"No document parser registered for vendor '{profile.id}' "
            f"(format '{profile.parser}')",
            {
                "vendor": profile.id,
                "parser": profile.parser,
                "available": list_registered_parsers(),
            },
        )
    return create_parser_instance(profile.parser)


def list_registered_parsers() -> list[str]:
    """List all registered parser types."""
    return list(_parser_registry.keys())
