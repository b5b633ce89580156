"""Abstract parser interface for vendor order document formats."""
from abc import ABC, abstractmethod
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from vendor_ingestion.errors import ValidationError
from vendor_ingestion.models.message import DocumentContent
from vendor_ingestion.models.parsed_order import ParsedOrder
from vendor_ingestion.models.vendor_profile import VendorProfile

OptionsT = TypeVar("OptionsT", bound=BaseModel)


class ParserInterface(ABC):
    """Abstract base class for all document format parsers.

    One implementation exists per document *format*; vendors sharing a
    format share the implementation and differ only in the pattern tables
    of their profile (``VendorProfile.parsing``).

    Implementations must provide:
    - parse(): Turn raw content into a ParsedOrder
    - validate_config(): Verify the vendor's parsing tables
    - get_parser_name(): Return unique parser identifier

    Parsing is synchronous and side-effect free: a parser keeps no state
    between documents.
    """

    @abstractmethod
    def parse(self, content: DocumentContent, profile: VendorProfile) -> ParsedOrder:
        """Parse one document into an order.

        Args:
            content: Raw document content (HTML, plain text and/or PDF bytes)
            profile: Vendor profile whose ``parsing`` tables drive extraction

        Returns:
            ParsedOrder with header fields, ordered line items, unique frames
            and any warnings (e.g. totals mismatch)

        Raises:
            ParserError: If the document cannot be read at all
            ValidationError: If the profile's parsing tables are invalid

        Note:
            A line item that cannot be fully parsed is kept and annotated
            with its errors; it never aborts the document.
        """
        pass

    @abstractmethod
    def validate_config(self, profile: VendorProfile) -> bool:
        """Validate the profile's parsing tables before parsing.

        Raises:
            ValidationError: If configuration is invalid with detailed message
        """
        pass

    @abstractmethod
    def get_parser_name(self) -> str:
        """Return unique identifier for this parser type (e.g., "pdf_lines")."""
        pass

    def _load_options(self, profile: VendorProfile, options_model: Type[OptionsT]) -> OptionsT:
        try:
            return options_model.model_validate(profile.parsing)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid parsing tables for vendor '{profile.id}' ({self.get_parser_name()})",
                {
                    "vendor": profile.id,
                    "parser": self.get_parser_name(),
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
                    ],
                },
            ) from e
