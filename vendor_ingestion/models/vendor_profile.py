"""Vendor profile and detection result models.

A vendor profile carries three tiers of identification patterns plus the
id of the document parser that understands the vendor's order format:

    Tier 1 (domain):         sender domain contains a known vendor domain
    Tier 2 (body_signature): normalized body contains a signature phrase
    Tier 3 (weak_pattern):   subject/body keyword hits reach required_matches
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class DetectionMethod(str, Enum):
    """Which identification tier produced a detection."""
    DOMAIN = "domain"
    BODY_SIGNATURE = "body_signature"
    WEAK_PATTERN = "weak_pattern"


UNKNOWN_VENDOR = "unknown"


class VendorProfile(BaseModel):
    """Identification patterns and parsing tables for one vendor."""

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1)
    parser: str = Field(..., min_length=1, description="Registered document parser id")

    domains: List[str] = Field(default_factory=list)
    domain_weight: int = Field(default=95, ge=0, le=100)

    body_signatures: List[str] = Field(default_factory=list)
    signature_weight: int = Field(default=85, ge=0, le=100)

    subject_keywords: List[str] = Field(default_factory=list)
    body_keywords: List[str] = Field(default_factory=list)
    required_matches: int = Field(default=2, ge=1)
    weak_weight: int = Field(default=60, ge=0, le=100)

    parsing: Dict[str, Any] = Field(
        default_factory=dict,
        description="Per-vendor pattern tables consumed by the parser (prefix maps, regexes, ...)"
    )

    @field_validator("domains")
    @classmethod
    def normalize_domains(cls, v: List[str]) -> List[str]:
        """Domains are compared lowercased and trimmed."""
        return [d.strip().lower() for d in v if d and d.strip()]


class VendorProfileSet(BaseModel):
    """Versioned, ordered table of vendor profiles.

    Declaration order is significant: it breaks ties between vendors that
    match a tier equally well.
    """

    version: int = Field(..., ge=1)
    vendors: List[VendorProfile] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "VendorProfileSet":
        seen = set()
        for profile in self.vendors:
            if profile.id in seen:
                raise ValueError(f"Duplicate vendor profile id: {profile.id}")
            seen.add(profile.id)
        return self

    def get(self, vendor_id: str) -> Optional[VendorProfile]:
        for profile in self.vendors:
            if profile.id == vendor_id:
                return profile
        return None


class DetectionResult(BaseModel):
    """Outcome of classifying one message.

    Serialized with camelCase keys (``vendorName``) for external consumers.
    """

    vendor: str = UNKNOWN_VENDOR
    vendor_name: Optional[str] = None
    confidence: int = Field(default=0, ge=0, le=100)
    method: Optional[DetectionMethod] = None
    signals: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def is_unknown(self) -> bool:
        return self.vendor == UNKNOWN_VENDOR
