"""Vendor classification service.

Identifies which known vendor sent an order document using:
- Sender domain matching (including forwarded messages)
- Body signature phrases
- Weak subject/body keyword patterns

Key Components:
    - VendorClassifier: Tiered classifier over a vendor profile table
    - ProfileRepository: TTL-cached loader for the profile YAML
"""
from vendor_ingestion.services.classification.classifier import (
    PERSONAL_EMAIL_DOMAINS,
    VendorClassifier,
    extract_domain,
    html_to_text,
    normalize_text,
)
from vendor_ingestion.services.classification.profiles import (
    ProfileRepository,
    load_vendor_profiles,
)

__all__ = [
    "PERSONAL_EMAIL_DOMAINS",
    "VendorClassifier",
    "extract_domain",
    "html_to_text",
    "normalize_text",
    "ProfileRepository",
    "load_vendor_profiles",
]
