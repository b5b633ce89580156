"""Vendor identification from raw message metadata and content.

Strategy (strict tier order, tier 1 short-circuits):
1. Sender domain contains a known vendor domain → domain weight
   (falls back to vendor addresses quoted in a forwarded body)
2. Normalized body contains vendor signature phrases → signature weight
3. Subject/body keyword hits reach the vendor's required_matches → weak weight
4. Nothing matched → vendor "unknown", confidence 0

Example:
    classifier = VendorClassifier(load_vendor_profiles())
    result = classifier.classify("Safilo <noreply@safilo.com>", "Order", "...")
    # result.vendor = "safilo"
    # result.confidence = 95
    # result.method = "domain"
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from bs4 import BeautifulSoup

from vendor_ingestion.models.message import RawMessage
from vendor_ingestion.models.vendor_profile import (
    DetectionMethod,
    DetectionResult,
    VendorProfile,
    VendorProfileSet,
)

logger = structlog.get_logger(__name__)


# Mailbox providers that never identify a vendor on their own
PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com",
    "yahoo.com",
    "outlook.com",
    "hotmail.com",
    "icloud.com",
    "aol.com",
    "live.com",
    "me.com",
    "msn.com",
    "protonmail.com",
})

_SENDER_DOMAIN_RE = re.compile(r"@([^>\s]+)")
_EMAIL_ADDRESS_RE = re.compile(r"[a-z0-9._+-]+@([a-z0-9.-]+\.[a-z]{2,})", re.IGNORECASE)


def extract_domain(sender: Optional[str]) -> Optional[str]:
    """Return the lowercased domain of a sender address, or None if malformed."""
    if not sender:
        return None
    match = _SENDER_DOMAIN_RE.search(sender)
    if not match:
        return None
    domain = match.group(1).strip().lower()
    return domain or None


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace."""
    if not text:
        return ""
    return " ".join(text.lower().split())


def html_to_text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text(" ")


class VendorClassifier:
    """Tiered, confidence-scored vendor classifier.

    Pure over its inputs and the injected profile table: no I/O and no
    shared mutable state, so one instance may serve concurrent callers.
    """

    def __init__(
        self,
        profiles: VendorProfileSet,
        personal_domains: Optional[Iterable[str]] = None,
    ):
        """Initialize classifier with a profile table.

        Args:
            profiles: Vendor profile table (declaration order breaks ties)
            personal_domains: Mailbox domains ignored when scanning
                forwarded bodies (defaults to PERSONAL_EMAIL_DOMAINS)
        """
        self.profiles = profiles
        self.personal_domains = frozenset(
            d.lower() for d in (personal_domains or PERSONAL_EMAIL_DOMAINS)
        )
        self._log = logger.bind(component="VendorClassifier")

    def classify_message(self, message: RawMessage) -> DetectionResult:
        """Classify a RawMessage, reading text out of HTML-only bodies."""
        return self.classify(message.sender, message.subject, message.plain_text, html=message.html)

    def classify(
        self,
        sender: Optional[str],
        subject: Optional[str],
        body_text: Optional[str],
        html: Optional[str] = None,
    ) -> DetectionResult:
        """Identify the vendor of a message.

        Args:
            sender: From address; malformed or missing skips tier 1
            subject: Subject line
            body_text: Plain-text body
            html: HTML body, read only when there is no plain-text body

        Returns:
            DetectionResult with vendor id, confidence, method and signals
        """
        if not body_text and html:
            body_text = html_to_text(html)
        domain = extract_domain(sender)

        # Tier 1: domain (hard short-circuit)
        if domain:
            match = self._match_domain(domain)
            if match:
                profile, matched = match
                return self._result(
                    profile,
                    profile.domain_weight,
                    DetectionMethod.DOMAIN,
                    {"domain": domain, "matched_domain": matched},
                )

        forwarded = self._match_forwarded(body_text)
        if forwarded:
            profile, matched, address = forwarded
            return self._result(
                profile,
                profile.domain_weight,
                DetectionMethod.DOMAIN,
                {
                    "domain": domain,
                    "matched_domain": matched,
                    "forwarded_from": address,
                },
            )

        normalized_body = normalize_text(body_text)

        # Tier 2: body signatures
        signature_match = self._match_signatures(normalized_body)
        if signature_match:
            profile, signatures = signature_match
            return self._result(
                profile,
                profile.signature_weight,
                DetectionMethod.BODY_SIGNATURE,
                {"domain": domain, "body_signatures": signatures},
            )

        # Tier 3: weak keyword patterns
        weak_match = self._match_weak(normalize_text(subject), normalized_body)
        if weak_match:
            profile, subject_hits, body_hits = weak_match
            return self._result(
                profile,
                profile.weak_weight,
                DetectionMethod.WEAK_PATTERN,
                {
                    "domain": domain,
                    "subject_keywords": subject_hits,
                    "body_keywords": body_hits,
                    "match_count": len(subject_hits) + len(body_hits),
                },
            )

        self._log.info("vendor_not_detected", domain=domain, subject=(subject or "")[:80])
        return DetectionResult(signals={"domain": domain})

    def _result(
        self,
        profile: VendorProfile,
        confidence: int,
        method: DetectionMethod,
        signals: Dict,
    ) -> DetectionResult:
        self._log.info(
            "vendor_detected",
            vendor=profile.id,
            method=method.value,
            confidence=confidence,
        )
        return DetectionResult(
            vendor=profile.id,
            vendor_name=profile.name,
            confidence=confidence,
            method=method,
            signals=signals,
        )

    def _match_domain(self, domain: str) -> Optional[Tuple[VendorProfile, str]]:
        """First profile (declaration order) whose domain is contained in ``domain``."""
        for profile in self.profiles.vendors:
            for vendor_domain in profile.domains:
                if vendor_domain in domain:
                    return profile, vendor_domain
        return None

    def _match_forwarded(
        self, body_text: Optional[str]
    ) -> Optional[Tuple[VendorProfile, str, str]]:
        """Find a vendor address quoted in a forwarded message body."""
        if not body_text:
            return None
        seen = set()
        for match in _EMAIL_ADDRESS_RE.finditer(body_text):
            address = match.group(0).lower()
            if address in seen:
                continue
            seen.add(address)
            domain = match.group(1).lower()
            if any(personal in domain for personal in self.personal_domains):
                continue
            found = self._match_domain(domain)
            if found:
                return found[0], found[1], address
        return None

    def _match_signatures(self, normalized_body: str) -> Optional[Tuple[VendorProfile, List[str]]]:
        if not normalized_body:
            return None
        best: Optional[Tuple[VendorProfile, List[str]]] = None
        for profile in self.profiles.vendors:
            matched = [
                signature
                for signature in profile.body_signatures
                if normalize_text(signature) and normalize_text(signature) in normalized_body
            ]
            # Strictly greater keeps the earlier-declared profile on ties
            if matched and (best is None or len(matched) > len(best[1])):
                best = (profile, matched)
        return best

    def _match_weak(
        self, normalized_subject: str, normalized_body: str
    ) -> Optional[Tuple[VendorProfile, List[str], List[str]]]:
        best: Optional[Tuple[VendorProfile, List[str], List[str]]] = None
        best_count = 0
        for profile in self.profiles.vendors:
            subject_hits = [
                kw for kw in profile.subject_keywords
                if normalize_text(kw) and normalize_text(kw) in normalized_subject
            ]
            body_hits = [
                kw for kw in profile.body_keywords
                if normalize_text(kw) and normalize_text(kw) in normalized_body
            ]
            count = len(subject_hits) + len(body_hits)
            if count >= profile.required_matches and count > best_count:
                best = (profile, subject_hits, body_hits)
                best_count = count
        return best
