"""Loading and caching of the versioned vendor profile table."""
from pathlib import Path
from typing import Optional, Union
import time

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from vendor_ingestion.config import settings
from vendor_ingestion.errors import ValidationError
from vendor_ingestion.models.vendor_profile import VendorProfileSet

logger = structlog.get_logger(__name__)


def load_vendor_profiles(path: Union[str, Path, None] = None) -> VendorProfileSet:
    """Read and validate a vendor profile YAML file.

    Args:
        path: Profile file (defaults to ``settings.vendor_profiles_path``)

    Returns:
        Validated VendorProfileSet in declaration order

    Raises:
        ValidationError: If the file is missing, not YAML, or fails validation
    """
    profile_path = Path(path or settings.vendor_profiles_path)

    try:
        raw = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ValidationError(
            f"Vendor profile file not found: {profile_path}",
            {"path": str(profile_path)},
        ) from e
    except yaml.YAMLError as e:
        raise ValidationError(
            f"Vendor profile file is not valid YAML: {e}",
            {"path": str(profile_path)},
        ) from e

    try:
        profiles = VendorProfileSet.model_validate(raw or {})
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid vendor profile table: {e.error_count()} error(s)",
            {"path": str(profile_path), "errors": e.errors(include_url=False)},
        ) from e

    logger.info(
        "vendor_profiles_loaded",
        path=str(profile_path),
        version=profiles.version,
        vendors=[p.id for p in profiles.vendors],
    )
    return profiles


class ProfileRepository:
    """Serves the profile table, re-reading the file after a TTL expires.

    Usage:
        repo = ProfileRepository()
        profiles = repo.get()
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.path = Path(path or settings.vendor_profiles_path)
        self.ttl_seconds = settings.profile_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._profiles: Optional[VendorProfileSet] = None
        self._loaded_at: float = 0.0

    def get(self) -> VendorProfileSet:
        """Return the cached table, reloading when stale."""
        if self._profiles is None or self._is_expired():
            return self.reload()
        return self._profiles

    def reload(self) -> VendorProfileSet:
        self._profiles = load_vendor_profiles(self.path)
        self._loaded_at = time.monotonic()
        return self._profiles

    def _is_expired(self) -> bool:
        return time.monotonic() - self._loaded_at >= self.ttl_seconds
