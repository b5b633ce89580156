"""
Vendor Catalog Lookup Client

HTTP client for a vendor's authoritative catalog search endpoint (e.g. the
Safilo CatalogAPI filter). Uses httpx for async requests with tenacity
retries on connection errors.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from vendor_ingestion.config import enrichment_settings
from vendor_ingestion.errors import DataIngestionError

logger = structlog.get_logger(__name__)


# Empty filter set; only "search" narrows the result
SEARCH_FILTERS: Dict[str, Any] = {
    "Collections": [],
    "ColorFamily": [],
    "Shapes": [],
    "FrameTypes": [],
    "Genders": [],
    "FrameMaterials": [],
    "FrontMaterials": [],
    "HingeTypes": [],
    "RimTypes": [],
    "TempleMaterials": [],
    "LensMaterials": [],
    "FITTING": [],
    "COUNTRYOFORIGIN": [],
    "NewStyles": False,
    "BestSellers": False,
    "RxAvailable": False,
    "InStock": False,
    "Readers": False,
    "ASizes": {"min": -1, "max": -1},
    "BSizes": {"min": -1, "max": -1},
    "EDSizes": {"min": -1, "max": -1},
    "DBLSizes": {"min": -1, "max": -1},
}


class CatalogLookupError(DataIngestionError):
    """The vendor catalog could not be queried."""

    kind = "catalog_lookup_failed"


class CatalogVariant(BaseModel):
    """One color/size variant of a catalog style."""

    color_code: str = ""
    color_name: str = ""
    eye_size: Optional[int] = None
    bridge: Optional[int] = None
    temple: Optional[int] = None
    size: Optional[str] = None
    upc: Optional[str] = None
    ean: Optional[str] = None
    sku: Optional[str] = None
    wholesale: Optional[Decimal] = None
    msrp: Optional[Decimal] = None
    in_stock: bool = False
    availability: Optional[str] = None
    material: Optional[str] = None
    gender: Optional[str] = None


class CatalogProduct(BaseModel):
    """A catalog style with all its variants."""

    query: str
    brand: str = ""
    model: str = ""
    description: Optional[str] = None
    variants: List[CatalogVariant] = Field(default_factory=list)


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _money_or_none(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount.quantize(Decimal("0.01")) if amount > 0 else None


def parse_catalog_response(data: Any, query: str) -> Optional[CatalogProduct]:
    """Turn a catalog search response into a CatalogProduct.

    Returns None when the response holds no style or the style has no
    color variants.
    """
    if not isinstance(data, list) or not data:
        return None
    product = data[0]
    color_groups = product.get("colorGroup") or []

    variants: List[CatalogVariant] = []
    for group in color_groups:
        for size in group.get("sizes") or []:
            variants.append(
                CatalogVariant(
                    color_code=str(group.get("color") or ""),
                    color_name=group.get("colorName") or "",
                    eye_size=_int_or_none(size.get("eyeSize") or size.get("a")),
                    bridge=_int_or_none(size.get("bridge") or size.get("dbl")),
                    temple=_int_or_none(size.get("temple")),
                    size=size.get("size"),
                    upc=size.get("upc"),
                    ean=size.get("ean") or size.get("frameId"),
                    sku=size.get("sku"),
                    wholesale=_money_or_none(size.get("wholesale") or size.get("price")),
                    msrp=_money_or_none(size.get("msrp")),
                    in_stock=bool(size.get("isInStock", False)),
                    availability=size.get("availableStatus") or size.get("availability"),
                    material=size.get("material"),
                    gender=size.get("gender"),
                )
            )
    if not variants:
        return None

    return CatalogProduct(
        query=query,
        brand=product.get("collectionName") or "",
        model=product.get("styleCode") or "",
        description=product.get("description"),
        variants=variants,
    )


class CatalogLookupClient:
    """
    Async HTTP client for a vendor catalog search endpoint.

    Responses are memoized per (case-insensitive) query for the lifetime
    of the client.

    Usage:
        async with CatalogLookupClient(api_url) as client:
            product = await client.search("KS CHERETTE2")
    """

    def __init__(
        self,
        api_url: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait=None,
    ):
        """
        Initialize catalog client.

        Args:
            api_url: Catalog search endpoint
            timeout: Read timeout in seconds (defaults to config)
            max_retries: Attempts per query on connection errors (defaults to config)
            transport: Optional httpx transport (e.g. MockTransport in tests)
            retry_wait: tenacity wait strategy between attempts
        """
        self.api_url = api_url
        self.timeout = httpx.Timeout(
            connect=5.0,
            read=timeout or enrichment_settings.timeout,
            write=5.0,
            pool=5.0,
        )
        self.max_retries = max_retries or enrichment_settings.max_retries
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._cache: Dict[str, Optional[CatalogProduct]] = {}
        self._log = logger.bind(service="catalog-lookup", api_url=api_url)

    async def __aenter__(self) -> "CatalogLookupClient":
        """Context manager entry - create async client."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Content-Type": "application/json",
                "User-Agent": "vendor-ingestion/0.1",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close async client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not initialized."""
        if self._client is None:
            raise CatalogLookupError(
                "CatalogLookupClient not initialized. "
                "Use 'async with CatalogLookupClient(url) as client:'"
            )
        return self._client

    async def search(self, query: str) -> Optional[CatalogProduct]:
        """
        Search the catalog for a style.

        Returns:
            CatalogProduct, or None if nothing matched

        Raises:
            CatalogLookupError: If the service is unreachable after retries
                or answers with an error status
        """
        cache_key = query.strip().lower()
        if cache_key in self._cache:
            self._log.debug("catalog_search_cache_hit", query=query)
            return self._cache[cache_key]

        body = dict(SEARCH_FILTERS, search=query)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=self.retry_wait,
                retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.post(self.api_url, json=body)
        except httpx.ConnectError as e:
            self._log.error("catalog_search_connection_error", query=query, error=str(e))
            raise CatalogLookupError(
                f"Failed to connect to catalog service: {e}", {"query": query}
            ) from e
        except httpx.TimeoutException as e:
            self._log.error("catalog_search_timeout", query=query, error=str(e))
            raise CatalogLookupError(f"Catalog service timeout: {e}", {"query": query}) from e

        if response.status_code == 404:
            result = None
        elif response.status_code != 200:
            self._log.warning(
                "catalog_search_failed",
                query=query,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise CatalogLookupError(
                f"Unexpected response: HTTP {response.status_code}",
                {"query": query, "status_code": response.status_code},
            )
        else:
            result = parse_catalog_response(response.json(), query)

        self._cache[cache_key] = result
        self._log.debug(
            "catalog_search_completed",
            query=query,
            found=result is not None,
            variants=len(result.variants) if result else 0,
        )
        return result
