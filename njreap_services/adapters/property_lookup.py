"""
NJ property records lookup.

Searches the property records API by address and returns county/tax records
used for pricing and the confirmation email.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..exceptions import ConfigurationError, PropertyLookupError, ValidationFailedError

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
MAX_RESULTS = 5

IMAGE_ENDPOINTS = {
    "preview": "preview-image",
    "tax-map": "tax-map-snippet",
    "street-map": "street-map-snippet",
}


@dataclass
class PropertyLookupConfig:
    """Configuration settings for the property records API"""

    api_key: Optional[str]
    base_url: str = "https://njpropertyrecords.com"
    api_version: str = "2"
    timeout: float = 10.0

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key or "",
            "X-API-Version": self.api_version,
        }

    @classmethod
    def from_env(cls) -> 'PropertyLookupConfig':
        return cls(
            api_key=os.getenv('NJPR_API_KEY'),
            base_url=os.getenv('NJPR_BASE_URL', 'https://njpropertyrecords.com').rstrip('/'),
        )

    def validate(self) -> bool:
        if not self.api_key:
            raise ConfigurationError("NJPR_API_KEY is not configured")
        return True


class PropertyLookupClient:
    def __init__(self, config: Optional[PropertyLookupConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or PropertyLookupConfig.from_env()
        self._transport = transport
        self.enabled = bool(self.config.api_key)
        if not self.enabled:
            logger.warning("Property lookup disabled: missing NJPR_API_KEY")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self.config.headers,
            timeout=self.config.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    async def search(self, address: str, limit: int = MAX_RESULTS,
                     filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Search properties by address. Raises PropertyLookupError on upstream failure."""
        self.config.validate()
        payload = {"filters": dict(filters or {}), "limit": limit}
        if address:
            payload["filters"]["address"] = address
        try:
            async with self._client() as client:
                response = await client.post("/api/search/properties", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Property search request failed: {e}")
            raise PropertyLookupError("Property search failed", status_code=502, response=str(e))

        data = self._body(response)
        if response.status_code >= 400:
            logger.error(f"Property search failed with status {response.status_code}")
            raise PropertyLookupError("Property search failed", status_code=response.status_code, response=data)
        if not isinstance(data, dict):
            return []
        return data.get("result") or []

    async def get_property(self, property_id: str) -> Dict[str, Any]:
        self.config.validate()
        try:
            async with self._client() as client:
                response = await client.get(f"/api/property/{property_id}")
        except httpx.HTTPError as e:
            logger.error(f"Property fetch failed for {property_id}: {e}")
            raise PropertyLookupError("Property lookup failed", status_code=502, response=str(e))
        data = self._body(response)
        if response.status_code >= 400:
            raise PropertyLookupError("Property lookup failed", status_code=response.status_code, response=data)
        if isinstance(data, dict) and "result" in data:
            return data["result"] or {}
        return data if isinstance(data, dict) else {}

    async def get_image(self, property_id: str, image_type: str,
                        params: Optional[Dict[str, Any]] = None) -> Tuple[bytes, str]:
        """Fetch a preview, tax-map or street-map image. Returns (content, content_type)."""
        endpoint = IMAGE_ENDPOINTS.get(image_type)
        if endpoint is None:
            raise ValidationFailedError("Invalid image type. Use: preview, tax-map, or street-map")
        self.config.validate()
        try:
            async with self._client() as client:
                response = await client.get(f"/api/property/{property_id}/{endpoint}",
                                            params=params, headers={"accept": "*/*"})
        except httpx.HTTPError as e:
            logger.error(f"Image fetch failed for {property_id}/{image_type}: {e}")
            raise PropertyLookupError("Image fetch failed", status_code=502, response=str(e))
        if response.status_code >= 400:
            logger.warning(f"Image fetch for {property_id}/{image_type} returned {response.status_code}")
            raise PropertyLookupError("Image fetch failed", status_code=response.status_code)
        return response.content, response.headers.get("content-type") or "image/png"


@dataclass
class AddressSearchResult:
    candidates: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AddressResolver:
    """Turns a typed address fragment into at most five candidate properties."""

    def __init__(self, client: Optional[PropertyLookupClient] = None):
        self.client = client or PropertyLookupClient()

    async def resolve(self, fragment: Optional[str]) -> AddressSearchResult:
        query = (fragment or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return AddressSearchResult()
        try:
            records = await self.client.search(query, limit=MAX_RESULTS)
        except (PropertyLookupError, ConfigurationError) as e:
            logger.warning(f"Address lookup failed for {query!r}: {e.message}")
            return AddressSearchResult(error=e.message)
        return AddressSearchResult(candidates=list(records)[:MAX_RESULTS])
