"""
Google Places reviews proxy.

Looks the business up through Text Search, then pulls its reviews from Place
Details. Upstream problems never fail the caller: the result is an empty
review list flagged as a fallback so the page can hide the widget.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..exceptions import ConfigurationError, UpstreamServiceError

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
MIN_RATING = 4
MAX_REVIEWS = 5

DEFAULT_QUERIES = [
    "NJREAP New Jersey Real Estate Appraisals Photography",
    "New Jersey Real Estate Appraisals and Photography",
    "NJREAP appraisal photography New Jersey",
]


def map_review(review: Dict[str, Any]) -> Dict[str, Any]:
    ts = int(review.get("time") or 0)
    review_date = datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat() if ts else None
    return {
        "id": str(ts),
        "name": review.get("author_name") or "Anonymous",
        "rating": review.get("rating"),
        "text": review.get("text") or "",
        "date": review_date,
        "verified": True,
        "isGoogle": True,
        "profilePhoto": review.get("profile_photo_url"),
        "relativeTime": review.get("relative_time_description") or review_date,
    }


def _rating(review: Dict[str, Any]) -> float:
    try:
        return float(review.get("rating") or 0)
    except (TypeError, ValueError):
        return 0.0


def select_reviews(reviews: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """4 and 5 star reviews, newest first, at most five."""
    qualifying = [r for r in reviews if isinstance(r, dict) and _rating(r) >= MIN_RATING]
    qualifying.sort(key=lambda r: r.get("time") or 0, reverse=True)
    return [map_review(r) for r in qualifying[:MAX_REVIEWS]]


class GoogleReviewsAdapter:
    def __init__(self, api_key: Optional[str] = None, queries: Optional[List[str]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 10.0):
        self.api_key = api_key or os.getenv('GOOGLE_PLACES_API_KEY')
        self.queries = list(queries or DEFAULT_QUERIES)
        self._transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=PLACES_BASE_URL, timeout=self.timeout, transport=self._transport)

    async def _find_place(self, client: httpx.AsyncClient) -> Tuple[Optional[str], Optional[str]]:
        for query in self.queries:
            response = await client.get("/textsearch/json", params={"query": query, "key": self.api_key})
            if response.status_code >= 400:
                logger.warning(f"Places search failed for {query!r}: {response.status_code}")
                continue
            data = response.json()
            if not isinstance(data, dict):
                logger.warning(f"Places search returned an unexpected payload for {query!r}")
                continue
            results = data.get("results")
            results = [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []
            if data.get("status") == "OK" and results:
                logger.info(f"Places search matched with query {query!r}")
                return results[0].get("place_id"), query
        return None, None

    async def fetch_reviews(self) -> Dict[str, Any]:
        """Raises on any upstream failure; see get_reviews for the safe variant."""
        if not self.api_key:
            raise ConfigurationError("GOOGLE_PLACES_API_KEY is not configured")
        async with self._client() as client:
            place_id, query = await self._find_place(client)
            if not place_id:
                raise UpstreamServiceError("Business not found in Google Places")
            response = await client.get("/details/json", params={
                "place_id": place_id,
                "fields": "name,reviews,rating,user_ratings_total",
                "key": self.api_key,
            })
            if response.status_code >= 400:
                raise UpstreamServiceError("Place details request failed", status_code=response.status_code,
                                           response=response.text)
            data = response.json()
        if not isinstance(data, dict):
            raise UpstreamServiceError("Place details returned an unexpected payload")
        if data.get("status") != "OK":
            raise UpstreamServiceError(f"Place details error: {data.get('status')}",
                                       response=data.get("error_message"))
        result = data.get("result")
        if not isinstance(result, dict):
            result = {}
        return {
            "reviews": select_reviews(result.get("reviews") if isinstance(result.get("reviews"), list) else []),
            "businessInfo": {
                "name": result.get("name") or "NJREAP",
                "rating": result.get("rating") or 0,
                "totalReviews": result.get("user_ratings_total") or 0,
            },
            "searchQuery": query,
            "fallback": False,
        }

    async def get_reviews(self) -> Dict[str, Any]:
        try:
            return await self.fetch_reviews()
        except (UpstreamServiceError, ConfigurationError) as e:
            logger.error(f"Google Reviews fetch error: {e.message}")
            reason = e.message
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.error(f"Google Reviews fetch error: {e}")
            reason = "Google Places request failed"
        return {"reviews": [], "fallback": True, "reason": reason}
