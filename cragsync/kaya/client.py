"""Kaya GraphQL client.

The public web app talks to a single GraphQL endpoint; we replay the same
operations it issues, spaced at least ``request_delay_seconds`` apart.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import TypeAdapter

from cragsync.config import KayaConfig, get_config
from cragsync.core.logging import get_logger
from cragsync.core.retry import RetryConfig, retry_with_backoff
from cragsync.kaya.schemas import WebAscent, WebClimb, WebLocation

logger = get_logger(__name__)

_LOCATION_FIELDS = """
    id
    slug
    name
    latitude
    longitude
    photo_url
    description
    location_type { id name }
    parent_location {
      id
      slug
      name
      latitude
      longitude
      description
      location_type { id name }
    }
    is_gb_moderated_bouldering
    is_gb_moderated_routes
    has_maps_disabled
    description_bouldering
    description_routes
    access_description_bouldering
    access_description_routes
    climb_count
    boulder_count
    route_count
    ascent_count
    is_access_sensitive
    is_closed
    closed_date
    climb_type_id
"""

_CLIMB_FIELDS = """
    slug
    name
    rating
    ascent_count
    grade { name id ordering climb_type_id }
    climb_type { name }
    color { name }
    gym { name }
    board { name }
    destination { name }
    area { name }
    is_gb_moderated
    is_access_sensitive
    is_closed
    is_offensive
"""

WEB_LOCATION_QUERY = f"""query webLocation($slug: String!) {{
  webLocation(slug: $slug) {{{_LOCATION_FIELDS}  }}
}}"""

WEB_SUB_LOCATIONS_QUERY = f"""query webLocationsForLocation($location_id: ID!, $offset: Int!, $count: Int!, $climb_type_id: ID) {{
  webLocationsForLocation(location_id: $location_id, offset: $offset, count: $count, climb_type_id: $climb_type_id) {{{_LOCATION_FIELDS}  }}
}}"""

WEB_CLIMBS_QUERY = f"""query webClimbsForLocation($location_id: ID!, $climb_name: String, $climb_type_id: ID, $offset: Int!, $count: Int!) {{
  webClimbsForLocation(location_id: $location_id, climb_name: $climb_name, climb_type_id: $climb_type_id, offset: $offset, count: $count, use_reduced_query: true) {{{_CLIMB_FIELDS}  }}
}}"""

WEB_ASCENTS_QUERY = f"""query webAscentsForLocation($location_id: ID!, $count: Int!, $offset: Int!) {{
  webAscentsForLocation(location_id: $location_id, offset: $offset, count: $count) {{
    id
    user {{
      id
      username
      fname
      lname
      photo_url
      is_private
      bio
      height
      ape_index
      limit_grade_bouldering {{ name id }}
      limit_grade_routes {{ name id }}
      is_premium
    }}
    climb {{{_CLIMB_FIELDS}    }}
    date
    comment
    rating
    stiffness
    grade {{ id name climb_type_id ordering }}
    photo {{ photo_url thumb_url }}
    video {{ video_url thumb_url }}
  }}
}}"""

_locations_adapter = TypeAdapter(list[WebLocation])
_climbs_adapter = TypeAdapter(list[WebClimb])
_ascents_adapter = TypeAdapter(list[WebAscent])


class KayaAPIError(Exception):
    """Kaya returned an error status or a GraphQL error payload."""


class KayaServerError(KayaAPIError):
    """Transient server-side failure (5xx or rate limited); retried."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def _retry_after(error: Exception) -> float | None:
    return error.retry_after if isinstance(error, KayaServerError) else None


def _parse_retry_after(value: str | None) -> float | None:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class BaseKayaClient(ABC):
    """Operations the sync needs from Kaya.

    Pagination contract: an empty page, or a page shorter than ``count``,
    means there is nothing further to fetch.
    """

    @abstractmethod
    async def get_location(self, slug: str) -> WebLocation | None:
        """Fetch a location by slug; None if Kaya does not know it."""

    @abstractmethod
    async def get_sub_locations(
        self,
        location_id: str,
        climb_type_id: str | None,
        offset: int,
        count: int,
    ) -> list[WebLocation]:
        """Direct children of a location."""

    @abstractmethod
    async def get_climbs(
        self,
        location_id: str,
        climb_type_id: str | None,
        offset: int,
        count: int,
    ) -> list[WebClimb]:
        """Climbs at a location, optionally filtered by climb type."""

    @abstractmethod
    async def get_ascents(self, location_id: str, offset: int, count: int) -> list[WebAscent]:
        """Most recent ascents logged at a location."""


class KayaClient(BaseKayaClient):
    """httpx-backed client for the Kaya GraphQL API."""

    def __init__(
        self,
        config: KayaConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or get_config().kaya
        self._client = http_client or httpx.AsyncClient(timeout=self.config.timeout_seconds)
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "*/*",
            "Origin": self.config.origin,
            "Referer": f"{self.config.origin}/",
        }
        self._retry = RetryConfig(
            max_attempts=self.config.max_retries,
            retryable_exceptions=(httpx.TransportError, KayaServerError),
            delay_hint=_retry_after,
        )
        self._rate_lock = asyncio.Lock()
        self._last_request_at = 0.0

    async def __aenter__(self) -> "KayaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def get_location(self, slug: str) -> WebLocation | None:
        data = await self._execute("webLocation", WEB_LOCATION_QUERY, {"slug": slug})
        raw = data.get("webLocation")
        return WebLocation.model_validate(raw) if raw else None

    async def get_sub_locations(
        self,
        location_id: str,
        climb_type_id: str | None,
        offset: int,
        count: int,
    ) -> list[WebLocation]:
        variables: dict[str, Any] = {"location_id": location_id, "offset": offset, "count": count}
        if climb_type_id is not None:
            variables["climb_type_id"] = climb_type_id
        data = await self._execute("webLocationsForLocation", WEB_SUB_LOCATIONS_QUERY, variables)
        return _locations_adapter.validate_python(data.get("webLocationsForLocation") or [])

    async def get_climbs(
        self,
        location_id: str,
        climb_type_id: str | None,
        offset: int,
        count: int,
    ) -> list[WebClimb]:
        variables: dict[str, Any] = {
            "location_id": location_id,
            "climb_name": "",
            "offset": offset,
            "count": count,
        }
        if climb_type_id is not None:
            variables["climb_type_id"] = climb_type_id
        data = await self._execute("webClimbsForLocation", WEB_CLIMBS_QUERY, variables)
        return _climbs_adapter.validate_python(data.get("webClimbsForLocation") or [])

    async def get_ascents(self, location_id: str, offset: int, count: int) -> list[WebAscent]:
        variables = {"location_id": location_id, "offset": offset, "count": count}
        data = await self._execute("webAscentsForLocation", WEB_ASCENTS_QUERY, variables)
        return _ascents_adapter.validate_python(data.get("webAscentsForLocation") or [])

    async def _rate_limit(self) -> None:
        async with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_at
            if elapsed < self.config.request_delay_seconds:
                await asyncio.sleep(self.config.request_delay_seconds - elapsed)
            self._last_request_at = time.monotonic()

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        await self._rate_limit()
        response = await self._client.post(self.config.graphql_url, json=payload, headers=self._headers)

        if response.status_code == 429 or response.status_code >= 500:
            raise KayaServerError(
                f"unexpected status code {response.status_code}: {response.text[:200]}",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if response.status_code != 200:
            raise KayaAPIError(f"unexpected status code {response.status_code}: {response.text[:200]}")

        body = response.json()
        errors = body.get("errors")
        if errors:
            messages = "; ".join(e.get("message", str(e)) for e in errors)
            raise KayaAPIError(f"GraphQL errors: {messages}")
        return body.get("data") or {}

    async def _execute(
        self,
        operation_name: str,
        query: str,
        variables: dict[str, Any],
    ) -> dict[str, Any]:
        payload = {"operationName": operation_name, "variables": variables, "query": query}
        try:
            return await retry_with_backoff(
                lambda: self._post(payload),
                config=self._retry,
                operation_name=f"kaya:{operation_name}",
            )
        except httpx.HTTPError as e:
            logger.bind(operation=operation_name, error=str(e)).error("kaya_request_failed")
            raise KayaAPIError(f"{operation_name} request failed: {e}") from e
