"""User location lookup via a free geolocation API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from speedprobe.config import LOCATION_API_URL, LOCATION_TIMEOUT, USER_AGENT
from speedprobe.models import LocationHint

logger = logging.getLogger(__name__)


async def resolve_location(
    client: Optional[httpx.AsyncClient] = None,
    url: str = LOCATION_API_URL,
    timeout: float = LOCATION_TIMEOUT,
) -> Optional[LocationHint]:
    """Determine the user's (country, city) from a geolocation API.

    Any failure (transport error, error status, unparseable body, or a
    body carrying neither field) returns None; callers then select a
    server without a locality hint.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
                data = await _query_api(own_client, url, timeout)
        else:
            data = await _query_api(client, url, timeout)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Location detection failed: %s", exc)
        return None

    hint = parse_location(data)
    if hint is None:
        logger.warning("Location detection failed: no country or city in response")
    return hint


async def _query_api(client: httpx.AsyncClient, url: str, timeout: float) -> Any:
    """GET *url* and decode the JSON body."""
    resp = await client.get(
        url,
        headers={"User-Agent": USER_AGENT},
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
    )
    resp.raise_for_status()
    return resp.json()


def parse_location(data: Any) -> Optional[LocationHint]:
    """Extract string ``country``/``city`` fields from a decoded response.

    Non-string values are treated as absent. Returns None when the body is
    not an object or neither field survives.
    """
    if not isinstance(data, dict):
        return None

    country = data.get("country")
    city = data.get("city")
    hint = LocationHint(
        country=country if isinstance(country, str) else None,
        city=city if isinstance(city, str) else None,
    )
    if hint.is_empty:
        return None
    return hint
