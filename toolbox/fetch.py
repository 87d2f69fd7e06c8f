"""Outbound HTTP helpers shared by the tools.

Every helper issues exactly one GET and never raises for network, status or
decode problems. ``fetch_json`` reports which of those went wrong through a
``FetchResult``; ``make_nws_request`` and ``fetch_with_bearer_token`` collapse
any failure to ``None`` for call sites that only need one branch.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger("toolbox.fetch")

NWS_API_BASE = "https://api.weather.gov"
IP_LOCATION_URL = "https://ipapi.co/json/"
USER_AGENT = "weather-app/1.0"
REQUEST_TIMEOUT = 30.0


class FetchErrorKind(str, Enum):
    NETWORK = "network"
    STATUS = "status"
    DECODE = "decode"


@dataclass
class FetchResult:
    data: Any = None
    error: FetchErrorKind | None = None
    detail: str | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def fetch_json(url: str, headers: dict[str, str]) -> FetchResult:
    """GET ``url`` and decode the JSON body."""
    async with httpx.AsyncClient(follow_redirects=True) as client:
        try:
            response = await client.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"[HTTP Error] {url} returned status {status}")
            return FetchResult(
                error=FetchErrorKind.STATUS,
                detail=f"HTTP error! status: {status}",
                status_code=status,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.exception(f"[HTTP Error] request to {url} failed: {e}")
            return FetchResult(error=FetchErrorKind.NETWORK, detail=str(e) or type(e).__name__)

    try:
        data = response.json()
    except ValueError as e:
        logger.error(f"[HTTP Error] {url} returned a body that is not JSON: {e}")
        return FetchResult(
            error=FetchErrorKind.DECODE,
            detail=f"Invalid JSON response: {e}",
            status_code=response.status_code,
        )
    return FetchResult(data=data, status_code=response.status_code)


async def make_nws_request(url: str) -> Any | None:
    """Make a request to the NWS API with proper error handling."""
    headers = {"User-Agent": USER_AGENT, "Accept": "application/geo+json"}
    result = await fetch_json(url, headers)
    return result.data if result.ok else None


async def fetch_with_bearer_token(url: str, token: str) -> Any | None:
    """GET a JSON endpoint protected by a bearer token.

    An empty token is still sent; the server's rejection is handled like any
    other failure.
    """
    headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
    result = await fetch_json(url, headers)
    return result.data if result.ok else None


async def fetch_location() -> FetchResult:
    """Look up the caller's approximate position from its public IP address."""
    return await fetch_json(IP_LOCATION_URL, {"User-Agent": USER_AGENT})
