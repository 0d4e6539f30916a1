# casamatch/adapters/clients/nominatim.py
from __future__ import annotations

import logging
from typing import Protocol

from ...config import Settings
from ...domain.parsing import to_float
from .http_resilience import ResilientHttpClient

log = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def geocode(self, address: str, city: str | None = None) -> tuple[float, float] | None:
        """(lat, lng) or None when nothing was found. May raise on transport errors."""
        ...


def geocode_query(address: str, city: str | None, country: str | None) -> str:
    parts = [address.strip()]
    for extra in (city, country):
        if extra and extra.strip().lower() not in parts[0].lower():
            parts.append(extra.strip())
    return ", ".join(parts)


class NominatimGeocoder:
    """
    OpenStreetMap Nominatim. Usage policy: one request per second and an
    identifying User-Agent, both enforced here.
    """

    def __init__(
        self,
        *,
        base_url: str,
        user_agent: str,
        country: str | None = None,
        min_interval_s: float = 1.1,
        http: ResilientHttpClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.country = country
        rps = 1.0 / min_interval_s if min_interval_s > 0 else 0.0
        self.http = http or ResilientHttpClient(name="nominatim", rate_limit_rps=rps)

    @classmethod
    def from_settings(cls, s: Settings) -> "NominatimGeocoder":
        return cls(
            base_url=s.GEOCODER_BASE_URL,
            user_agent=s.GEOCODER_USER_AGENT,
            country=s.GEOCODER_COUNTRY,
            min_interval_s=s.GEOCODER_MIN_INTERVAL_S,
        )

    async def geocode(self, address: str, city: str | None = None) -> tuple[float, float] | None:
        q = geocode_query(address, city, self.country)
        resp = await self.http.get(
            f"{self.base_url}/search",
            params={"q": q, "format": "jsonv2", "limit": 1},
            headers={"User-Agent": self.user_agent, "Accept-Language": "it"},
        )
        results = resp.json()
        if not isinstance(results, list) or not results:
            log.debug("nominatim: no result for %r", q)
            return None

        lat = to_float(results[0].get("lat"))
        lng = to_float(results[0].get("lon"))
        if lat is None or lng is None:
            return None
        return lat, lng
