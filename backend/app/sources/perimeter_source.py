"""Perimeter/area source: the upstream roof-analysis service that owns footprints.

Given an address and coordinates it returns a loose payload with the building
footprint (``perimeterWkt`` or ``aiAnalysis.roofPerimeter``), a rough roof
classification and, sometimes, a measured area.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    """The perimeter source failed or reported failure."""


class PerimeterSource(Protocol):
    async def fetch(self, address: str | None, lat: float, lng: float) -> dict[str, Any]:
        """Return the upstream ``data`` payload; raise UpstreamError on failure."""
        ...


class HttpPerimeterSource:
    def __init__(
        self,
        url: str,
        timeout_s: float = 60.0,
        api_key: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self.api_key = api_key
        self.transport = transport

    async def fetch(self, address: str | None, lat: float, lng: float) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"address": address, "coordinates": {"lat": lat, "lng": lng}}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Perimeter source unreachable: {e}") from e

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code >= 400:
            raise UpstreamError(body.get("error") or f"Perimeter source returned HTTP {resp.status_code}")
        if not body.get("success"):
            raise UpstreamError(body.get("error") or "Roof analysis failed")

        data = body.get("data")
        if not isinstance(data, dict):
            raise UpstreamError("Perimeter source returned no footprint data")
        return data


def satellite_image_url(lat: float, lng: float, zoom: int, size: int, token: str) -> str:
    """Mapbox static satellite tile centered on (lat, lng)."""
    return (
        f"https://api.mapbox.com/styles/v1/mapbox/satellite-v9/static/"
        f"{lng},{lat},{zoom},0/{size}x{size}@2x?access_token={token}"
    )
