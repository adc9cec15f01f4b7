"""Best-effort client location lookup.

Resolvers are pluggable through ``REALTIME_GEO_RESOLVER``. Any failure means
"Unknown"; location never affects connection handling.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.utils.module_loading import import_string

from .registry import UNKNOWN_LOCATION

logger = logging.getLogger(__name__)


class UnknownLocationResolver:
    async def resolve(self, ip_address: str) -> dict[str, str]:
        _ = ip_address
        return dict(UNKNOWN_LOCATION)


def get_geo_resolver(path: str | None = None):
    path = path or getattr(
        settings,
        "REALTIME_GEO_RESOLVER",
        "portfolio.realtime.geo.UnknownLocationResolver",
    )
    return import_string(path)()


async def resolve_location(resolver, ip_address: str) -> dict[str, str]:
    if resolver is None or not ip_address:
        return dict(UNKNOWN_LOCATION)
    try:
        location = await resolver.resolve(ip_address)
    except Exception:  # noqa: BLE001 - geography fails open
        logger.debug("Location lookup failed for %s", ip_address, exc_info=True)
        return dict(UNKNOWN_LOCATION)
    if not isinstance(location, dict):
        return dict(UNKNOWN_LOCATION)
    return {
        "country": str(location.get("country") or UNKNOWN_LOCATION["country"]),
        "city": str(location.get("city") or UNKNOWN_LOCATION["city"]),
    }
