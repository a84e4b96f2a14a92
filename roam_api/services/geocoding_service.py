"""Google Geocoding lookup for business addresses"""

import logging
from typing import Optional

import httpx

from ..config import GOOGLE_MAPS_API_KEY

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


async def geocode_address(address_parts: list[Optional[str]]) -> Optional[tuple[float, float]]:
    """Return (latitude, longitude) or None when the key is missing or nothing matches."""
    if not GOOGLE_MAPS_API_KEY:
        logger.debug("Geocoding skipped - GOOGLE_MAPS_API_KEY not configured")
        return None

    full_address = ", ".join(part for part in address_parts if part)
    if not full_address:
        return None

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                GEOCODE_URL, params={"address": full_address, "key": GOOGLE_MAPS_API_KEY}, timeout=10.0
            )
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"⚠️ Geocoding failed for '{full_address}': {e}")
        return None

    if data.get("status") != "OK" or not data.get("results"):
        logger.warning(f"⚠️ No geocoding result for '{full_address}': {data.get('status')}")
        return None

    location = data["results"][0]["geometry"]["location"]
    logger.info(f"🔍 Geocoded '{full_address}' -> {location['lat']}, {location['lng']}")
    return location["lat"], location["lng"]
