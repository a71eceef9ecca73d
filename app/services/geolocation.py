"""IP geolocation with fallback across free lookup services."""
import logging
from dataclasses import dataclass, asdict

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

_cache: dict[str, "GeolocationData"] = {}
_CACHE_MAX = 1024


@dataclass
class GeolocationData:
    country: str
    country_code: str
    city: str = ""
    region: str = ""
    timezone: str = ""
    ip: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _from_ipapi_co(client: httpx.Client, ip: str) -> GeolocationData | None:
    r = client.get(f"https://ipapi.co/{ip}/json/" if ip else "https://ipapi.co/json/")
    r.raise_for_status()
    data = r.json()
    if data.get("error"):
        raise ValueError(data.get("reason") or "ipapi.co error")
    return GeolocationData(
        country=data.get("country_name") or "",
        country_code=data.get("country_code") or "",
        city=data.get("city") or "",
        region=data.get("region") or "",
        timezone=data.get("timezone") or "",
        ip=data.get("ip") or "",
    )


def _from_ipwho_is(client: httpx.Client, ip: str) -> GeolocationData | None:
    r = client.get(f"https://ipwho.is/{ip}")
    r.raise_for_status()
    data = r.json()
    if not data.get("success"):
        raise ValueError(data.get("message") or "ipwho.is error")
    return GeolocationData(
        country=data.get("country") or "",
        country_code=data.get("country_code") or "",
        city=data.get("city") or "",
        region=data.get("region") or "",
        timezone=(data.get("timezone") or {}).get("id") or "",
        ip=data.get("ip") or "",
    )


def _from_ip_api_com(client: httpx.Client, ip: str) -> GeolocationData | None:
    fields = "status,message,country,countryCode,city,regionName,timezone,query"
    r = client.get(f"http://ip-api.com/json/{ip}", params={"fields": fields})
    r.raise_for_status()
    data = r.json()
    if data.get("status") == "fail":
        raise ValueError(data.get("message") or "ip-api.com error")
    return GeolocationData(
        country=data.get("country") or "",
        country_code=data.get("countryCode") or "",
        city=data.get("city") or "",
        region=data.get("regionName") or "",
        timezone=data.get("timezone") or "",
        ip=data.get("query") or "",
    )


SERVICES = (
    ("ipapi.co", _from_ipapi_co),
    ("ipwho.is", _from_ipwho_is),
    ("ip-api.com", _from_ip_api_com),
)


def get_geolocation(ip: str | None) -> GeolocationData | None:
    """Try each service in order; the first answer with both country and country code wins."""
    ip = (ip or "").strip()
    timeout = get_settings().geolocation_timeout_seconds
    with httpx.Client(timeout=timeout) as client:
        for name, fetch in SERVICES:
            try:
                data = fetch(client, ip)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("[Geolocation] %s failed for ip=%s: %s", name, ip or "(self)", e)
                continue
            if data and data.country and data.country_code:
                logger.info("[Geolocation] %s resolved ip=%s -> %s", name, ip or "(self)", data.country_code)
                return data
    logger.warning("[Geolocation] All services failed for ip=%s", ip or "(self)")
    return None


def get_cached_geolocation(ip: str | None) -> GeolocationData | None:
    """Cached per IP. Failures are not cached so a later request can retry."""
    key = (ip or "").strip()
    if key in _cache:
        return _cache[key]
    data = get_geolocation(key)
    if data:
        if len(_cache) >= _CACHE_MAX:
            _cache.clear()
        _cache[key] = data
    return data
