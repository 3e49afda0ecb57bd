from fastapi import Request
from typing import Optional

from src.models import GeoContext, RequestMeta

# Visitor location headers added by the reverse proxy (Cloudflare)
GEO_HEADERS = {
    "country": "cf-ipcountry",
    "city": "cf-ipcity",
    "region": "cf-region",
    "timezone": "cf-timezone",
    "latitude": "cf-iplatitude",
    "longitude": "cf-iplongitude",
}


def _parse_asn(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _colo_from_ray(ray: Optional[str]) -> Optional[str]:
    # cf-ray looks like "8a1b2c3d4e5f6789-SJC"
    if not ray or "-" not in ray:
        return None
    return ray.rsplit("-", 1)[1] or None


def get_geo_context(request: Request) -> GeoContext:
    """FastAPI dependency reading proxy-resolved geolocation off the request."""
    headers = request.headers
    return GeoContext(
        **{field: headers.get(header) or None for field, header in GEO_HEADERS.items()},
        asn=_parse_asn(headers.get("cf-asn")),
        colo=_colo_from_ray(headers.get("cf-ray")),
    )


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip=request.headers.get("cf-connecting-ip"),
        user_agent=request.headers.get("user-agent"),
    )
