import logging
import math
import time
from typing import Any, Optional

from src.models import EnrichedTrackingEvent, GeoContext, RequestMeta, TrackingEvent

logger = logging.getLogger("AnalyticsAPI.Enrichment")

DEFAULT_STUDIO_ID = "unknown"


def parse_coordinate(value: Any) -> float:
    """Parses a coordinate string. Anything unparsable or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _or_default(value: Optional[str], default: str) -> str:
    return value if value else default


def enrich_tracking_event(
    event: TrackingEvent,
    geo: Optional[GeoContext],
    meta: Optional[RequestMeta],
    now_ms: Optional[int] = None,
) -> EnrichedTrackingEvent:
    """
    Merges a tracking event with request geo and client metadata.
    Missing geo falls back to sentinel values, a missing timestamp to the
    ingestion time, and a missing studio to "unknown".
    """
    geo = geo or GeoContext()
    meta = meta or RequestMeta()

    studio_id = event.studio_id
    if not studio_id:
        logger.warning(f"No studio ID provided for event {event.event}, defaulting to '{DEFAULT_STUDIO_ID}'")
        studio_id = DEFAULT_STUDIO_ID

    timestamp = event.timestamp
    if not timestamp or timestamp <= 0:
        timestamp = now_ms if now_ms is not None else int(time.time() * 1000)

    return EnrichedTrackingEvent(
        **event.model_dump(exclude={"studio_id", "timestamp"}),
        studio_id=studio_id,
        timestamp=timestamp,
        country=_or_default(geo.country, "XX"),
        city=_or_default(geo.city, "Unknown"),
        region=_or_default(geo.region, "Unknown"),
        timezone=_or_default(geo.timezone, "UTC"),
        latitude=parse_coordinate(geo.latitude),
        longitude=parse_coordinate(geo.longitude),
        asn=geo.asn or 0,
        colo=_or_default(geo.colo, "Unknown"),
        ip=_or_default(meta.ip, "unknown"),
        user_agent=_or_default(meta.user_agent, "unknown"),
    )
