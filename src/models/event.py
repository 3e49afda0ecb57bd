from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, Mapping

# Payload keys that map onto declared TrackingEvent fields.
# Everything else is carried in `properties` unmodified.
KNOWN_EVENT_KEYS = (
    "event",
    "userId",
    "studioId",
    "sessionId",
    "timestamp",
    "device",
    "os",
    "osVersion",
    "appVersion",
)

# Last millisecond of 9999-12-31 UTC, the largest instant a datetime can hold
MAX_TIMESTAMP_MS = 253_402_300_799_999


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, (dict, list))


def _optional_str(value: Any) -> Optional[str]:
    if value is None or not _is_scalar(value):
        return None
    text = str(value)
    return text if text else None


def _positive_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value or value <= 0 or value > MAX_TIMESTAMP_MS:
        return None
    return int(value)


class TrackingEvent(BaseModel):
    """
    A raw tracking event as sent by a client to /track.
    The declared fields are the ones every event shares; subtype-specific
    fields (amount, watchTime, pageNumber, ...) live in `properties`.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event: str
    user_id: str
    studio_id: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[int] = None
    device: Optional[str] = None
    os: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None

    # Flexible field for any other data (e.g., "amount", "chapterId")
    properties: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TrackingEvent":
        """Build an event from an already validated JSON payload."""
        return cls(
            event=payload["event"],
            user_id=payload["userId"],
            studio_id=_optional_str(payload.get("studioId")),
            session_id=_optional_str(payload.get("sessionId")),
            timestamp=_positive_timestamp(payload.get("timestamp")),
            device=_optional_str(payload.get("device")),
            os=_optional_str(payload.get("os")),
            os_version=_optional_str(payload.get("osVersion")),
            app_version=_optional_str(payload.get("appVersion")),
            # Known keys holding objects or arrays are kept here as sent
            properties={
                key: value for key, value in payload.items()
                if key not in KNOWN_EVENT_KEYS or not _is_scalar(value)
            },
        )


class GeoContext(BaseModel):
    """
    Geolocation resolved by the reverse proxy in front of the service.
    Coordinates arrive as strings, exactly as the proxy sends them.
    """
    country: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    asn: Optional[int] = None
    colo: Optional[str] = None


class RequestMeta(BaseModel):
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class EnrichedTrackingEvent(TrackingEvent):
    """
    A tracking event merged with geo and request metadata.
    Immutable once built; handed to exactly one dataset shaper.
    """
    model_config = ConfigDict(frozen=True)

    studio_id: str
    timestamp: int
    country: str
    city: str
    region: str
    timezone: str
    latitude: float
    longitude: float
    asn: int
    colo: str
    ip: str
    user_agent: str
