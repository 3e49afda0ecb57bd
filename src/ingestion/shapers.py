"""
Dataset shapers.

Each shaper turns an enriched event into a DatasetRecord laid out exactly as
its DatasetSchema describes. Missing source fields become "" or 0.0, so the
width of a record never depends on the event.
"""

import math
from typing import Any, Callable, Dict, List, Mapping

from src.models import (
    CONTENT_SCHEMA,
    REVENUE_SCHEMA,
    USER_BEHAVIOR_SCHEMA,
    DatasetCategory,
    DatasetRecord,
    DatasetSchema,
    EnrichedTrackingEvent,
)


def as_number(value: Any) -> float:
    """Coerces a payload value to a finite float, 0.0 otherwise."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def first_text(properties: Mapping[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        text = as_text(properties.get(key))
        if text:
            return text
    return default


def first_number(properties: Mapping[str, Any], *keys: str, default: float = 0.0) -> float:
    for key in keys:
        number = as_number(properties.get(key))
        if number:
            return number
    return default


def _build_record(schema: DatasetSchema, fields: Dict[str, Any]) -> DatasetRecord:
    """Orders named fields by the schema so a layout change is a one-place edit."""
    blobs: List[str] = [as_text(fields.get(name)) for name in schema.blobs]
    doubles: List[float] = [as_number(fields.get(name)) for name in schema.doubles]
    indexes: List[str] = [as_text(fields.get(name)) for name in schema.indexes]
    return DatasetRecord(blobs=blobs, doubles=doubles, indexes=indexes)


def shape_revenue_event(data: EnrichedTrackingEvent) -> DatasetRecord:
    props = data.properties
    return _build_record(REVENUE_SCHEMA, {
        "event": data.event,
        "studio_id": data.studio_id or "unknown",
        "user_id": data.user_id,
        "country": data.country,
        "city": data.city,
        "payment_method": first_text(props, "paymentMethod"),
        "currency": first_text(props, "currency", default="USD"),
        "content_id": first_text(props, "contentId"),
        "amount": first_number(props, "amount"),
        "coins": first_number(props, "coins"),
        "tax": first_number(props, "tax"),
        "fee": first_number(props, "fee"),
        "timestamp": data.timestamp,
        "latitude": data.latitude,
        "longitude": data.longitude,
    })


def shape_content_event(data: EnrichedTrackingEvent) -> DatasetRecord:
    props = data.properties
    return _build_record(CONTENT_SCHEMA, {
        "event": data.event,
        "content_id": first_text(props, "contentId", "chapterId", "flickId"),
        "user_id": data.user_id,
        "country": data.country,
        "city": data.city,
        "content_type": first_text(props, "contentType"),
        "series_id": first_text(props, "seriesId"),
        "quality": first_text(props, "quality"),
        "progress": first_number(props, "pageNumber", "watchTime"),
        "total": first_number(props, "totalPages", "duration"),
        "time_spent": first_number(props, "readingTime", "bufferingTime"),
        "engagement_metric": first_number(props, "scrollDepth", "bitrate"),
        "completion_rate": first_number(props, "completionRate"),
        "engagement_score": first_number(props, "engagement", "engagementScore"),
        "timestamp": data.timestamp,
        "studio_id": data.studio_id or "unknown",
    })


def shape_user_behavior_event(data: EnrichedTrackingEvent) -> DatasetRecord:
    props = data.properties
    return _build_record(USER_BEHAVIOR_SCHEMA, {
        "event": data.event,
        "user_id": data.user_id,
        "session_id": data.session_id,
        "country": data.country,
        "city": data.city,
        "referrer": first_text(props, "referrer"),
        "source": first_text(props, "source"),
        "medium": first_text(props, "medium"),
        "value": first_number(props, "value", default=1.0),
        "duration": first_number(props, "duration"),
        "score": first_number(props, "score"),
        "timestamp": data.timestamp,
        "studio_id": data.studio_id or "global",
    })


SHAPERS: Dict[DatasetCategory, Callable[[EnrichedTrackingEvent], DatasetRecord]] = {
    DatasetCategory.revenue: shape_revenue_event,
    DatasetCategory.content: shape_content_event,
    DatasetCategory.user_behavior: shape_user_behavior_event,
}


def shape_event(category: DatasetCategory, data: EnrichedTrackingEvent) -> DatasetRecord:
    return SHAPERS[category](data)
