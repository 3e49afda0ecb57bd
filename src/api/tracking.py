import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from src.api.request_context import get_geo_context, get_request_meta
from src.config import settings
from src.ingestion import DatasetWriter, EventDispatcher, get_dataset_writer
from src.limiter import limiter
from src.models import (
    BatchTrackingResponse,
    EnrichedGeo,
    ErrorResponse,
    GeoContext,
    RequestMeta,
    TrackingResponse,
)

# Create an APIRouter
router = APIRouter(
    tags=["Tracking"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)

logger = logging.getLogger("AnalyticsAPI.Tracking")


def get_dispatcher(writer: DatasetWriter = Depends(get_dataset_writer)) -> EventDispatcher:
    return EventDispatcher(writer)


@router.post("/track", response_model=TrackingResponse)
@limiter.limit(settings.TRACK_ENDPOINT_RATELIMIT)
def track_event(
    request: Request,
    payload: Any = Body(...),
    geo: GeoContext = Depends(get_geo_context),
    meta: RequestMeta = Depends(get_request_meta),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """
    Track a single event.
    The event is validated, enriched with the visitor's location, routed to
    the revenue, content or user-behavior dataset and written synchronously.
    """
    enriched = dispatcher.track(payload, geo, meta)

    return TrackingResponse(
        tracked=enriched.event,
        timestamp=enriched.timestamp,
        enriched=EnrichedGeo(
            country=enriched.country,
            city=enriched.city,
            timezone=enriched.timezone,
        ),
    )


@router.post("/track/batch", response_model=BatchTrackingResponse)
@limiter.limit(settings.TRACK_ENDPOINT_RATELIMIT)
def track_batch(
    request: Request,
    body: Any = Body(...),
    geo: GeoContext = Depends(get_geo_context),
    meta: RequestMeta = Depends(get_request_meta),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """
    Track up to 100 events in one request.
    Each event succeeds or fails on its own; the response lists every outcome.
    """
    events = body.get("events") if isinstance(body, dict) else None
    result = dispatcher.track_batch(events, geo, meta)

    if result.failed:
        logger.warning(f"Batch tracking: {result.failed} of {result.total} events failed")

    return result
