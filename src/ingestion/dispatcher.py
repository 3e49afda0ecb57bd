import logging
from typing import Any, List, Optional

from src.config import settings
from src.errors import AnalyticsError, ValidationError
from src.ingestion.classification import classify_event
from src.ingestion.enrichment import enrich_tracking_event
from src.ingestion.shapers import shape_event
from src.ingestion.validation import validate_tracking_event
from src.ingestion.writers import DatasetWriter
from src.models import (
    BatchItemResult,
    BatchTrackingResponse,
    EnrichedTrackingEvent,
    GeoContext,
    RequestMeta,
    TrackingEvent,
)

logger = logging.getLogger("AnalyticsAPI.Dispatcher")


class EventDispatcher:
    """
    Runs validate -> enrich -> classify -> shape -> write for tracked events.
    """

    def __init__(self, writer: DatasetWriter, max_batch_size: Optional[int] = None):
        self.writer = writer
        self.max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE

    def track(
        self,
        payload: Any,
        geo: Optional[GeoContext] = None,
        meta: Optional[RequestMeta] = None,
    ) -> EnrichedTrackingEvent:
        """
        Tracks a single event.
        Raises ValidationError before any write, IngestionError if the write fails.
        """
        error = validate_tracking_event(payload)
        if error:
            raise ValidationError(error)

        enriched = enrich_tracking_event(TrackingEvent.from_payload(payload), geo, meta)
        category = classify_event(enriched.event)
        record = shape_event(category, enriched)

        try:
            self.writer.write(category, record)
        except AnalyticsError as e:
            logger.error(
                f"Failed to track {enriched.event} for studio {enriched.studio_id} "
                f"at {enriched.timestamp}: {e}"
            )
            raise

        logger.info(
            f"Event tracked: {enriched.event} for user {enriched.user_id} "
            f"in studio {enriched.studio_id} ({category.value})"
        )
        return enriched

    def track_batch(
        self,
        events: Any,
        geo: Optional[GeoContext] = None,
        meta: Optional[RequestMeta] = None,
    ) -> BatchTrackingResponse:
        """
        Tracks a bounded list of events one by one.
        A failing item is recorded and never stops the rest of the batch.
        """
        if not isinstance(events, list) or len(events) == 0:
            raise ValidationError("Events must be a non-empty array")

        if len(events) > self.max_batch_size:
            raise ValidationError(f"Maximum {self.max_batch_size} events per batch")

        results: List[BatchItemResult] = []
        for index, payload in enumerate(events):
            try:
                enriched = self.track(payload, geo, meta)
                results.append(BatchItemResult(index=index, success=True, tracked=enriched.event))
            except AnalyticsError as e:
                results.append(BatchItemResult(index=index, success=False, error=e.message))
            except Exception as e:
                logger.exception(f"Unexpected error tracking batch item {index}: {e}")
                results.append(BatchItemResult(index=index, success=False, error="Unexpected error"))

        successful = sum(1 for result in results if result.success)
        logger.info(f"Batch processed: {successful}/{len(events)} events tracked")

        return BatchTrackingResponse(
            total=len(events),
            successful=successful,
            failed=len(events) - successful,
            results=results,
        )
