from src.ingestion.validation import validate_tracking_event
from src.ingestion.enrichment import enrich_tracking_event
from src.ingestion.classification import classify_event
from src.ingestion.shapers import (
    shape_event,
    shape_revenue_event,
    shape_content_event,
    shape_user_behavior_event,
)
from src.ingestion.writers import (
    DatasetWriter,
    SQLDatasetWriter,
    KafkaDatasetWriter,
    get_dataset_writer,
)
from src.ingestion.dispatcher import EventDispatcher
