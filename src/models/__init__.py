from src.models.event import (
    TrackingEvent,
    GeoContext,
    RequestMeta,
    EnrichedTrackingEvent,
)
from src.models.dataset import (
    DatasetCategory,
    DatasetRecord,
    DatasetSchema,
    DataPointBase,
    RevenueDataPoint,
    ContentDataPoint,
    UserBehaviorDataPoint,
    REVENUE_SCHEMA,
    CONTENT_SCHEMA,
    USER_BEHAVIOR_SCHEMA,
    DATASET_SCHEMAS,
)
from src.models.stats import *
