import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import Field, SQLModel


class DatasetCategory(str, Enum):
    """The three append-only datasets an event can be routed to."""
    revenue = "revenue"
    content = "content"
    user_behavior = "user-behavior"


class DatasetRecord(BaseModel):
    """
    A shaped write unit. The store reads fields by position, never by name,
    so the layout is fixed per dataset (see the *_SCHEMA descriptors below).
    """
    model_config = ConfigDict(frozen=True)

    blobs: List[str]
    doubles: List[float]
    indexes: List[str] = PydanticField(min_length=1)


class DataPointBase(SQLModel):
    """
    Positional columns shared by every dataset table.
    blobN holds the N-th string field, doubleN the N-th numeric field.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        nullable=False
    )

    blob1: str = ""
    blob2: str = ""
    blob3: str = ""
    blob4: str = ""
    blob5: str = ""
    blob6: str = ""
    blob7: str = ""
    blob8: str = ""

    double1: float = 0.0
    double2: float = 0.0
    double3: float = 0.0
    double4: float = 0.0
    double5: float = 0.0
    double6: float = 0.0
    double7: float = 0.0

    index1: str = Field(index=True)

    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class RevenueDataPoint(DataPointBase, table=True):
    __tablename__ = "revenue_tracking"


class ContentDataPoint(DataPointBase, table=True):
    __tablename__ = "studio_analytics"


class UserBehaviorDataPoint(DataPointBase, table=True):
    __tablename__ = "user_behavior"


@dataclass(frozen=True)
class DatasetSchema:
    """
    Named layout of one dataset: position i of `blobs` is stored in column
    blob{i+1}, and likewise for doubles and indexes.
    """
    category: DatasetCategory
    table: Type[DataPointBase]
    blobs: Tuple[str, ...]
    doubles: Tuple[str, ...]
    indexes: Tuple[str, ...]

    @property
    def table_name(self) -> str:
        return self.table.__tablename__

    def blob_column(self, name: str) -> str:
        return f"blob{self.blobs.index(name) + 1}"

    def double_column(self, name: str) -> str:
        return f"double{self.doubles.index(name) + 1}"

    def index_column(self, name: str) -> str:
        return f"index{self.indexes.index(name) + 1}"

    def matches(self, record: DatasetRecord) -> bool:
        return (
            len(record.blobs) == len(self.blobs)
            and len(record.doubles) == len(self.doubles)
            and len(record.indexes) == len(self.indexes)
        )

    def to_row(self, record: DatasetRecord) -> DataPointBase:
        """Map a record's positional fields onto a table row."""
        columns = {}
        for position, value in enumerate(record.blobs, start=1):
            columns[f"blob{position}"] = value
        for position, value in enumerate(record.doubles, start=1):
            columns[f"double{position}"] = value
        for position, value in enumerate(record.indexes, start=1):
            columns[f"index{position}"] = value
        return self.table(**columns)


REVENUE_SCHEMA = DatasetSchema(
    category=DatasetCategory.revenue,
    table=RevenueDataPoint,
    blobs=(
        "event",           # blob1
        "studio_id",       # blob2
        "user_id",         # blob3
        "country",         # blob4
        "city",            # blob5
        "payment_method",  # blob6
        "currency",        # blob7, defaults to USD
        "content_id",      # blob8
    ),
    doubles=(
        "amount",          # double1
        "coins",           # double2
        "tax",             # double3
        "fee",             # double4
        "timestamp",       # double5
        "latitude",        # double6
        "longitude",       # double7
    ),
    indexes=("studio_id",),
)

CONTENT_SCHEMA = DatasetSchema(
    category=DatasetCategory.content,
    table=ContentDataPoint,
    blobs=(
        "event",           # blob1
        "content_id",      # blob2: contentId, chapterId or flickId
        "user_id",         # blob3
        "country",         # blob4
        "city",            # blob5
        "content_type",    # blob6
        "series_id",       # blob7
        "quality",         # blob8
    ),
    doubles=(
        "progress",            # double1: pageNumber or watchTime
        "total",               # double2: totalPages or duration
        "time_spent",          # double3: readingTime or bufferingTime
        "engagement_metric",   # double4: scrollDepth or bitrate
        "completion_rate",     # double5
        "engagement_score",    # double6
        "timestamp",           # double7
    ),
    indexes=("studio_id",),
)

USER_BEHAVIOR_SCHEMA = DatasetSchema(
    category=DatasetCategory.user_behavior,
    table=UserBehaviorDataPoint,
    blobs=(
        "event",           # blob1
        "user_id",         # blob2
        "session_id",      # blob3
        "country",         # blob4
        "city",            # blob5
        "referrer",        # blob6
        "source",          # blob7
        "medium",          # blob8
    ),
    doubles=(
        "value",           # double1, defaults to 1
        "duration",        # double2
        "score",           # double3
        "timestamp",       # double4
    ),
    indexes=("studio_id",),  # defaults to "global"
)

DATASET_SCHEMAS = {
    DatasetCategory.revenue: REVENUE_SCHEMA,
    DatasetCategory.content: CONTENT_SCHEMA,
    DatasetCategory.user_behavior: USER_BEHAVIOR_SCHEMA,
}
