"""
Read queries against the three datasets.

Column names come from the dataset schemas, caller input only ever travels
as bound parameters.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, text

from src.config import settings
from src.errors import DependencyError
from src.models import CONTENT_SCHEMA, REVENUE_SCHEMA

logger = logging.getLogger("AnalyticsAPI.Queries")

_c = CONTENT_SCHEMA
_r = REVENUE_SCHEMA

CONTENT_STATS_SQL = f"""
    SELECT
        {_c.blob_column("event")} AS event_type,
        {_c.blob_column("content_id")} AS content_id,
        {_c.blob_column("content_type")} AS content_type,
        COUNT(*) AS event_count,
        COUNT(DISTINCT {_c.blob_column("user_id")}) AS unique_users,
        AVG({_c.double_column("completion_rate")}) AS avg_completion,
        SUM({_c.double_column("time_spent")}) AS total_time
    FROM {_c.table_name}
    WHERE {_c.index_column("studio_id")} = :studio_id
      AND {_c.double_column("timestamp")} > :since
    GROUP BY
        {_c.blob_column("event")},
        {_c.blob_column("content_id")},
        {_c.blob_column("content_type")}
"""

REVENUE_DETAILS_SQL = f"""
    SELECT
        {_r.blob_column("event")} AS event_type,
        {_r.blob_column("country")} AS country,
        {_r.blob_column("payment_method")} AS payment_method,
        {_r.double_column("amount")} AS revenue,
        {_r.double_column("coins")} AS coins,
        {_r.double_column("timestamp")} AS timestamp
    FROM {_r.table_name}
    WHERE {_r.index_column("studio_id")} = :studio_id
      AND {_r.double_column("timestamp")} > :since
    ORDER BY {_r.double_column("timestamp")} DESC
"""

DEMOGRAPHICS_SQL = f"""
    SELECT
        {_c.blob_column("country")} AS country,
        {_c.blob_column("city")} AS city,
        COUNT(DISTINCT {_c.blob_column("user_id")}) AS unique_users,
        COUNT(*) AS total_events
    FROM {_c.table_name}
    WHERE {_c.index_column("studio_id")} = :studio_id
      AND {_c.double_column("timestamp")} > :since
    GROUP BY {_c.blob_column("country")}, {_c.blob_column("city")}
"""

REALTIME_SQL = f"""
    SELECT
        {_c.blob_column("event")} AS event_type,
        {_c.blob_column("content_id")} AS content_id,
        {_c.blob_column("user_id")} AS user_id,
        {_c.blob_column("country")} AS country,
        {_c.blob_column("city")} AS city,
        {_c.double_column("timestamp")} AS timestamp
    FROM {_c.table_name}
    WHERE {_c.index_column("studio_id")} = :studio_id
      AND {_c.double_column("timestamp")} > :since
    ORDER BY {_c.double_column("timestamp")} DESC
    LIMIT :limit
"""

CONTENT_PERFORMANCE_SQL = f"""
    SELECT
        {_c.blob_column("event")} AS event_type,
        {_c.blob_column("user_id")} AS user_id,
        {_c.double_column("time_spent")} AS duration,
        {_c.double_column("timestamp")} AS timestamp
    FROM {_c.table_name}
    WHERE {_c.index_column("studio_id")} = :studio_id
      AND {_c.blob_column("content_id")} = :content_id
      AND {_c.double_column("timestamp")} > :since
    ORDER BY {_c.double_column("timestamp")} DESC
"""


class DatasetQueryClient:
    """Runs parameterised queries and returns rows as plain dicts."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def run(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            with Session(self.engine) as session:
                result = session.exec(text(sql), params=params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error(f"Dataset query failed ({params}): {e}")
            raise DependencyError(f"Dataset query failed: {type(e).__name__}") from e

    def content_stats(self, studio_id: str, since: int) -> List[Dict[str, Any]]:
        return self.run(CONTENT_STATS_SQL, {"studio_id": studio_id, "since": since})

    def revenue_details(self, studio_id: str, since: int) -> List[Dict[str, Any]]:
        return self.run(REVENUE_DETAILS_SQL, {"studio_id": studio_id, "since": since})

    def demographics(self, studio_id: str, since: int) -> List[Dict[str, Any]]:
        return self.run(DEMOGRAPHICS_SQL, {"studio_id": studio_id, "since": since})

    def realtime_events(self, studio_id: str, since: int, limit: int = None) -> List[Dict[str, Any]]:
        return self.run(REALTIME_SQL, {
            "studio_id": studio_id,
            "since": since,
            "limit": limit or settings.REALTIME_ROW_LIMIT,
        })

    def content_performance(self, studio_id: str, content_id: str, since: int) -> List[Dict[str, Any]]:
        return self.run(CONTENT_PERFORMANCE_SQL, {
            "studio_id": studio_id,
            "content_id": content_id,
            "since": since,
        })
