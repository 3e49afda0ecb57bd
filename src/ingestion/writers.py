import logging
from datetime import datetime, timezone
from typing import Protocol

from kafka import KafkaProducer
from kafka.errors import KafkaError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from src.config import settings
from src.db import engine
from src.errors import IngestionError
from src.kafka_producer import get_kafka_producer
from src.models import DATASET_SCHEMAS, DatasetCategory, DatasetRecord

logger = logging.getLogger("AnalyticsAPI.Writers")


class DatasetWriter(Protocol):
    """Appends one shaped record to a dataset. Raises IngestionError on failure."""

    def write(self, category: DatasetCategory, record: DatasetRecord) -> None:
        ...


def _check_layout(category: DatasetCategory, record: DatasetRecord) -> None:
    schema = DATASET_SCHEMAS[category]
    if not schema.matches(record):
        raise IngestionError(f"Record does not match the {category.value} dataset layout")


class SQLDatasetWriter:
    """Writes records straight into the dataset tables."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def write(self, category: DatasetCategory, record: DatasetRecord) -> None:
        _check_layout(category, record)
        row = DATASET_SCHEMAS[category].to_row(record)

        with Session(self.engine) as session:
            try:
                session.add(row)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to write to {category.value} dataset (studio {record.indexes[0]}): {e}")
                raise IngestionError(
                    f"Write to {category.value} dataset failed: {type(e).__name__}"
                ) from e


class KafkaDatasetWriter:
    """
    Publishes records to the dataset topic; the worker appends them to the tables.
    Waits for the broker acknowledgement so a failed send surfaces to the caller.
    """

    def __init__(self, producer: KafkaProducer, topic: str = None, timeout: float = None):
        self.producer = producer
        self.topic = topic or settings.KAFKA_DATASET_TOPIC
        self.timeout = timeout if timeout is not None else settings.KAFKA_SEND_TIMEOUT

    def write(self, category: DatasetCategory, record: DatasetRecord) -> None:
        _check_layout(category, record)
        message = {
            'dataset': category.value,
            'record': record.model_dump(),
            'written_at': datetime.now(timezone.utc).isoformat(),
        }

        try:
            future = self.producer.send(self.topic, value=message)
            future.get(timeout=self.timeout)
        except KafkaError as e:
            logger.error(f'Failed to publish {category.value} record to Kafka (studio {record.indexes[0]}): {e}')
            raise IngestionError(
                f"Publish to {category.value} dataset failed: {type(e).__name__}"
            ) from e


def get_dataset_writer() -> DatasetWriter:
    """FastAPI dependency returning the writer selected by DATASET_WRITE_BACKEND."""
    if settings.DATASET_WRITE_BACKEND == "kafka":
        return KafkaDatasetWriter(get_kafka_producer())
    return SQLDatasetWriter(engine)
