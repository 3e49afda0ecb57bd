import json
import logging
from typing import Dict, List, Tuple

from kafka import KafkaProducer
from kafka.errors import KafkaError
from kafka.structs import TopicPartition, OffsetAndMetadata
from pydantic import ValidationError as RecordValidationError

from src.config import settings
from src.models import DATASET_SCHEMAS, DataPointBase, DatasetCategory, DatasetRecord

logger = logging.getLogger("AnalyticsWorker.Processing")


def parse_dataset_message(raw: str) -> DataPointBase:
    """
    Turns one published dataset message into a table row.
    Raises ValueError (or a pydantic error) for anything that cannot be stored.
    """
    message = json.loads(raw)
    if not isinstance(message, dict):
        raise ValueError("Message is not a JSON object")

    category = DatasetCategory(message.get("dataset"))
    record = DatasetRecord.model_validate(message.get("record"))

    schema = DATASET_SCHEMAS[category]
    if not schema.matches(record):
        raise ValueError(
            f"Record width {len(record.blobs)}/{len(record.doubles)}/{len(record.indexes)} "
            f"does not match the {category.value} layout"
        )

    return schema.to_row(record)


def send_to_dlq(dlq_producer: KafkaProducer, topic: str, value: bytes):
    """Sends a single raw message to the Dead Letter Queue."""
    try:
        dlq_producer.send(topic, value=value)
    except KafkaError as ke:
        logger.error(f"CRITICAL: Failed to send to DLQ: {ke}")


def process_message_batch(
    batch: Dict[TopicPartition, List],
    dlq_producer: KafkaProducer
) -> Tuple[List[DataPointBase], Dict[TopicPartition, OffsetAndMetadata]]:
    """
    Processes a batch of dataset messages from Kafka.
    Returns the rows to append and the offsets to commit afterwards.
    """
    rows_to_insert: List[DataPointBase] = []
    offsets_to_commit: Dict[TopicPartition, OffsetAndMetadata] = {}

    for tp, messages in batch.items():
        for msg in messages:
            try:
                rows_to_insert.append(parse_dataset_message(msg.value))

            except (json.JSONDecodeError, RecordValidationError, ValueError, TypeError) as e:
                # sending "Poison Pill" messages to the DLQ
                logger.error(f"Failed to parse dataset message (Offset {msg.offset}): {e}. Sending to DLQ.")
                send_to_dlq(dlq_producer, settings.KAFKA_DLQ_TOPIC, msg.value)

            # Always commit the offset, even for dead-lettered messages, so the partition keeps moving
            offsets_to_commit[tp] = OffsetAndMetadata(msg.offset + 1, None, None)

    return rows_to_insert, offsets_to_commit
