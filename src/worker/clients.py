import logging
import time
from typing import Callable, Optional, TypeVar

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import NoBrokersAvailable

from src.config import settings
from src.worker.utils import is_shutdown_requested

logger = logging.getLogger("AnalyticsWorker.Clients")

RETRY_DELAY_SECONDS = 5

ClientT = TypeVar("ClientT")


def connect_with_retry(name: str, factory: Callable[[], ClientT]) -> Optional[ClientT]:
    """
    Calls `factory` until it returns a connected client.
    Waits RETRY_DELAY_SECONDS between attempts; returns None once shutdown is requested.
    """
    logger.info(f"Attempting to connect {name}...")
    while not is_shutdown_requested():
        try:
            client = factory()
            logger.info(f"{name} connection ESTABLISHED.")
            return client
        except NoBrokersAvailable:
            logger.warning(f"Kafka brokers not available for {name}. Retrying in {RETRY_DELAY_SECONDS}s...")
        except Exception as e:
            logger.error(f"Failed to create {name}: {e}. Retrying in {RETRY_DELAY_SECONDS}s...")
        time.sleep(RETRY_DELAY_SECONDS)

    logger.info(f"Shutdown requested while connecting {name}.")
    return None


def create_consumer() -> Optional[KafkaConsumer]:
    """Subscribes to the dataset topic with manual offset commits."""
    return connect_with_retry(
        f"dataset consumer ({settings.KAFKA_DATASET_TOPIC})",
        lambda: KafkaConsumer(
            settings.KAFKA_DATASET_TOPIC,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=settings.KAFKA_CONSUMER_GROUP_ID,
            enable_auto_commit=False,
            value_deserializer=lambda v: v.decode('utf-8'),
            auto_offset_reset='earliest',
            max_poll_records=settings.WORKER_MAX_POLL_RECORDS,
            client_id="studio-datasets-worker-consumer",
        ),
    )


def create_dlq_producer() -> Optional[KafkaProducer]:
    """Producer for dataset messages that cannot be stored."""
    return connect_with_retry(
        f"DLQ producer ({settings.KAFKA_DLQ_TOPIC})",
        lambda: KafkaProducer(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            value_serializer=lambda v: v.encode('utf-8') if isinstance(v, str) else v,
            retries=5,
            acks='all',
            client_id="studio-datasets-worker-dlq-producer",
        ),
    )
