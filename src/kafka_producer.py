import logging
import json
import time
from kafka import KafkaProducer
from kafka.errors import NoBrokersAvailable

from src.config import settings
from src.errors import DependencyError

logger =  logging.getLogger("AnalyticsAPI.KafkaProducer")

# Singleton instance of the dataset producer, only used when DATASET_WRITE_BACKEND is "kafka"
_producer_instance = {"producer": None}

def create_kafka_producer(max_attempts: int = 12, retry_delay: float = 5.0) -> KafkaProducer:
    """
    Creates the producer that publishes shaped dataset records.
    Retries while the brokers start up, then gives up with a DependencyError.
    """
    logger.info("Attempting to create dataset KafkaProducer...")
    for attempt in range(1, max_attempts + 1):
        try:
            producer = KafkaProducer(
                bootstrap_servers = settings.KAFKA_BOOTSTRAP_SERVERS,
                value_serializer = lambda v: json.dumps(v).encode('utf-8'),
                retries = 5,
                retry_backoff_ms = 1000,
                acks = 'all',
                client_id = 'studio-analytics-api-producer'
            )
            logger.info("Dataset KafkaProducer connection ESTABLISHED")
            return producer
        except NoBrokersAvailable:
            logger.warning(f"Kafka brokers are not available (attempt {attempt}/{max_attempts}). Retrying in {retry_delay}s...")
        except Exception as e:
            logger.error(f'Failed to create dataset KafkaProducer (attempt {attempt}/{max_attempts}): {e}')
        time.sleep(retry_delay)

    raise DependencyError("Kafka brokers are unavailable")


def get_kafka_producer() -> KafkaProducer:
    """
    Return the singleton KafkaProducer instance.
    """

    # Normally set during app startup, created lazily otherwise
    if _producer_instance["producer"] is None:
        logger.warning("KafkaProducer not initialized. Initializing now...")
        _producer_instance["producer"] = create_kafka_producer()

    return _producer_instance["producer"]

def set_kafka_producer(producer: KafkaProducer):
    """Sets the global producer instance"""
    _producer_instance["producer"]=producer


def close_kafka_producer():
    """
    Flush and closes the singleton KafkaProducer connection.
    """

    producer = _producer_instance["producer"]
    if producer:
        logger.info("Flushing and closing KafkaProducer...")
        producer.flush()
        producer.close()
        _producer_instance["producer"] = None
        logger.info("KafkaProducer Closed.")
