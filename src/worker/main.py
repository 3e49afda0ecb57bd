import logging
import time
from typing import List

from kafka import KafkaConsumer, KafkaProducer
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session

from src.config import settings
from src.db import engine as db_engine, create_db_and_tables
from src.models import DataPointBase
from src.worker.clients import create_consumer, create_dlq_producer
from src.worker.processing import process_message_batch
from src.worker.utils import setup_signal_handlers, is_shutdown_requested, touch_healthcheck_file

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("AnalyticsWorker.Main")


def append_rows(db_engine: Engine, rows: List[DataPointBase]) -> None:
    """Appends one polled batch to the dataset tables in a single transaction."""
    with Session(db_engine) as session:
        try:
            session.add_all(rows)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise


def main_loop(
    consumer: KafkaConsumer,
    dlq_producer: KafkaProducer,
    db_engine: Engine,
):
    """Polls dataset records, appends them to the tables and commits offsets."""

    while not is_shutdown_requested():
        try:
            batch = consumer.poll(timeout_ms=settings.WORKER_POLL_TIMEOUT * 1000)

            if not batch:
                touch_healthcheck_file()
                continue

            logger.info(f"Processing batch with {sum(len(m) for m in batch.values())} dataset records...")

            # Starting offsets, to rewind if the store is unreachable
            start_offsets = {tp: messages[0].offset for tp, messages in batch.items()}

            rows, offsets_to_commit = process_message_batch(batch, dlq_producer)

            if rows:
                try:
                    append_rows(db_engine, rows)
                    logger.info(f"Appended {len(rows)} records to the datasets.")

                except OperationalError as e:
                    logger.error(f"Dataset store connection error: {e}. Rewinding batch and retrying...")
                    for tp, offset in start_offsets.items():
                        consumer.seek(tp, offset)
                    time.sleep(10)
                    continue

                except SQLAlchemyError as e:
                    # Non-retryable, the offsets are committed so the batch is not replayed forever
                    logger.error(f"Failed to append batch to the datasets (non-retryable): {e}")

            if offsets_to_commit:
                consumer.commit(offsets_to_commit)
                logger.debug("Offsets committed to Kafka.")

            touch_healthcheck_file()

        except Exception as e:
            logger.error(f"Unexpected error in main loop: {e}. Sleeping for 5s...")
            time.sleep(5)


# Entry Point
def main():
    logger.info("Starting dataset worker...")
    setup_signal_handlers()
    create_db_and_tables()

    consumer = create_consumer()
    dlq_producer = create_dlq_producer()
    if consumer is None or dlq_producer is None:
        logger.info("Shutdown requested before the Kafka clients connected.")
        if consumer is not None:
            consumer.close()
        return

    try:
        main_loop(consumer, dlq_producer, db_engine)
    except Exception as e:
        logger.error(f"CRITICAL: Main loop exited unexpectedly: {e}")
    finally:
        logger.info("Shutting down worker...")
        consumer.close()
        dlq_producer.close()
        logger.info("Worker shutdown complete.")

if __name__ == "__main__":
    main()
