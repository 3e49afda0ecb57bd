from unittest.mock import MagicMock

import pytest
from kafka.errors import KafkaTimeoutError
from sqlmodel import Session, select

from src.db import build_engine
from src.errors import IngestionError
from src.ingestion import KafkaDatasetWriter, SQLDatasetWriter
from src.models import DatasetCategory, DatasetRecord, RevenueDataPoint, UserBehaviorDataPoint

REVENUE_RECORD = DatasetRecord(
    blobs=["purchase_completed", "studio-1", "user-1", "US", "Austin", "card", "USD", "chapter-1"],
    doubles=[4.99, 100.0, 0.4, 0.3, 1_700_000_000_000.0, 30.27, -97.74],
    indexes=["studio-1"],
)

BEHAVIOR_RECORD = DatasetRecord(
    blobs=["login", "user-1", "session-1", "US", "Austin", "", "", ""],
    doubles=[1.0, 0.0, 0.0, 1_700_000_000_000.0],
    indexes=["global"],
)


class TestSQLDatasetWriter:

    def test_stores_positional_columns(self, engine):
        SQLDatasetWriter(engine).write(DatasetCategory.revenue, REVENUE_RECORD)

        with Session(engine) as session:
            row = session.exec(select(RevenueDataPoint)).one()

        assert [getattr(row, f"blob{i}") for i in range(1, 9)] == REVENUE_RECORD.blobs
        assert [getattr(row, f"double{i}") for i in range(1, 8)] == pytest.approx(REVENUE_RECORD.doubles)
        assert row.index1 == "studio-1"
        assert row.received_at is not None

    def test_narrow_layout_leaves_unused_doubles_at_zero(self, engine):
        SQLDatasetWriter(engine).write(DatasetCategory.user_behavior, BEHAVIOR_RECORD)

        with Session(engine) as session:
            row = session.exec(select(UserBehaviorDataPoint)).one()

        assert (row.double1, row.double4, row.double5, row.double7) == (1.0, 1_700_000_000_000.0, 0.0, 0.0)
        assert row.index1 == "global"

    def test_layout_mismatch_is_rejected(self, engine):
        with pytest.raises(IngestionError) as exc_info:
            SQLDatasetWriter(engine).write(DatasetCategory.user_behavior, REVENUE_RECORD)

        assert exc_info.value.message == "Record does not match the user-behavior dataset layout"

    def test_store_failure_raises_ingestion_error(self, tmp_path):
        # No tables have been created
        bare_engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")

        with pytest.raises(IngestionError) as exc_info:
            SQLDatasetWriter(bare_engine).write(DatasetCategory.revenue, REVENUE_RECORD)

        assert exc_info.value.message == "Write to revenue dataset failed: OperationalError"
        assert exc_info.value.status_code == 500
        bare_engine.dispose()


class TestKafkaDatasetWriter:

    def test_publishes_and_waits_for_ack(self):
        producer = MagicMock()

        KafkaDatasetWriter(producer, topic="datasets", timeout=2).write(DatasetCategory.revenue, REVENUE_RECORD)

        producer.send.assert_called_once()
        topic = producer.send.call_args.args[0]
        message = producer.send.call_args.kwargs["value"]
        assert topic == "datasets"
        assert message["dataset"] == "revenue"
        assert message["record"] == REVENUE_RECORD.model_dump()
        assert "written_at" in message
        producer.send.return_value.get.assert_called_once_with(timeout=2)

    def test_failed_ack_raises_ingestion_error(self):
        producer = MagicMock()
        producer.send.return_value.get.side_effect = KafkaTimeoutError("no ack")

        with pytest.raises(IngestionError) as exc_info:
            KafkaDatasetWriter(producer, topic="datasets").write(DatasetCategory.content, DatasetRecord(
                blobs=["chapter_opened"] + [""] * 7, doubles=[0.0] * 7, indexes=["studio-1"],
            ))

        assert exc_info.value.message == "Publish to content dataset failed: KafkaTimeoutError"

    def test_layout_mismatch_is_not_published(self):
        producer = MagicMock()

        with pytest.raises(IngestionError):
            KafkaDatasetWriter(producer).write(DatasetCategory.revenue, BEHAVIOR_RECORD)

        producer.send.assert_not_called()
