"""
Unit tests for the batch pipeline orchestrator.

Runs the whole flow against the in-memory blob store and database fakes.
"""

import logging

import psycopg
import pytest

from conftest import make_csv, make_records
from csv_loader.batch.pipeline import BatchPipeline, classify_event
from csv_loader.batch.readers import FileReader
from csv_loader.batch.writers import BatchRecordWriter
from csv_loader.config import JobSettings
from csv_loader.context import PipelineContext
from csv_loader.core.errors import DecodeError, PersistenceError, RetrievalError
from csv_loader.core.models import JobState, WriteMode
from csv_loader.observability.error_reporter import ErrorReporter

BUCKET = "ingest-bucket"
KEY = "incoming/data.csv"
REGION = "eu-west-1"


def make_job(event_type: str = "ObjectCreated:Put", key: str = KEY) -> JobSettings:
    return JobSettings(bucket_name=BUCKET, file_key=key, region=REGION, event_type=event_type)


class RecordingFileReader(FileReader):
    """FileReader that remembers which local paths it was given."""

    def __init__(self):
        super().__init__()
        self.paths = []

    def read(self, file_path):
        self.paths.append(file_path)
        return super().read(file_path)


@pytest.fixture
def file_reader():
    return RecordingFileReader()


@pytest.fixture
def context(blob_store, fake_pool, file_reader):
    return PipelineContext(
        store=blob_store,
        pool=fake_pool,
        reporter=ErrorReporter(blob_store, BUCKET),
        writer=BatchRecordWriter(fake_pool),
        file_reader=file_reader,
    )


@pytest.mark.unit
class TestClassifyEvent:
    """Tests for event type classification"""

    @pytest.mark.parametrize("event_type", [
        "ObjectCreated:Put",
        "ObjectCreated:Post",
        "ObjectCreated:CompleteMultipartUpload",
        "s3:ObjectCreated:Copy",
    ])
    def test_created_events_insert(self, event_type):
        assert classify_event(event_type) == (WriteMode.INSERT, "newFile")

    @pytest.mark.parametrize("event_type", ["ObjectModified:Put", "s3:ObjectModified:Put"])
    def test_modified_events_update(self, event_type):
        assert classify_event(event_type) == (WriteMode.UPDATE, "fileUpdate")

    def test_unknown_event_defaults_to_insert(self, caplog):
        with caplog.at_level(logging.WARNING, logger="csv_loader"):
            assert classify_event("ObjectRemoved:Delete") == (WriteMode.INSERT, "default")
        assert "Unhandled event type: ObjectRemoved:Delete" in caplog.text


@pytest.mark.unit
class TestBatchPipeline:
    """Tests for BatchPipeline.process"""

    def test_insert_run(self, context, blob_store, fake_db):
        blob_store.add(BUCKET, KEY, make_csv(make_records(2500)))
        pipeline = BatchPipeline(context)

        result = pipeline.process(make_job())

        assert pipeline.state is JobState.DONE
        assert result.state is JobState.DONE
        assert result.mode is WriteMode.INSERT
        assert result.processing_type == "newFile"
        assert result.records_decoded == 2500
        assert result.rows_committed == 2500
        assert len(fake_db.rows) == 2500
        assert fake_db.commits == 3
        assert blob_store.reports(BUCKET) == []

    def test_update_run(self, context, blob_store, fake_db):
        BatchRecordWriter(context.pool).write(make_records(3), WriteMode.INSERT)
        changed = [r.model_copy(update={"status": "SHIPPED"}) for r in make_records(3)]
        blob_store.add(BUCKET, KEY, make_csv(changed))

        result = BatchPipeline(context).process(make_job("ObjectModified:Put"))

        assert result.mode is WriteMode.UPDATE
        assert result.processing_type == "fileUpdate"
        assert {row["status"] for row in fake_db.rows.values()} == {"SHIPPED"}

    def test_amounts_survive_exactly(self, context, blob_store, fake_db):
        blob_store.add(BUCKET, KEY, "id,name,description,amount,timestamp,status\nA1,Widget,,0.1,2024-01-02 03:04:05,OK\n")

        BatchPipeline(context).process(make_job())

        assert fake_db.rows["A1"]["amount"] == 0.1

    def test_empty_file_succeeds(self, context, blob_store, fake_db):
        blob_store.add(BUCKET, KEY, "id,name,description,amount,timestamp,status\n")

        result = BatchPipeline(context).process(make_job())

        assert result.records_decoded == 0
        assert result.rows_committed == 0
        assert fake_db.commits == 0

    def test_decode_failure_persists_nothing(self, context, blob_store, fake_db):
        """Test that one bad row fails the job before any chunk is written"""
        records = make_records(5)
        text = make_csv(records).replace(f"{records[2].amount!r}", "twelve", 1)
        blob_store.add(BUCKET, KEY, text)
        pipeline = BatchPipeline(context)

        with pytest.raises(DecodeError) as exc_info:
            pipeline.process(make_job())

        assert pipeline.state is JobState.FAILED
        assert fake_db.executions == 0
        assert fake_db.rows == {}
        assert exc_info.value.context["failedRecordCount"] == 1

        row_report, job_report = blob_store.reports(BUCKET)
        assert row_report["errorKind"] == "decode"
        assert row_report["fileKey"] == KEY
        assert row_report["recordNumber"] == 3
        assert row_report["lineNumber"] == 4
        assert row_report["recordData"]["amount"] == "twelve"
        assert row_report["bucketName"] == BUCKET
        assert row_report["reportScope"] == "record"
        assert job_report["reportScope"] == "job"
        assert job_report["errorKind"] == "decode"
        assert job_report["firstFailedRecordNumber"] == 3
        assert job_report["processingType"] == "newFile"

    def test_missing_object_is_a_retrieval_failure(self, context, blob_store, fake_db):
        pipeline = BatchPipeline(context)

        with pytest.raises(RetrievalError):
            pipeline.process(make_job(key="incoming/missing.csv"))

        assert pipeline.state is JobState.FAILED
        [report] = blob_store.reports(BUCKET)
        assert report["errorKind"] == "retrieval"
        assert report["errorType"] == "botocore.exceptions.ClientError"
        assert report["fileKey"] == "incoming/missing.csv"
        assert report["bucketName"] == BUCKET
        assert report["region"] == REGION
        assert "NoSuchKey" in report["errorMessage"]
        assert fake_db.executions == 0

    def test_persistence_failure_report(self, context, blob_store, fake_db):
        blob_store.add(BUCKET, KEY, make_csv(make_records(2500)))
        fake_db.fail_on_execution = 3
        pipeline = BatchPipeline(context)

        with pytest.raises(PersistenceError) as exc_info:
            pipeline.process(make_job("ObjectModified:Put"))

        assert exc_info.value.chunk_number == 3
        assert pipeline.state is JobState.FAILED
        [report] = blob_store.reports(BUCKET)
        assert report["errorKind"] == "persistence"
        assert report["errorType"].endswith("OperationalError")
        assert report["recordId"] == "R02500"
        assert report["isUpdate"] is True
        assert report["processingType"] == "fileUpdate"

    def test_duplicate_insert_is_a_persistence_failure(self, context, blob_store, fake_db):
        BatchRecordWriter(context.pool).write(make_records(1), WriteMode.INSERT)
        blob_store.add(BUCKET, KEY, make_csv(make_records(3)))

        with pytest.raises(PersistenceError) as exc_info:
            BatchPipeline(context).process(make_job())

        assert isinstance(exc_info.value.cause, psycopg.errors.UniqueViolation)
        assert set(fake_db.rows) == {"R00001"}

    def test_unreachable_report_store_keeps_original_error(self, context, blob_store):
        blob_store.add(BUCKET, KEY, "id,name,description,amount,timestamp,status\nA1,W,,oops,2024-01-02 03:04:05,OK\n")
        blob_store.put_error = RuntimeError("report bucket unreachable")

        with pytest.raises(DecodeError):
            BatchPipeline(context).process(make_job())

    def test_temp_file_removed_after_success(self, context, blob_store, file_reader):
        blob_store.add(BUCKET, KEY, make_csv(make_records(3)))

        BatchPipeline(context).process(make_job())

        [path] = file_reader.paths
        assert not path.exists()
        assert blob_store.opened_streams[0].closed

    def test_temp_file_removed_after_failure(self, context, blob_store, file_reader, fake_db):
        blob_store.add(BUCKET, KEY, make_csv(make_records(3)))
        fake_db.fail_on_execution = 1

        with pytest.raises(PersistenceError):
            BatchPipeline(context).process(make_job())

        [path] = file_reader.paths
        assert not path.exists()

    def test_row_report_limit(self, context, blob_store, fake_db):
        context.error_report_row_limit = 2
        lines = ["id,name,description,amount,timestamp,status"]
        lines += [f"B{i},W,,bad,2024-01-02 03:04:05,OK" for i in range(5)]
        blob_store.add(BUCKET, KEY, "\n".join(lines) + "\n")

        with pytest.raises(DecodeError) as exc_info:
            BatchPipeline(context).process(make_job())

        reports = blob_store.reports(BUCKET)
        assert len(reports) == 3
        assert [r.get("recordNumber") for r in reports[:2]] == [1, 2]
        assert exc_info.value.context["failedRecordCount"] == 5

    def test_pipeline_runs_once(self, context, blob_store):
        blob_store.add(BUCKET, KEY, make_csv(make_records(1)))
        pipeline = BatchPipeline(context)
        pipeline.process(make_job())

        with pytest.raises(RuntimeError):
            pipeline.process(make_job())
