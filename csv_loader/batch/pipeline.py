"""
Batch processing pipeline orchestration.

Coordinates the flow: retrieve → decode → persist, and is the single place
where failures become error reports.
"""

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from csv_loader.config import JobSettings
from csv_loader.core.errors import DecodeError
from csv_loader.core.models import (
    DecodeFailure,
    JobResult,
    JobState,
    Record,
    WriteMode,
)
from csv_loader.observability import metrics
from csv_loader.observability.logger import log_operation
from csv_loader.storage.object_store import downloaded_object

if TYPE_CHECKING:
    from csv_loader.context import PipelineContext

logger = logging.getLogger(__name__)

CREATED_EVENTS = "ObjectCreated"
MODIFIED_EVENTS = "ObjectModified"

ALLOWED_TRANSITIONS = {
    JobState.IDLE: {JobState.RETRIEVING, JobState.FAILED},
    JobState.RETRIEVING: {JobState.DECODING, JobState.FAILED},
    JobState.DECODING: {JobState.PERSISTING, JobState.FAILED},
    JobState.PERSISTING: {JobState.DONE, JobState.FAILED},
    JobState.DONE: set(),
    JobState.FAILED: set(),
}


def classify_event(event_type: str) -> tuple[WriteMode, str]:
    """
    Map an object-store event classification to a write mode.

    Creation events insert, modification events update. Anything else falls
    back to insert with a warning.

    Args:
        event_type: e.g. "ObjectCreated:Put" or "s3:ObjectModified:Put"

    Returns:
        (mode, processing type tag)
    """
    name = event_type[3:] if event_type.startswith("s3:") else event_type
    family = name.split(":", 1)[0]

    if family == CREATED_EVENTS:
        return WriteMode.INSERT, "newFile"
    if family == MODIFIED_EVENTS:
        return WriteMode.UPDATE, "fileUpdate"

    logger.warning(f"Unhandled event type: {event_type}, defaulting to insert")
    return WriteMode.INSERT, "default"


class BatchPipeline:
    """
    Runs one job: retrieve the CSV object, decode it, persist the records.

    States: IDLE → RETRIEVING → DECODING → PERSISTING → DONE, with FAILED
    reachable from every non-terminal state. One instance runs one job.
    """

    def __init__(self, context: "PipelineContext"):
        """
        Initialize batch pipeline.

        Args:
            context: Collaborators for this run
        """
        self.context = context
        self.state = JobState.IDLE

    def process(self, job: JobSettings) -> JobResult:
        """
        Process the object named by the job.

        Args:
            job: Trigger parameters

        Returns:
            JobResult when every record was committed

        Raises:
            PipelineError: After the failure has been reported (RetrievalError,
                DecodeError, PersistenceError); unexpected errors are reported
                and re-raised unchanged
        """
        if self.state is not JobState.IDLE:
            raise RuntimeError(f"Pipeline already ran (state: {self.state.value})")

        started = time.time()
        mode, processing_type = classify_event(job.event_type)
        context = {
            "bucketName": job.bucket_name,
            "region": job.region,
            "processingType": processing_type,
        }
        logger.info(
            f"Processing file: {job.file_key} from bucket: {job.bucket_name} (Event: {job.event_type})",
            extra={"mode": mode.value, "processing_type": processing_type},
        )

        try:
            self._transition(JobState.RETRIEVING)
            with downloaded_object(self.context.store, job.bucket_name, job.file_key) as path:
                self._transition(JobState.DECODING)
                with log_operation("Decoding file", logger=logger, file_key=job.file_key):
                    records = self._decode(path, job, context)

                self._transition(JobState.PERSISTING)
                with log_operation("Persisting records", logger=logger, mode=mode.value):
                    result = self.context.writer.write(records, mode)
                    if result.error is not None:
                        raise result.error
        except Exception as e:
            self._fail(job, e, context)
            metrics.observe_job("failure", time.time() - started)
            raise

        self._transition(JobState.DONE)
        metrics.observe_job("success", time.time() - started)
        logger.info(f"Successfully processed file: {job.file_key}")

        return JobResult(
            file_key=job.file_key,
            state=self.state,
            mode=mode,
            processing_type=processing_type,
            records_decoded=len(records),
            rows_committed=result.rows_committed,
        )

    def _decode(self, path: Path, job: JobSettings, context: dict[str, Any]) -> list[Record]:
        """
        Decode the whole file, reporting every failing row.

        Any failing row makes the run fail before anything is persisted.

        Returns:
            Records in input order

        Raises:
            DecodeError: If at least one row failed
        """
        records: list[Record] = []
        failures: list[DecodeFailure] = []

        for result in self.context.file_reader.read(path):
            if isinstance(result, DecodeFailure):
                failures.append(result)
                self._report_row(job, result, context, len(failures))
            else:
                records.append(result)

        metrics.record_decode(len(records), len(failures))

        if failures:
            first = failures[0]
            raise DecodeError(
                f"{len(failures)} of {len(records) + len(failures)} rows failed to decode; "
                f"first failure at record {first.record_number}: {first.error_message}",
                cause=first.error,
                context={
                    "failedRecordCount": len(failures),
                    "firstFailedRecordNumber": first.record_number,
                },
            )

        logger.info(f"Decoded {len(records)} records", extra={"file_key": job.file_key})
        return records

    def _report_row(
        self,
        job: JobSettings,
        failure: DecodeFailure,
        context: dict[str, Any],
        failure_count: int,
    ) -> None:
        limit = self.context.error_report_row_limit
        logger.warning(
            f"Record {failure.record_number} failed to decode: {failure.error_message}",
            extra={"record_number": failure.record_number, "line_number": failure.line_number},
        )
        if failure_count > limit:
            if failure_count == limit + 1:
                logger.warning(f"Row error report limit ({limit}) reached, further rows are only logged")
            metrics.record_error_report("suppressed")
            return

        error = DecodeError(
            f"Record {failure.record_number} could not be decoded: {failure.error_message}",
            cause=failure.error,
            context={
                "recordNumber": failure.record_number,
                "lineNumber": failure.line_number,
                "recordData": failure.raw_fields,
            },
        )
        error.__cause__ = failure.error
        self.context.reporter.report_error(
            job.file_key, job.event_type, error, {**context, "reportScope": "record"}
        )

    def _fail(self, job: JobSettings, error: Exception, context: dict[str, Any]) -> None:
        self._transition(JobState.FAILED)
        logger.error(f"Error processing file: {error}", exc_info=True)
        self.context.reporter.report_error(
            job.file_key, job.event_type, error, {**context, "reportScope": "job"}
        )

    def _transition(self, new_state: JobState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid state transition {self.state.value} -> {new_state.value}")
        logger.debug(f"State {self.state.value} -> {new_state.value}")
        self.state = new_state
