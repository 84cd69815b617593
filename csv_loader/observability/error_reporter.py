"""
Error reporting sink.

Serializes error reports to JSON and uploads them to the object store. Reporting
is best effort: nothing raised while building or delivering a report ever
reaches the caller.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Callable

from csv_loader.core.errors import ReportingError
from csv_loader.core.models import ErrorReport
from csv_loader.storage.object_store import BlobStore

from . import metrics

logger = logging.getLogger(__name__)

KEY_TIME_FORMAT = "%Y-%m-%d-%H-%M-%S"
CONTENT_TYPE = "application/json"


class ErrorReporter:
    """
    Delivers ErrorReports to ``s3://{bucket}/{prefix}/...-error-report.json``.
    """

    def __init__(
        self,
        store: BlobStore,
        bucket: str,
        prefix: str = "error-reports",
        unique_keys: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize error reporter.

        Args:
            store: Blob store used for uploads
            bucket: Destination bucket
            prefix: Key prefix for reports
            unique_keys: Add a random suffix so reports within one second do not overwrite each other
            clock: Source of the key timestamp
        """
        self.store = store
        self.bucket = bucket
        self.prefix = prefix.rstrip("/")
        self.unique_keys = unique_keys
        self.clock = clock

    def report_key(self) -> str:
        """Build the object key for a new report."""
        stamp = self.clock().strftime(KEY_TIME_FORMAT)
        if self.unique_keys:
            stamp = f"{stamp}-{uuid.uuid4().hex[:8]}"
        return f"{self.prefix}/{stamp}-error-report.json"

    def report_error(
        self,
        file_key: str,
        event_type: str,
        error: BaseException,
        additional_context: dict | None = None,
    ) -> bool:
        """
        Build a report from an exception and deliver it.

        Args:
            file_key: Object key the failure belongs to
            event_type: Event classification of the job
            error: The failure
            additional_context: Extra report fields

        Returns:
            True if the report was uploaded, False otherwise
        """
        try:
            report = ErrorReport.from_exception(file_key, event_type, error, additional_context)
        except Exception as e:
            logger.error(f"Failed to generate error report: {e}", exc_info=True)
            metrics.record_error_report("failed")
            return False
        return self.report(report)

    def report(self, report: ErrorReport) -> bool:
        """
        Serialize and upload one report.

        Args:
            report: The report to deliver

        Returns:
            True if the report was uploaded, False otherwise
        """
        try:
            body = json.dumps(
                report.to_document(), indent=2, ensure_ascii=False, default=str
            ).encode("utf-8")
            key = self.report_key()
            self.store.put_object(self.bucket, key, body, CONTENT_TYPE)
        except Exception as e:
            failure = ReportingError(f"Failed to generate error report: {e}", cause=e)
            logger.error(
                failure.message,
                extra={"file_key": report.file_key, "error_kind": report.error_kind},
                exc_info=True,
            )
            metrics.record_error_report("failed")
            return False

        logger.info(f"Error report uploaded to s3://{self.bucket}/{key}")
        metrics.record_error_report("delivered")
        return True
