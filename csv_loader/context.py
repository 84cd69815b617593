"""
Explicit collaborators of one job run.

Built once at process start and handed to the pipeline; nothing in the
package reaches for module-level state.
"""

from csv_loader.batch.readers import FileReader
from csv_loader.batch.writers import BatchRecordWriter
from csv_loader.config import Settings
from csv_loader.observability.error_reporter import ErrorReporter
from csv_loader.storage.object_store import BlobStore, ObjectStore
from csv_loader.warehouse.connection import DatabaseConnectionPool
from csv_loader.warehouse.records import RecordTable


class PipelineContext:
    """
    Holds the object store, connection pool, writer, reader and error sink.
    """

    def __init__(
        self,
        store: BlobStore,
        pool: DatabaseConnectionPool,
        reporter: ErrorReporter,
        writer: BatchRecordWriter,
        file_reader: FileReader | None = None,
        error_report_row_limit: int = 100,
    ):
        self.store = store
        self.pool = pool
        self.reporter = reporter
        self.writer = writer
        self.file_reader = file_reader or FileReader()
        self.error_report_row_limit = error_report_row_limit

    @classmethod
    def from_settings(cls, settings: Settings, store: BlobStore | None = None) -> "PipelineContext":
        """
        Wire collaborators from settings.

        The pool is created but not opened.

        Args:
            settings: Validated settings
            store: Blob store override (default: boto3-backed ObjectStore)

        Returns:
            PipelineContext
        """
        job = settings.job
        store = store or ObjectStore(region=job.region)
        pool = DatabaseConnectionPool.from_settings(settings.database)
        reporter = ErrorReporter(
            store=store,
            bucket=job.bucket_name,
            prefix=job.error_reports_prefix,
            unique_keys=settings.pipeline.error_report_unique_keys,
        )
        writer = BatchRecordWriter(
            pool,
            chunk_size=settings.pipeline.chunk_size,
            table=RecordTable(settings.database.table_name),
        )
        return cls(
            store=store,
            pool=pool,
            reporter=reporter,
            writer=writer,
            error_report_row_limit=settings.pipeline.error_report_row_limit,
        )

    def close(self) -> None:
        """Release the connection pool."""
        self.pool.close()
