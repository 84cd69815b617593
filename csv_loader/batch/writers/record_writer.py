"""
Batch writer for decoded records.

Persists records in fixed-size chunks. Each chunk is one transaction: a
failing chunk is rolled back and stops the write, while every chunk before it
stays committed.
"""

import logging
from typing import Iterable

import psycopg

from csv_loader.core.errors import PersistenceError
from csv_loader.core.models import Record, WriteMode, WriteResult
from csv_loader.observability import metrics
from csv_loader.warehouse.connection import DatabaseConnectionPool
from csv_loader.warehouse.records import RecordTable

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000


class BatchRecordWriter:
    """
    Writes a record sequence to the records table in insert or update mode.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        table: RecordTable | None = None,
    ):
        """
        Initialize batch record writer.

        Args:
            pool: Database connection pool
            chunk_size: Records per commit
            table: Statement shapes for the target table
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.pool = pool
        self.chunk_size = chunk_size
        self.table = table or RecordTable()

    def write(self, records: Iterable[Record], mode: WriteMode) -> WriteResult:
        """
        Persist every record or report the chunk that failed.

        The pool is opened on first use. The connection is held for the whole
        batch with autocommit disabled. Chunks are committed in sequence order.

        Args:
            records: Records in input order (consumed once)
            mode: Insert or update

        Returns:
            WriteResult; ``error`` is set when a chunk failed
        """
        try:
            if not self.pool.is_open:
                self.pool.open()
            with self.pool.get_connection() as conn:
                conn.autocommit = False
                result = self._write_chunks(conn, records, mode)
        except psycopg.Error as e:
            logger.error(f"Database connection failed before writing: {e}", exc_info=True)
            metrics.record_chunk(mode.value, "failure")
            return WriteResult(
                mode=mode,
                error=PersistenceError(
                    f"Database connection failed: {e}",
                    record_id=None,
                    is_update=mode.is_update,
                    chunk_number=0,
                    rows_committed=0,
                    cause=e,
                ),
            )

        if result.succeeded:
            logger.info(
                f"Successfully processed {result.rows_committed} records",
                extra={
                    "mode": mode.value,
                    "rows_committed": result.rows_committed,
                    "chunks_committed": result.chunks_committed,
                },
            )
        return result

    def _write_chunks(self, conn, records: Iterable[Record], mode: WriteMode) -> WriteResult:
        statement = self.table.statement(mode)
        submitted = 0
        committed = 0
        chunk_number = 0
        chunk: list[Record] = []

        def flush() -> PersistenceError | None:
            nonlocal committed
            error = self._execute_chunk(conn, statement, chunk, mode, chunk_number, committed)
            if error is None:
                committed += len(chunk)
            return error

        for record in records:
            chunk.append(record)
            submitted += 1
            if len(chunk) == self.chunk_size:
                chunk_number += 1
                error = flush()
                if error is not None:
                    return WriteResult(
                        mode=mode,
                        records_submitted=submitted,
                        rows_committed=committed,
                        chunks_committed=chunk_number - 1,
                        error=error,
                    )
                chunk = []

        if chunk:
            chunk_number += 1
            error = flush()
            if error is not None:
                return WriteResult(
                    mode=mode,
                    records_submitted=submitted,
                    rows_committed=committed,
                    chunks_committed=chunk_number - 1,
                    error=error,
                )

        return WriteResult(
            mode=mode,
            records_submitted=submitted,
            rows_committed=committed,
            chunks_committed=chunk_number,
        )

    def _execute_chunk(
        self,
        conn,
        statement,
        chunk: list[Record],
        mode: WriteMode,
        chunk_number: int,
        committed: int,
    ) -> PersistenceError | None:
        """
        Execute and commit one chunk.

        Returns:
            None on commit, otherwise the PersistenceError for this chunk
        """
        try:
            with conn.cursor() as cur:
                cur.executemany(statement, [self.table.params(r, mode) for r in chunk])
                affected = cur.rowcount
            conn.commit()
        except psycopg.Error as e:
            in_flight = chunk[-1].id
            logger.error(
                f"Error saving chunk {chunk_number} to database: {e}",
                extra={
                    "mode": mode.value,
                    "chunk_number": chunk_number,
                    "record_id": in_flight,
                    "rows_committed": committed,
                },
            )
            self._rollback(conn)
            metrics.record_chunk(mode.value, "failure")
            return PersistenceError(
                f"Failed to persist chunk {chunk_number} in {mode.value} mode: {e}",
                record_id=in_flight,
                is_update=mode.is_update,
                chunk_number=chunk_number,
                rows_committed=committed,
                cause=e,
            )

        if mode is WriteMode.UPDATE and 0 <= affected < len(chunk):
            logger.warning(
                f"{len(chunk) - affected} keys in chunk {chunk_number} matched no row",
                extra={"chunk_number": chunk_number, "affected": affected},
            )

        metrics.record_chunk(mode.value, "success", len(chunk))
        logger.debug(f"Committed chunk {chunk_number} ({len(chunk)} records)")
        return None

    def _rollback(self, conn) -> None:
        try:
            conn.rollback()
        except psycopg.Error as e:
            logger.warning(f"Rollback after failed chunk also failed: {e}")
