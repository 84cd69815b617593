"""
Error taxonomy for the ingestion pipeline.

Lower layers raise (or return, inside a result) one of these tagged errors with
whatever context they know. Only the pipeline orchestrator turns them into
error reports and decides whether the job terminates.
"""

from typing import Any


def qualified_name(error: BaseException) -> str:
    """Class name of an exception, module-qualified unless it is a builtin."""
    cls = type(error)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    kind = "pipeline"

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = dict(context or {})
        super().__init__(message)

    @property
    def error_type(self) -> str:
        """Qualified class name of the underlying failure."""
        return qualified_name(self.cause if self.cause is not None else self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


class ConfigurationError(PipelineError):
    """A required parameter is missing or malformed."""

    kind = "configuration"

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = list(missing or [])
        super().__init__(message, context={"missing": ",".join(self.missing)} if self.missing else None)


class RetrievalError(PipelineError):
    """The source object could not be fetched or read."""

    kind = "retrieval"


class DecodeError(PipelineError):
    """One or more CSV rows could not be converted into records."""

    kind = "decode"


class PersistenceError(PipelineError):
    """A chunk failed to execute or commit."""

    kind = "persistence"

    def __init__(
        self,
        message: str,
        *,
        record_id: str | None,
        is_update: bool,
        chunk_number: int,
        rows_committed: int,
        cause: BaseException | None = None,
    ):
        self.record_id = record_id
        self.is_update = is_update
        self.chunk_number = chunk_number
        self.rows_committed = rows_committed
        super().__init__(
            message,
            cause=cause,
            context={
                "recordId": record_id,
                "isUpdate": is_update,
                "chunkNumber": chunk_number,
                "rowsCommitted": rows_committed,
            },
        )


class ReportingError(PipelineError):
    """Building or delivering an error report failed. Never propagated."""

    kind = "reporting"
