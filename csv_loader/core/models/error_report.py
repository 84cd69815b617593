"""
ErrorReport model describing one failure delivered to the error sink.
"""

import traceback
from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, Field, field_validator

from csv_loader.core.errors import PipelineError, qualified_name

ContextValue = Union[str, int, float, bool, None, dict[str, Union[str, None]]]

BASE_KEYS = (
    "timestamp",
    "fileKey",
    "eventType",
    "errorKind",
    "errorType",
    "errorMessage",
    "stackTrace",
)


class ErrorReport(BaseModel):
    """
    Immutable description of a single failure.

    Serialized as one flat JSON document: the base keys followed by every
    entry of ``additional_context``.

    Attributes:
        timestamp: Local time the failure was detected
        file_key: Object key (or record key) the failure originates from
        event_type: Event classification of the job
        error_kind: Taxonomy entry (retrieval, decode, persistence, ...)
        error_type: Qualified class name of the failure
        error_message: Human-readable message
        stack_trace: Formatted traceback
        additional_context: Extra fields such as recordNumber or isUpdate
    """

    timestamp: datetime = Field(default_factory=datetime.now)
    file_key: str
    event_type: str
    error_kind: str
    error_type: str
    error_message: str
    stack_trace: str = ""
    additional_context: dict[str, ContextValue] = Field(default_factory=dict)

    @field_validator("additional_context")
    @classmethod
    def check_reserved_keys(cls, v):
        """Context keys must not shadow the base report keys."""
        clashes = sorted(set(v) & set(BASE_KEYS))
        if clashes:
            raise ValueError(f"additional_context uses reserved keys: {clashes}")
        return v

    @classmethod
    def from_exception(
        cls,
        file_key: str,
        event_type: str,
        error: BaseException,
        additional_context: dict[str, ContextValue] | None = None,
    ) -> "ErrorReport":
        """
        Build a report from an exception.

        Tagged pipeline errors contribute their kind, the class name of their
        cause and their own context; explicit ``additional_context`` wins on
        key conflicts.
        """
        context: dict[str, ContextValue] = {}
        if isinstance(error, PipelineError):
            kind = error.kind
            error_type = error.error_type
            context.update(error.context)
        else:
            kind = "unexpected"
            error_type = qualified_name(error)
        context.update(additional_context or {})

        return cls(
            file_key=file_key,
            event_type=event_type,
            error_kind=kind,
            error_type=error_type,
            error_message=str(error),
            stack_trace="".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            additional_context=context,
        )

    def to_document(self) -> dict[str, Any]:
        """Flatten into the JSON document layout."""
        document: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "fileKey": self.file_key,
            "eventType": self.event_type,
            "errorKind": self.error_kind,
            "errorType": self.error_type,
            "errorMessage": self.error_message,
            "stackTrace": self.stack_trace,
        }
        document.update(self.additional_context)
        return document

    class Config:
        frozen = True
