"""
Core data models for the CSV loader.

All models use Pydantic for runtime validation and type safety.
"""

from .decode_failure import DecodeFailure
from .error_report import ErrorReport
from .job import JobResult, JobState
from .record import Record
from .write_result import WriteMode, WriteResult

__all__ = [
    "Record",
    "DecodeFailure",
    "ErrorReport",
    "WriteMode",
    "WriteResult",
    "JobState",
    "JobResult",
]
