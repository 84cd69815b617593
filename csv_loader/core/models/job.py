"""
Job state and result models for the pipeline orchestrator.
"""

from enum import Enum

from pydantic import BaseModel

from .write_result import WriteMode


class JobState(str, Enum):
    """Orchestrator states. DONE and FAILED are terminal."""

    IDLE = "idle"
    RETRIEVING = "retrieving"
    DECODING = "decoding"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


class JobResult(BaseModel):
    """
    Summary of a successful job run.

    Attributes:
        file_key: Processed object key
        state: Final state (always DONE for a returned result)
        mode: Insert or update
        processing_type: newFile, fileUpdate or default
        records_decoded: Rows turned into records
        rows_committed: Rows committed to the database
    """

    file_key: str
    state: JobState
    mode: WriteMode
    processing_type: str
    records_decoded: int
    rows_committed: int

    class Config:
        json_schema_extra = {
            "example": {
                "file_key": "incoming/2024-01-02.csv",
                "state": "done",
                "mode": "insert",
                "processing_type": "newFile",
                "records_decoded": 2500,
                "rows_committed": 2500,
            }
        }
