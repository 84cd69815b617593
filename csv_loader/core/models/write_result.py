"""
WriteMode and WriteResult models for the batch writer (ephemeral).
"""

from enum import Enum

from pydantic import BaseModel, Field

from csv_loader.core.errors import PersistenceError


class WriteMode(str, Enum):
    """Persistence strategy selected by the event classification."""

    INSERT = "insert"
    UPDATE = "update"

    @property
    def is_update(self) -> bool:
        return self is WriteMode.UPDATE


class WriteResult(BaseModel):
    """
    Outcome of one batch write.

    Attributes:
        mode: Insert or update
        records_submitted: Records handed to the database (including the failing chunk)
        rows_committed: Records in committed chunks
        chunks_committed: Number of committed chunks
        error: Failure that stopped the write, if any
    """

    mode: WriteMode
    records_submitted: int = Field(0, ge=0)
    rows_committed: int = Field(0, ge=0)
    chunks_committed: int = Field(0, ge=0)
    error: PersistenceError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    class Config:
        arbitrary_types_allowed = True
