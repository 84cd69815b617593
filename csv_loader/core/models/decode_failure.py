"""
DecodeFailure model representing a CSV row that could not become a Record.
"""

from pydantic import BaseModel, Field


class DecodeFailure(BaseModel):
    """
    A row that failed field parsing (ephemeral, never persisted).

    Attributes:
        record_number: 1-based data row number (header excluded)
        line_number: Physical line in the file where the row ended
        raw_fields: Trimmed field values keyed by lower-cased header name
        error: The exception raised while building the record
    """

    record_number: int = Field(..., ge=1)
    line_number: int = Field(..., ge=1)
    raw_fields: dict[str, str | None]
    error: Exception

    @property
    def error_message(self) -> str:
        return str(self.error)

    class Config:
        frozen = True
        arbitrary_types_allowed = True
