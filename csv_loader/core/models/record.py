"""
Record model representing one validated row of the source CSV file.
"""

import math
import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# strptime alone accepts single-digit fields ("2024-1-2 3:4:5"), so the shape
# is checked first.
_TIMESTAMP_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")
_DECIMAL_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_amount(value: Any) -> float:
    """
    Parse an amount into a finite float.

    Args:
        value: Raw field value (str) or an already numeric value

    Returns:
        The parsed float, bit-for-bit what float() yields for the text

    Raises:
        ValueError: If the value is not a finite decimal number
    """
    if isinstance(value, bool):
        raise ValueError(f"amount must be a decimal number, got {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not _DECIMAL_PATTERN.fullmatch(value):
            raise ValueError(f"amount is not a valid decimal number: {value!r}")
        number = float(value)
    else:
        raise ValueError(f"amount must be a decimal number, got {type(value).__name__}")

    if not math.isfinite(number):
        raise ValueError(f"amount is out of range: {value!r}")
    return number


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp in the fixed "yyyy-MM-dd HH:mm:ss" pattern.

    The result is naive; no timezone is attached or converted.

    Raises:
        ValueError: If the text does not match the pattern or is not a real date
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            raise ValueError("timestamp must not carry a timezone")
        return value
    if not isinstance(value, str) or not _TIMESTAMP_PATTERN.fullmatch(value):
        raise ValueError(
            f"timestamp does not match pattern yyyy-MM-dd HH:mm:ss: {value!r}"
        )
    return datetime.strptime(value, TIMESTAMP_FORMAT)


class Record(BaseModel):
    """
    One ingested row. Either every field parsed or the record does not exist.

    Attributes:
        id: Business key, used as the update key in update mode
        name: Display name
        description: Free text, may be empty
        amount: 64-bit float parsed from the source field
        timestamp: Naive date-time parsed from "yyyy-MM-dd HH:mm:ss"
        status: Status label
    """

    id: str = Field(..., min_length=1)
    name: str
    description: str
    amount: float
    timestamp: datetime
    status: str

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v):
        """Reject anything that is not a finite decimal number."""
        return parse_amount(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def check_timestamp(cls, v):
        """Parse the fixed timestamp pattern strictly."""
        return parse_timestamp(v)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "A1",
                "name": "Widget",
                "description": "",
                "amount": 12.5,
                "timestamp": "2024-01-02 03:04:05",
                "status": "OK",
            }
        }
