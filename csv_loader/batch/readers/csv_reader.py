"""
CSV reader that decodes rows into validated Records.
"""

import csv
from typing import Iterator, TextIO, Union

from pydantic import ValidationError

from csv_loader.core.errors import DecodeError
from csv_loader.core.models import DecodeFailure, Record

DecodeResult = Union[Record, DecodeFailure]

REQUIRED_COLUMNS = ("id", "name", "description", "amount", "timestamp", "status")


class CSVReader:
    """
    Reads a header-first CSV stream into a lazy sequence of decode results.

    Each data row becomes either a Record or a DecodeFailure; a bad row never
    stops the rows after it. Results come out in input order.
    """

    def __init__(self, delimiter: str = ","):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
        """
        self.delimiter = delimiter

    def read(self, stream: TextIO) -> Iterator[DecodeResult]:
        """
        Decode a character stream.

        The first non-blank row is the header. Header names are trimmed and
        matched case-insensitively; field values are trimmed before parsing.
        Blank lines are skipped.

        Args:
            stream: Text stream opened with newline=""

        Yields:
            Record or DecodeFailure, one per data row

        Raises:
            DecodeError: If the stream itself is not parseable as CSV
        """
        reader = csv.reader(stream, delimiter=self.delimiter)
        header: list[str] | None = None
        record_number = 0

        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except (csv.Error, UnicodeDecodeError) as e:
                raise DecodeError(
                    f"Malformed CSV near line {reader.line_num}: {e}",
                    cause=e,
                    context={"lineNumber": reader.line_num},
                ) from e

            if not row:
                continue

            if header is None:
                header = [name.strip().lower() for name in row]
                continue

            record_number += 1
            yield self.decode_row(header, row, record_number, reader.line_num)

    def decode_row(
        self,
        header: list[str],
        row: list[str],
        record_number: int,
        line_number: int,
    ) -> DecodeResult:
        """
        Convert one raw row into a Record or a DecodeFailure.

        Args:
            header: Lower-cased header names
            row: Raw field values
            record_number: 1-based data row number
            line_number: Physical line where the row ended

        Returns:
            Record if every field parsed, otherwise DecodeFailure
        """
        values = [value.strip() for value in row]
        fields: dict[str, str | None] = {
            name: values[index] if index < len(values) else None
            for index, name in enumerate(header)
        }

        try:
            missing = [column for column in REQUIRED_COLUMNS if fields.get(column) is None]
            if missing:
                raise ValueError(f"Missing value for column(s): {', '.join(missing)}")

            return Record(**{column: fields[column] for column in REQUIRED_COLUMNS})
        except (ValidationError, ValueError) as e:
            return DecodeFailure(
                record_number=record_number,
                line_number=line_number,
                raw_fields=fields,
                error=e,
            )
