"""
Local file reader feeding the CSV decoder.
"""

from pathlib import Path
from typing import Iterator

from .csv_reader import CSVReader, DecodeResult


class FileReader:
    """
    Opens a downloaded file and streams it through the CSV reader.
    """

    def __init__(self, csv_reader: CSVReader | None = None, encoding: str = "utf-8-sig"):
        """
        Initialize file reader.

        Args:
            csv_reader: Decoder to use (default: comma-delimited CSVReader)
            encoding: Text encoding; utf-8-sig drops a leading byte-order mark
        """
        self.csv_reader = csv_reader or CSVReader()
        self.encoding = encoding

    def read(self, file_path: str | Path) -> Iterator[DecodeResult]:
        """
        Decode a local CSV file.

        The file stays open while the iterator is consumed and is closed when
        it is exhausted or closed.

        Args:
            file_path: Path to the CSV file

        Yields:
            Record or DecodeFailure, one per data row
        """
        with open(file_path, "r", encoding=self.encoding, newline="") as stream:
            yield from self.csv_reader.read(stream)
