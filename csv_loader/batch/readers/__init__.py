"""
Batch data source readers.
"""

from .csv_reader import CSVReader, DecodeResult
from .file_reader import FileReader

__all__ = [
    "CSVReader",
    "DecodeResult",
    "FileReader",
]
