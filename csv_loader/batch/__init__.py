"""
Batch processing module: CSV decoding, chunked persistence and orchestration.
"""

from .readers import CSVReader, FileReader
from .writers import BatchRecordWriter
from .pipeline import BatchPipeline, classify_event

__all__ = [
    "BatchPipeline",
    "classify_event",
    "CSVReader",
    "FileReader",
    "BatchRecordWriter",
]
