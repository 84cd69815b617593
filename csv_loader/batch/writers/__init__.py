"""
Batch data sink writers.
"""

from .record_writer import DEFAULT_CHUNK_SIZE, BatchRecordWriter

__all__ = [
    "BatchRecordWriter",
    "DEFAULT_CHUNK_SIZE",
]
