"""
csv-loader: loads a CSV object from S3 into the csv_records table.
"""

__version__ = "0.1.0"
