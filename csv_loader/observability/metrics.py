"""
Prometheus metrics collection for csv-loader

This module provides metrics instrumentation for monitoring decode
quality, database writes and error reporting of each job run. A batch job
does not live long enough to be scraped, so the registry can be pushed to a
Pushgateway when the run ends.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    push_to_gateway,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# DECODE METRICS
# =======================

records_decoded_total = Counter(
    name="csv_loader_records_decoded_total",
    documentation="Total number of CSV rows decoded into records",
    registry=REGISTRY,
)

decode_failures_total = Counter(
    name="csv_loader_decode_failures_total",
    documentation="Total number of CSV rows that failed to decode",
    registry=REGISTRY,
)

# =======================
# DATABASE METRICS
# =======================

rows_committed_total = Counter(
    name="csv_loader_rows_committed_total",
    documentation="Total number of rows committed to the records table",
    labelnames=["mode"],  # mode: insert, update
    registry=REGISTRY,
)

chunks_total = Counter(
    name="csv_loader_chunks_total",
    documentation="Total number of chunks executed",
    labelnames=["mode", "status"],  # status: success, failure
    registry=REGISTRY,
)

# =======================
# JOB METRICS
# =======================

error_reports_total = Counter(
    name="csv_loader_error_reports_total",
    documentation="Total number of error reports handed to the sink",
    labelnames=["outcome"],  # outcome: delivered, failed, suppressed
    registry=REGISTRY,
)

job_duration_seconds = Histogram(
    name="csv_loader_job_duration_seconds",
    documentation="Wall-clock duration of a job run in seconds",
    labelnames=["outcome"],  # outcome: success, failure
    buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def push_metrics(gateway: str, job: str = "csv-loader") -> None:
    """
    Push the registry to a Prometheus Pushgateway

    Args:
        gateway: Pushgateway address (host:port or URL)
        job: Job label
    """
    push_to_gateway(gateway, job=job, registry=REGISTRY)


def record_decode(records: int, failures: int) -> None:
    """Record the outcome of decoding one file."""
    if records:
        records_decoded_total.inc(records)
    if failures:
        decode_failures_total.inc(failures)


def record_chunk(mode: str, status: str, rows: int = 0) -> None:
    """
    Record one executed chunk.

    Args:
        mode: insert or update
        status: success or failure
        rows: Rows committed by the chunk
    """
    chunks_total.labels(mode=mode, status=status).inc()
    if rows:
        rows_committed_total.labels(mode=mode).inc(rows)


def record_error_report(outcome: str) -> None:
    """Record an error report outcome (delivered, failed, suppressed)."""
    error_reports_total.labels(outcome=outcome).inc()


def observe_job(outcome: str, duration_seconds: float) -> None:
    """Record the duration of a finished job."""
    job_duration_seconds.labels(outcome=outcome).observe(duration_seconds)
