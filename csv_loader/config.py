"""
Configuration for a csv-loader job.

Settings come from environment variables, optionally seeded from a .env file,
with command-line values taking precedence. Everything is validated up front so
a job never starts with a half-usable configuration.
"""

import os
from typing import Literal, Mapping

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError

from csv_loader.core.errors import ConfigurationError

REQUIRED_VARIABLES = ("S3_BUCKET_NAME", "FILE_KEY", "AWS_REGION", "EVENT_TYPE", "DB_PASSWORD")


class JobSettings(BaseModel):
    """
    Trigger parameters of one job invocation.

    Attributes:
        bucket_name: Bucket holding the source file (and the error reports)
        file_key: Key of the source CSV object
        region: AWS region of the bucket
        event_type: Object-store event classification, e.g. "ObjectCreated:Put"
        error_reports_prefix: Key prefix for error reports
    """

    bucket_name: str = Field(..., min_length=1)
    file_key: str = Field(..., min_length=1)
    region: str = Field(..., min_length=1)
    event_type: str = Field(..., min_length=1)
    error_reports_prefix: str = "error-reports"


class DatabaseSettings(BaseModel):
    """Connection and pool settings for the target database."""

    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    name: str = "csvloader"
    user: str = "loader"
    password: str = Field(..., min_length=1)
    pool_min_size: int = Field(5, ge=1)
    pool_max_size: int = Field(10, ge=1)
    pool_timeout: float = Field(30.0, gt=0)
    table_name: str = "csv_records"


class PipelineSettings(BaseModel):
    """
    Tuning knobs of the pipeline itself.

    Attributes:
        chunk_size: Records per database commit
        error_report_unique_keys: Append a random suffix to report keys
        error_report_row_limit: Max per-row decode reports uploaded per run
    """

    chunk_size: int = Field(1000, ge=1)
    error_report_unique_keys: bool = True
    error_report_row_limit: int = Field(100, ge=0)


class Settings(BaseModel):
    """Complete settings of one job invocation."""

    job: JobSettings
    database: DatabaseSettings
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    metrics_pushgateway: str | None = None


def _pick(source: Mapping[str, str], mapping: dict[str, str]) -> dict[str, str]:
    """Select the variables that are set (non-empty) and rename them to field names."""
    return {
        field: source[variable]
        for variable, field in mapping.items()
        if source.get(variable) not in (None, "")
    }


def load_settings(
    overrides: Mapping[str, str | None] | None = None,
    env_file: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load and validate settings.

    Precedence: ``overrides`` (command line) > ``environ`` > ``env_file``.

    Args:
        overrides: Values keyed by environment variable name; None entries are ignored
        env_file: Optional .env file path
        environ: Environment to read (default: os.environ)

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If required variables are missing or values are invalid
    """
    source: dict[str, str] = {}
    if env_file:
        source.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    source.update(os.environ if environ is None else environ)
    source.update({k: v for k, v in (overrides or {}).items() if v is not None})

    missing = [name for name in REQUIRED_VARIABLES if not source.get(name)]
    if missing:
        raise ConfigurationError(
            f"Required environment variables are missing: {', '.join(missing)}",
            missing=missing,
        )

    try:
        return Settings(
            job=JobSettings(**_pick(source, {
                "S3_BUCKET_NAME": "bucket_name",
                "FILE_KEY": "file_key",
                "AWS_REGION": "region",
                "EVENT_TYPE": "event_type",
                "ERROR_REPORTS_PREFIX": "error_reports_prefix",
            })),
            database=DatabaseSettings(**_pick(source, {
                "DB_HOST": "host",
                "DB_PORT": "port",
                "DB_NAME": "name",
                "DB_USER": "user",
                "DB_PASSWORD": "password",
                "DB_POOL_MIN_SIZE": "pool_min_size",
                "DB_POOL_MAX_SIZE": "pool_max_size",
                "DB_POOL_TIMEOUT": "pool_timeout",
                "TABLE_NAME": "table_name",
            })),
            pipeline=PipelineSettings(**_pick(source, {
                "CHUNK_SIZE": "chunk_size",
                "ERROR_REPORT_UNIQUE_KEYS": "error_report_unique_keys",
                "ERROR_REPORT_ROW_LIMIT": "error_report_row_limit",
            })),
            **_pick(source, {
                "LOG_LEVEL": "log_level",
                "LOG_FORMAT": "log_format",
                "METRICS_PUSHGATEWAY": "metrics_pushgateway",
            }),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
