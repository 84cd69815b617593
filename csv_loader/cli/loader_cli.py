"""
Command-line interface for loading one CSV object.

Usage:
    python -m csv_loader.cli.loader_cli run [options]

Every option falls back to its environment variable (S3_BUCKET_NAME,
FILE_KEY, AWS_REGION, EVENT_TYPE, ERROR_REPORTS_PREFIX, DB_*, CHUNK_SIZE, ...).
"""

import argparse
import sys

from csv_loader.batch.pipeline import BatchPipeline
from csv_loader.config import load_settings
from csv_loader.context import PipelineContext
from csv_loader.core.errors import ConfigurationError, PipelineError
from csv_loader.observability import metrics
from csv_loader.observability.logger import get_logger, setup_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_JOB_FAILED = 1
EXIT_CONFIG_ERROR = 2

# argparse destination -> environment variable name
OPTION_VARIABLES = {
    "bucket": "S3_BUCKET_NAME",
    "key": "FILE_KEY",
    "region": "AWS_REGION",
    "event_type": "EVENT_TYPE",
    "error_reports_prefix": "ERROR_REPORTS_PREFIX",
    "chunk_size": "CHUNK_SIZE",
    "db_host": "DB_HOST",
    "db_port": "DB_PORT",
    "db_name": "DB_NAME",
    "db_user": "DB_USER",
    "db_password": "DB_PASSWORD",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}


def run_command(args, store=None) -> int:
    """
    Execute one load job.

    Args:
        args: Command-line arguments
        store: Blob store override (tests)

    Returns:
        Process exit code
    """
    overrides = {
        variable: None if getattr(args, option) is None else str(getattr(args, option))
        for option, variable in OPTION_VARIABLES.items()
    }

    try:
        settings = load_settings(overrides=overrides, env_file=args.env_file)
    except ConfigurationError as e:
        setup_logger(level=args.log_level or "INFO", format_type=args.log_format or "json")
        logger.error(e.message)
        return EXIT_CONFIG_ERROR

    setup_logger(level=settings.log_level, format_type=settings.log_format)
    context = None

    try:
        context = PipelineContext.from_settings(settings, store=store)
        result = BatchPipeline(context).process(settings.job)
    except PipelineError as e:
        logger.error(f"Job failed ({e.kind}): {e.message}")
        return EXIT_JOB_FAILED
    except Exception as e:
        logger.error(f"Job failed unexpectedly: {e}", exc_info=True)
        return EXIT_JOB_FAILED
    finally:
        if context is not None:
            context.close()
        if settings.metrics_pushgateway:
            try:
                metrics.push_metrics(settings.metrics_pushgateway)
            except Exception as e:
                logger.warning(f"Failed to push metrics to {settings.metrics_pushgateway}: {e}")

    logger.info("=" * 60)
    logger.info("PROCESSING COMPLETE")
    logger.info("=" * 60)
    logger.info(f"File: {result.file_key} ({result.processing_type}, {result.mode.value})")
    logger.info(f"Records decoded: {result.records_decoded}")
    logger.info(f"Rows committed: {result.rows_committed}")
    logger.info("=" * 60)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Load a CSV object from S3 into the csv_records table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Driven entirely by environment variables (container / scheduler use)
  python -m csv_loader.cli.loader_cli run

  # Explicit job parameters
  python -m csv_loader.cli.loader_cli run --bucket incoming --key data/2024-01-02.csv \\
      --region eu-west-1 --event-type ObjectCreated:Put

  # Local run with a .env file and readable logs
  python -m csv_loader.cli.loader_cli run --env-file .env --log-format text
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Load one CSV object")
    run_parser.add_argument("--bucket", help="Source bucket (S3_BUCKET_NAME)")
    run_parser.add_argument("--key", help="Source object key (FILE_KEY)")
    run_parser.add_argument("--region", help="AWS region (AWS_REGION)")
    run_parser.add_argument(
        "--event-type",
        help="Event classification, e.g. ObjectCreated:Put or ObjectModified:Put (EVENT_TYPE)"
    )
    run_parser.add_argument(
        "--error-reports-prefix",
        help="Key prefix for error reports (ERROR_REPORTS_PREFIX, default: error-reports)"
    )
    run_parser.add_argument(
        "--chunk-size",
        type=int,
        help="Records per database commit (CHUNK_SIZE, default: 1000)"
    )
    run_parser.add_argument("--env-file", help="Read variables from this .env file first")

    # Database connection arguments
    run_parser.add_argument("--db-host", help="Database host (DB_HOST, default: localhost)")
    run_parser.add_argument("--db-port", type=int, help="Database port (DB_PORT, default: 5432)")
    run_parser.add_argument("--db-name", help="Database name (DB_NAME, default: csvloader)")
    run_parser.add_argument("--db-user", help="Database user (DB_USER, default: loader)")
    run_parser.add_argument("--db-password", help="Database password (DB_PASSWORD)")

    run_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (LOG_LEVEL, default: INFO)"
    )
    run_parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Log format (LOG_FORMAT, default: json)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_CONFIG_ERROR

    if args.command == "run":
        return run_command(args)

    return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main())
