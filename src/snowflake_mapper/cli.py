"""
Command line entry point for snowflake-mapper.
"""

import argparse
import sys
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv
from loguru import logger

from .config import DEFAULT_CONFIG_PATH, LoggingConfig, load_config_file, load_settings
from .connection import SnowflakeConnection
from .errors import ConfigurationError, HarvestError
from .pipeline import ConnectionFactory, HarvestPipeline, HarvestResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snowflake-mapper",
        description="Fetch Snowflake warehouse, database and table metadata into a JSON tree.",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML configuration file")
    parser.add_argument("-o", "--output-dir", help="Output directory for the JSON files")
    parser.add_argument(
        "-d", "--databases",
        help="Comma-separated databases to process. All accessible databases when omitted",
    )
    parser.add_argument("--max-workers", type=int, help="Databases extracted in parallel")
    parser.add_argument(
        "--no-columns", dest="include_columns", action="store_false", default=None,
        help="Skip column metadata",
    )
    parser.add_argument(
        "--skip-failed-writes", action="store_true", default=None,
        help="Log and skip tables whose file cannot be written",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose diagnostic output")
    return parser


def print_summary(result: HarvestResult) -> None:
    print("\n" + "=" * 60)
    print("SNOWFLAKE METADATA HARVEST SUMMARY")
    print("=" * 60)
    print(f"Warehouses: {result.warehouse_count}")
    print(f"Databases: {result.database_count}")
    print(f"Tables: {len(result)}")
    print(f"Columns: {sum(len(t.columns) for t in result)}")
    if result.failed_databases:
        print(f"Failed databases: {', '.join(result.failed_databases)}")
    print("=" * 60)


def main(
    argv: Optional[List[str]] = None,
    connection_factory: ConnectionFactory = SnowflakeConnection,
) -> int:
    """Run one harvest and return the process exit status."""
    args = build_parser().parse_args(argv)

    load_dotenv(find_dotenv(usecwd=True))
    config = load_config_file(args.config)
    logging_config = LoggingConfig.from_config(config, debug=args.debug)

    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        if e.missing:
            logger.error(f"Missing required environment variables: {', '.join(e.missing)}")
        for problem in e.invalid:
            logger.error(f"Invalid configuration: {problem}")
        return 1

    settings = settings.with_overrides(
        output_dir=args.output_dir,
        databases=tuple(n.strip() for n in args.databases.split(',') if n.strip()) if args.databases else None,
        max_workers=args.max_workers,
        include_columns=args.include_columns,
        skip_failed_writes=args.skip_failed_writes,
    )
    if settings.max_workers < 1:
        logger.error("--max-workers must be >= 1")
        return 1

    try:
        pipeline = HarvestPipeline(settings, logging_config, connection_factory=connection_factory)
        result = pipeline.run()
    except HarvestError as e:
        logger.error(f"Error: {str(e)}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {str(e)}")
        return 1

    print_summary(result)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
