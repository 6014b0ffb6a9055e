import argparse
import logging
import os
import sys
from datetime import date
from logging.config import dictConfig
from typing import Sequence

from core import settings
from bronze_ingest.config_store import ConfigStore, DuckDBConfigStore, YamlConfigStore
from bronze_ingest.data_access import ArrowDataAccess
from bronze_ingest.dispatcher import DispatchConfig, Dispatcher
from bronze_ingest.domain import RunContext, RunReport
from bronze_ingest.errors import ConfigurationError
from bronze_ingest.ledger_store import RunLedgerStore
from bronze_ingest.secret_store import EnvSecretStore, load_storage_credentials

logger = logging.getLogger(__name__)

EXIT_CONFIGURATION_ERROR = 2


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bronze-ingest",
        description="Metadata-driven bronze ingestion: load every configured source for one processing date.",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Processing date (YYYY-MM-DD). Defaults to yesterday.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--config-dir", default=None, help="Directory of YAML config records.")
    source.add_argument("--config-db", default=None, help="DuckDB database holding the config table.")
    parser.add_argument("--config-table", default="ingestion_config", help="Config table name for --config-db.")
    parser.add_argument("--workers", type=positive_int, default=settings.MAX_PARALLEL_RECORDS, help="Records processed in parallel.")
    parser.add_argument("--max-attempts", type=positive_int, default=settings.MAX_ATTEMPTS)
    parser.add_argument("--record-timeout", type=float, default=settings.RECORD_TIMEOUT_SECONDS)
    parser.add_argument("--ledger-db", default=settings.LEDGER_DB_PATH, help="DuckDB file for the run ledger.")
    parser.add_argument("--run-id", default=None)
    return parser


def build_config_store(args: argparse.Namespace) -> ConfigStore:
    if args.config_db:
        return DuckDBConfigStore(args.config_db, table=args.config_table)
    return YamlConfigStore(args.config_dir or settings.CONFIG_BASE_DIRECTORY_PATH)


def run(args: argparse.Namespace, *, today: date | None = None) -> RunReport:
    """Single entry point for the scheduler: one run for one processing date."""
    if args.date is None:
        ctx = RunContext.yesterday_of(today or date.today(), run_id=args.run_id)
    elif args.run_id is None:
        ctx = RunContext(processing_date=args.date)
    else:
        ctx = RunContext(processing_date=args.date, run_id=args.run_id)

    records = build_config_store(args).read_all()
    credentials = load_storage_credentials(EnvSecretStore())

    dispatcher = Dispatcher(
        data_access=ArrowDataAccess(credentials=credentials),
        config=DispatchConfig(
            max_parallel_records=args.workers,
            max_attempts=args.max_attempts,
            record_timeout_seconds=args.record_timeout,
        ),
    )
    report = dispatcher.run(records, ctx)

    if args.ledger_db:
        with RunLedgerStore(duckdb_path=args.ledger_db) as ledger:
            ledger.record_run(report)
            for failure in report.failures:
                last_good = ledger.last_successful_date(failure.system_name)
                logger.warning(
                    "[%s] Last successful load: %s",
                    failure.system_name, last_good.isoformat() if last_good else "never",
                )

    return report


def run_cli(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        report = run(args)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIGURATION_ERROR

    print(report.summary())
    return report.exit_code


def configure_logging() -> None:
    os.makedirs(settings.LOG_FOLDER, exist_ok=True)
    dictConfig(settings.LOGGING_CONFIG)


def main() -> None:
    configure_logging()
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
