from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Sequence

from core import settings
from bronze_ingest.config_record import ConfigRecord
from bronze_ingest.config_store import ensure_unique_system_names
from bronze_ingest.data_access import DataAccess, ReadOptions
from bronze_ingest.domain import IngestOutcome, RunContext, RunReport
from bronze_ingest.errors import IngestionError, RecordTimeoutError, UnsupportedSourceError
from bronze_ingest.resolver import TargetColumn, build_target_schema, resolve_source_path
from bronze_ingest.transform import apply_target_schema

logger = logging.getLogger(__name__)

SUPPORTED_SOURCE_SYSTEMS = frozenset({"csv"})


@dataclass(frozen=True)
class DispatchConfig:
    max_parallel_records: int = settings.MAX_PARALLEL_RECORDS
    max_attempts: int = settings.MAX_ATTEMPTS
    retry_backoff_seconds: float = settings.RETRY_BACKOFF_SECONDS
    record_timeout_seconds: float | None = settings.RECORD_TIMEOUT_SECONDS
    default_storage_scheme: str = settings.DEFAULT_STORAGE_SCHEME
    poll_interval_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.max_parallel_records < 1:
            raise ValueError("max_parallel_records must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


class Dispatcher:
    """
    Coordinates: resolve -> read -> transform -> write, once per config record.

    Records are independent. Every failure is caught at the record boundary
    and reported; nothing a single record does can abort the run.
    """

    def __init__(self, *, data_access: DataAccess, config: DispatchConfig | None = None):
        self.data_access = data_access
        self.config = config or DispatchConfig()

    def ingest_one(
        self,
        record: ConfigRecord,
        ctx: RunContext,
        abandoned: threading.Event | None = None,
    ) -> IngestOutcome:
        """
        Ingests one record and reports the outcome; never raises.

        `abandoned` is set by `run` once the record is past its timeout. It is
        checked between attempts and right before the destination is written,
        so an abandoned record leaves its destination untouched.
        """
        destination_path = record.destination_spec.destination_path
        source_path: str | None = None
        attempts = 0

        try:
            if record.source_system.strip().lower() not in SUPPORTED_SOURCE_SYSTEMS:
                raise UnsupportedSourceError(
                    f"Unsupported source_system '{record.source_system}'. Supported: {sorted(SUPPORTED_SOURCE_SYSTEMS)}"
                )

            source_path = resolve_source_path(record, ctx, self.config.default_storage_scheme)
            schema = build_target_schema(record)
            options = ReadOptions(
                header=record.source_spec.header,
                delimiter=record.source_spec.delimiter,
                encoding=record.source_spec.encoding,
            )

            logger.info("[%s] Ingesting %s -> %s", record.system_name, source_path, destination_path)

            while True:
                attempts += 1
                try:
                    row_count = self._load(source_path, schema, options, destination_path, abandoned)
                    break
                except IngestionError as e:
                    if not e.retryable or attempts >= self.config.max_attempts:
                        raise
                    delay = self.config.retry_backoff_seconds * attempts
                    logger.warning(
                        "[%s] Attempt %s/%s failed with %s: %s. Retrying in %.1fs",
                        record.system_name, attempts, self.config.max_attempts, e.kind, e, delay,
                    )
                    time.sleep(delay)

        except IngestionError as e:
            logger.error("[%s] Failed with %s: %s", record.system_name, e.kind, e)
            return IngestOutcome.failed(
                record.system_name,
                error_kind=e.kind,
                error_message=str(e),
                source_path=source_path,
                destination_path=destination_path,
                attempts=attempts,
            )
        except Exception as e:
            logger.exception("[%s] Unexpected failure", record.system_name)
            return IngestOutcome.failed(
                record.system_name,
                error_kind=type(e).__name__,
                error_message=str(e),
                source_path=source_path,
                destination_path=destination_path,
                attempts=attempts,
            )

        logger.info("[%s] Wrote %s rows to %s", record.system_name, row_count, destination_path)
        return IngestOutcome.succeeded(
            record.system_name,
            source_path=source_path,
            destination_path=destination_path,
            row_count=row_count,
            attempts=attempts,
        )

    def _load(
        self,
        source_path: str,
        schema: Sequence[TargetColumn],
        options: ReadOptions,
        destination_path: str,
        abandoned: threading.Event | None = None,
    ) -> int:
        _raise_if_abandoned(abandoned)
        raw = self.data_access.read_table(source_path, options)
        table = apply_target_schema(raw, schema)
        _raise_if_abandoned(abandoned)
        self.data_access.write_table(table, destination_path)
        return table.num_rows

    def run(
        self,
        records: Sequence[ConfigRecord],
        ctx: RunContext,
        cancel_event: threading.Event | None = None,
    ) -> RunReport:
        ensure_unique_system_names(records)
        cancel_event = cancel_event or threading.Event()
        timeout = self.config.record_timeout_seconds

        logger.info(
            "Run %s: dispatching %s records for %s (max_parallel=%s)",
            ctx.run_id, len(records), ctx.processing_date.isoformat(), self.config.max_parallel_records,
        )

        outcomes: dict[int, IngestOutcome] = {}
        pending: list[tuple[int, ConfigRecord]] = list(enumerate(records))
        in_flight: dict[Future[IngestOutcome], tuple[int, ConfigRecord, float, threading.Event]] = {}
        abandoned = False

        executor = ThreadPoolExecutor(max_workers=self.config.max_parallel_records, thread_name_prefix="ingest")
        try:
            while pending or in_flight:
                # Dispatch
                while pending and len(in_flight) < self.config.max_parallel_records and not cancel_event.is_set():
                    index, record = pending.pop(0)
                    abandon = threading.Event()
                    fut = executor.submit(self.ingest_one, record, ctx, abandon)
                    in_flight[fut] = (index, record, time.monotonic(), abandon)

                if cancel_event.is_set() and pending:
                    logger.warning("Run %s cancelled; skipping %s undispatched records.", ctx.run_id, len(pending))
                    for index, record in pending:
                        outcomes[index] = IngestOutcome.skipped(record.system_name, "Run cancelled before dispatch")
                    pending.clear()

                if not in_flight:
                    break

                # Collect
                done, _ = wait(in_flight.keys(), timeout=self.config.poll_interval_seconds, return_when=FIRST_COMPLETED)
                for fut in done:
                    index, record, _, _ = in_flight.pop(fut)
                    try:
                        outcomes[index] = fut.result()
                    except Exception as e:
                        logger.exception("[%s] Worker failed", record.system_name)
                        outcomes[index] = IngestOutcome.failed(
                            record.system_name, error_kind=type(e).__name__, error_message=str(e)
                        )

                # Abandon overdue records. Their threads cannot be interrupted, but they
                # stop before writing once the abandon event is set.
                if timeout is not None:
                    now = time.monotonic()
                    for fut, (index, record, started, abandon) in list(in_flight.items()):
                        if now - started <= timeout:
                            continue
                        in_flight.pop(fut)
                        abandon.set()
                        fut.cancel()
                        abandoned = True
                        error = RecordTimeoutError(f"Record did not finish within {timeout}s")
                        logger.error("[%s] %s", record.system_name, error)
                        outcomes[index] = IngestOutcome.failed(
                            record.system_name,
                            error_kind=error.kind,
                            error_message=str(error),
                            destination_path=record.destination_spec.destination_path,
                        )
        finally:
            executor.shutdown(wait=not abandoned, cancel_futures=True)

        report = RunReport(
            run_id=ctx.run_id,
            processing_date=ctx.processing_date,
            outcomes=tuple(outcomes[i] for i in range(len(records))),
        )

        if report.ok:
            logger.info(report.summary())
        else:
            logger.error(report.summary())
        return report


def _raise_if_abandoned(abandoned: threading.Event | None) -> None:
    if abandoned is not None and abandoned.is_set():
        raise RecordTimeoutError("Record was abandoned after its timeout; destination left untouched")
