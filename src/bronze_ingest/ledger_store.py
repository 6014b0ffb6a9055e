import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone

import duckdb

from core import settings
from bronze_ingest.domain import RunReport

logger = logging.getLogger(__name__)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RunLedgerStore:
    """
    Audit trail of dispatcher runs backed by DuckDB.

    One row per record per run; the destination itself stays the source of
    truth, the ledger only answers "what happened when".

    Tables:
      run_outcomes
    """

    def __init__(self, *, duckdb_path: str, table: str = settings.TABLE_RUN_OUTCOMES, auto_bootstrap: bool = True):
        self._duckdb_path = duckdb_path
        self._table = table
        self._auto_bootstrap = auto_bootstrap

        self._connection: duckdb.DuckDBPyConnection | None = None

    def __enter__(self) -> "RunLedgerStore":
        if self._connection is not None:
            raise RuntimeError("Ledger connection already open")

        self._connection = duckdb.connect(self._duckdb_path)
        if self._auto_bootstrap:
            self._bootstrap()

        logger.debug("Ledger connected. duckdb=%s", self._duckdb_path)
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None

    def _require_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            raise RuntimeError("Ledger is not connected; use it as a context manager")
        return self._connection

    # ----------------------------
    # Public API
    # ----------------------------
    def record_run(self, report: RunReport) -> None:
        if not report.outcomes:
            return

        conn = self._require_connection()
        now = utc_now_naive()

        rows = [
            (
                report.run_id,
                report.processing_date,
                o.system_name,
                o.status.value,
                o.source_path,
                o.destination_path,
                o.row_count,
                o.attempts,
                o.error_kind,
                o.error_message,
                now,
            )
            for o in report.outcomes
        ]

        with self.transaction(conn) as tx:
            tx.executemany(
                f"""
                INSERT INTO {self._table}
                (run_id, processing_date, system_name, status, source_path, destination_path,
                 row_count, attempts, error_kind, error_message, recorded_at_utc)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )

        logger.info("Recorded %s outcomes for run %s", len(rows), report.run_id)

    def last_successful_date(self, system_name: str) -> date | None:
        conn = self._require_connection()
        row = conn.execute(
            f"SELECT MAX(processing_date) FROM {self._table} WHERE system_name = ? AND status = 'succeeded'",
            [system_name],
        ).fetchone()
        return row[0] if row else None

    # ----------------------------
    # Bootstrap / helpers
    # ----------------------------
    def _bootstrap(self) -> None:
        conn = self._require_connection()
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
              run_id              VARCHAR   NOT NULL,
              processing_date     DATE      NOT NULL,
              system_name         VARCHAR   NOT NULL,
              status              VARCHAR   NOT NULL,
              source_path         VARCHAR,
              destination_path    VARCHAR,
              row_count           BIGINT,
              attempts            INTEGER   NOT NULL,
              error_kind          VARCHAR,
              error_message       VARCHAR,
              recorded_at_utc     TIMESTAMP NOT NULL
            );
            """
        )

    @contextmanager
    def transaction(self, conn: duckdb.DuckDBPyConnection):
        conn.execute("BEGIN TRANSACTION")
        try:
            yield conn
        except Exception:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
