from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import duckdb
import pyarrow.parquet as pq
import pytest
import yaml

from bronze_ingest import cli
from bronze_ingest.domain import IngestOutcome, RunReport
from bronze_ingest.errors import SecretNotFoundError
from bronze_ingest.ledger_store import RunLedgerStore
from bronze_ingest.secret_store import EnvSecretStore, load_storage_credentials


def _ledger_rows(ledger_db: Path, run_id: str) -> list[tuple]:
    with duckdb.connect(str(ledger_db), read_only=True) as conn:
        return conn.execute(
            "SELECT system_name, status, row_count, error_kind FROM run_outcomes WHERE run_id = ? ORDER BY system_name",
            [run_id],
        ).fetchall()


def _write_config(directory: Path, landing_root: Path, bronze_root: Path, names: list[str]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    entries = [
        {
            "system_name": name,
            "source_system": "csv",
            "source_spec": {
                "source_bucket": landing_root.as_uri(),
                "source_prefix": name,
                "file_name_pattern": f"{name}_{{YYYY}}_{{MM}}_{{DD}}.csv",
                "columns": [{"column_name": "Agent_ID", "data_type": "integer"}],
            },
            "destination_spec": {"destination_path": str(bronze_root / name)},
        }
        for name in names
    ]
    (directory / "sources.yaml").write_text(yaml.safe_dump(entries), encoding="utf-8")


class TestEnvSecretStore:
    def test_variable_name(self):
        assert EnvSecretStore.variable_name("bronze-storage", "access_key") == "BRONZE_STORAGE_ACCESS_KEY"

    def test_reads_secret(self):
        store = EnvSecretStore({"VAULT_TOKEN": "s3cr3t"})
        assert store.get_secret("vault", "token") == "s3cr3t"

    def test_missing_secret(self):
        with pytest.raises(SecretNotFoundError, match="VAULT_TOKEN"):
            EnvSecretStore({}).get_secret("vault", "token")

    def test_storage_credentials(self):
        store = EnvSecretStore({"BRONZE_STORAGE_ACCESS_KEY": "AK", "BRONZE_STORAGE_SECRET_KEY": "SK"})
        credentials = load_storage_credentials(store, "bronze_storage")
        assert (credentials.access_key, credentials.secret_key) == ("AK", "SK")

    def test_storage_credentials_are_optional_unless_required(self):
        assert load_storage_credentials(EnvSecretStore({}), "bronze_storage") is None
        with pytest.raises(SecretNotFoundError):
            load_storage_credentials(EnvSecretStore({}), "bronze_storage", required=True)


class TestRunLedgerStore:
    def _report(self) -> RunReport:
        return RunReport(
            run_id="run-1",
            processing_date=date(2024, 5, 1),
            outcomes=(
                IngestOutcome.succeeded(
                    "agents", source_path="s3://l/a.csv", destination_path="s3://b/agents", row_count=3, attempts=1
                ),
                IngestOutcome.failed("brokers", error_kind="UnsupportedTypeError", error_message="bad", attempts=0),
            ),
        )

    def test_records_every_outcome(self, tmp_path):
        with RunLedgerStore(duckdb_path=str(tmp_path / "ledger.duckdb")) as ledger:
            ledger.record_run(self._report())

        assert _ledger_rows(tmp_path / "ledger.duckdb", "run-1") == [
            ("agents", "succeeded", 3, None),
            ("brokers", "failed", None, "UnsupportedTypeError"),
        ]

    def test_last_successful_date(self, tmp_path):
        with RunLedgerStore(duckdb_path=str(tmp_path / "ledger.duckdb")) as ledger:
            ledger.record_run(self._report())
            assert ledger.last_successful_date("agents") == date(2024, 5, 1)
            assert ledger.last_successful_date("brokers") is None

    def test_requires_context_manager(self, tmp_path):
        with pytest.raises(RuntimeError, match="not connected"):
            RunLedgerStore(duckdb_path=str(tmp_path / "ledger.duckdb")).record_run(self._report())


class TestCli:
    def test_successful_run_exits_zero_and_records_ledger(
        self, tmp_path, landing_root, bronze_root, write_source, agents_csv
    ):
        config_dir = tmp_path / "configs"
        _write_config(config_dir, landing_root, bronze_root, ["agents", "brokers"])
        write_source("agents", "agents_2024_05_01.csv", agents_csv)
        write_source("brokers", "brokers_2024_05_01.csv", agents_csv)
        ledger_db = tmp_path / "ledger.duckdb"

        exit_code = cli.run_cli(
            [
                "--config-dir", str(config_dir),
                "--date", "2024-05-01",
                "--workers", "2",
                "--ledger-db", str(ledger_db),
                "--run-id", "cli-run",
            ]
        )

        assert exit_code == 0
        assert pq.read_table(bronze_root / "agents" / "part-00000.parquet").column("agent_id").to_pylist() == [1, 2, 3]
        assert [row[:2] for row in _ledger_rows(ledger_db, "cli-run")] == [
            ("agents", "succeeded"),
            ("brokers", "succeeded"),
        ]

    def test_failed_record_exits_one(self, tmp_path, landing_root, bronze_root, write_source, agents_csv):
        config_dir = tmp_path / "configs"
        _write_config(config_dir, landing_root, bronze_root, ["agents", "brokers"])
        write_source("agents", "agents_2024_05_01.csv", agents_csv)

        exit_code = cli.run_cli(
            ["--config-dir", str(config_dir), "--date", "2024-05-01", "--max-attempts", "1"]
        )

        assert exit_code == 1
        assert (bronze_root / "agents" / "part-00000.parquet").exists()

    def test_configuration_error_exits_two(self, tmp_path, landing_root, bronze_root):
        config_dir = tmp_path / "configs"
        _write_config(config_dir, landing_root, bronze_root, ["agents", "agents"])

        assert cli.run_cli(["--config-dir", str(config_dir), "--date", "2024-05-01"]) == cli.EXIT_CONFIGURATION_ERROR

    def test_defaults_to_yesterday(self, tmp_path, landing_root, bronze_root, write_source, agents_csv):
        config_dir = tmp_path / "configs"
        _write_config(config_dir, landing_root, bronze_root, ["agents"])
        write_source("agents", "agents_2024_05_01.csv", agents_csv)
        args = cli.build_parser().parse_args(["--config-dir", str(config_dir), "--max-attempts", "1"])

        report = cli.run(args, today=date(2024, 5, 2))

        assert report.processing_date == date(2024, 5, 1)
        assert report.ok

    def test_rejects_malformed_date(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--date", "01/05/2024"])

    @pytest.mark.parametrize("flag", ["--workers", "--max-attempts"])
    @pytest.mark.parametrize("value", ["0", "-1", "two"])
    def test_rejects_non_positive_counts(self, flag, value):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([flag, value])

    def test_failed_record_logs_last_successful_date(
        self, tmp_path, landing_root, bronze_root, write_source, agents_csv, caplog
    ):
        config_dir = tmp_path / "configs"
        _write_config(config_dir, landing_root, bronze_root, ["agents"])
        ledger_db = tmp_path / "ledger.duckdb"
        write_source("agents", "agents_2024_05_01.csv", agents_csv)
        base = ["--config-dir", str(config_dir), "--max-attempts", "1", "--ledger-db", str(ledger_db)]

        assert cli.run_cli(base + ["--date", "2024-05-01"]) == 0
        with caplog.at_level(logging.WARNING, logger="bronze_ingest.cli"):
            assert cli.run_cli(base + ["--date", "2024-05-02"]) == 1

        assert "[agents] Last successful load: 2024-05-01" in caplog.text
