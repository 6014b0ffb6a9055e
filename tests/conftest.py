from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Callable

import pyarrow as pa
import pytest

from bronze_ingest.config_record import ConfigRecord
from bronze_ingest.domain import RunContext

PROCESSING_DATE = date(2024, 5, 1)

AGENTS_CSV = (
    "Agent_ID,Agent_Name,Hire_Date,Commission_Rate\n"
    "1,Alice,2020-01-15,0.1250\n"
    "2,Bob,2021-07-01,0.0800\n"
    "3,Carol,,0.1000\n"
)


@pytest.fixture
def ctx() -> RunContext:
    return RunContext(processing_date=PROCESSING_DATE, run_id="test-run")


@pytest.fixture
def landing_root(tmp_path: Path) -> Path:
    root = tmp_path / "landing"
    root.mkdir()
    return root


@pytest.fixture
def bronze_root(tmp_path: Path) -> Path:
    return tmp_path / "bronze"


@pytest.fixture
def write_source(landing_root: Path) -> Callable[..., Path]:
    """Writes a landing file at <landing>/<prefix>/<YYYY>/<MM>/<file_name>."""

    def _write(prefix: str, file_name: str, content: str, processing_date: date = PROCESSING_DATE) -> Path:
        directory = landing_root / prefix / f"{processing_date.year:04d}" / f"{processing_date.month:02d}"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / file_name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_record(landing_root: Path, bronze_root: Path) -> Callable[..., ConfigRecord]:
    def _make(
        system_name: str,
        *,
        prefix: str | None = None,
        pattern: str | None = None,
        columns: list[dict[str, Any]] | None = None,
        **source_options: Any,
    ) -> ConfigRecord:
        prefix = prefix or system_name
        return ConfigRecord.model_validate(
            {
                "system_name": system_name,
                "source_system": "csv",
                "source_spec": {
                    "source_bucket": landing_root.as_uri(),
                    "source_prefix": prefix,
                    "file_name_pattern": pattern or f"{prefix}_{{YYYY}}_{{MM}}_{{DD}}.csv",
                    "columns": columns if columns is not None else [],
                    **source_options,
                },
                "destination_spec": {"destination_path": str(bronze_root / system_name)},
            }
        )

    return _make


AGENT_COLUMNS: list[dict[str, Any]] = [
    {"column_name": "Agent_ID", "data_type": "integer"},
    {"column_name": "Agent_Name", "data_type": "string"},
    {"column_name": "Hire_Date", "data_type": "date"},
    {"column_name": "Commission_Rate", "data_type": "decimal(5,4)"},
]


@pytest.fixture
def agent_columns() -> list[dict[str, Any]]:
    return [dict(c) for c in AGENT_COLUMNS]


@pytest.fixture
def agents_csv() -> str:
    return AGENTS_CSV


class FakeDataAccess:
    """In-memory DataAccess: reads from a dict of tables, records writes."""

    def __init__(self, tables: dict[str, pa.Table] | None = None, on_read: Callable[[str], None] | None = None):
        self.tables = dict(tables or {})
        self.on_read = on_read
        self.writes: dict[str, pa.Table] = {}
        self.read_paths: list[str] = []

    def read_table(self, path: str, options: Any) -> pa.Table:
        from bronze_ingest.errors import SourceNotFoundError

        self.read_paths.append(path)
        if self.on_read is not None:
            self.on_read(path)
        if path not in self.tables:
            raise SourceNotFoundError(f"Source file not found: {path}")
        return self.tables[path]

    def write_table(self, table: pa.Table, path: str) -> None:
        self.writes[path] = table


@pytest.fixture
def fake_data_access_cls() -> type[FakeDataAccess]:
    return FakeDataAccess
