import json
import logging
import os
from glob import glob
from typing import Any, Iterable, Protocol, Sequence

import duckdb
import yaml
from pydantic import ValidationError

from bronze_ingest.config_record import ConfigRecord
from bronze_ingest.errors import ConfigLoadError, DuplicateSystemNameError
from bronze_ingest.type_casters.common import sql_identifier_quote

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    def read_all(self) -> list[ConfigRecord]:
        ...


def ensure_unique_system_names(records: Iterable[ConfigRecord]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for record in records:
        if record.system_name in seen and record.system_name not in duplicates:
            duplicates.append(record.system_name)
        seen.add(record.system_name)

    if duplicates:
        raise DuplicateSystemNameError(f"Duplicate system_name found in configuration: {duplicates}")


class YamlConfigStore:
    """
    Reads config records from a directory of YAML files.

    Each `*.yaml` / `*.yml` file holds either a single record mapping or a list
    of record mappings. Files are read in sorted order and records keep the
    order they appear in.
    """

    def __init__(self, directory_path: str | os.PathLike[str]):
        self.directory_path = str(directory_path)

    def read_all(self) -> list[ConfigRecord]:
        file_paths = sorted(
            glob(os.path.join(self.directory_path, "*.yaml")) + glob(os.path.join(self.directory_path, "*.yml"))
        )

        records: list[ConfigRecord] = []
        for file_path in file_paths:
            with open(file_path, "r", encoding="utf-8") as file:
                try:
                    payload = yaml.safe_load(file)
                except yaml.YAMLError as e:
                    raise ConfigLoadError(f"Error parsing YAML config {file_path}: {e}") from e

            entries = payload if isinstance(payload, list) else [payload]
            for entry in entries:
                if entry is None:
                    continue
                records.append(_validate_record(entry, origin=file_path))

        if not records:
            logger.warning("No config records found in directory: %s", self.directory_path)

        ensure_unique_system_names(records)
        logger.info("Loaded %s config records from %s", len(records), self.directory_path)
        return records


class DuckDBConfigStore:
    """
    Reads config records from a metadata table in a DuckDB database.

    Expected columns:
      system_name VARCHAR, source_system VARCHAR, source_spec JSON, destination_spec JSON

    Rows are returned in insertion order.
    """

    def __init__(self, database: str, table: str = "ingestion_config"):
        self.database = database
        self.table = table

    def read_all(self) -> list[ConfigRecord]:
        query = f"""
            SELECT
                system_name,
                source_system,
                CAST(source_spec AS VARCHAR),
                CAST(destination_spec AS VARCHAR)
            FROM {sql_identifier_quote(self.table)}
            ORDER BY rowid
        """
        try:
            with duckdb.connect(self.database, read_only=True) as conn:
                rows = conn.execute(query).fetchall()
        except duckdb.Error as e:
            raise ConfigLoadError(f"Error reading config table {self.table} from {self.database}: {e}") from e

        records: list[ConfigRecord] = []
        for system_name, source_system, source_spec, destination_spec in rows:
            origin = f"{self.database}:{self.table}[{system_name}]"
            try:
                entry = {
                    "system_name": system_name,
                    "source_system": source_system,
                    "source_spec": json.loads(source_spec) if source_spec is not None else None,
                    "destination_spec": json.loads(destination_spec) if destination_spec is not None else None,
                }
            except json.JSONDecodeError as e:
                raise ConfigLoadError(f"Invalid JSON in config row {origin}: {e}") from e
            records.append(_validate_record(entry, origin=origin))

        ensure_unique_system_names(records)
        logger.info("Loaded %s config records from %s", len(records), self.database)
        return records


class StaticConfigStore:
    """In-memory snapshot, used when records are built programmatically."""

    def __init__(self, records: Sequence[ConfigRecord]):
        self._records = list(records)

    def read_all(self) -> list[ConfigRecord]:
        ensure_unique_system_names(self._records)
        return list(self._records)


def _validate_record(entry: Any, *, origin: str) -> ConfigRecord:
    if not isinstance(entry, dict):
        raise ConfigLoadError(f"Config record in {origin} must be a mapping, got {type(entry).__name__}")
    try:
        return ConfigRecord.model_validate(entry)
    except ValidationError as e:
        raise ConfigLoadError(f"Error loading config record from {origin}: {e}") from e
