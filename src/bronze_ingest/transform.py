import logging
from collections import Counter
from typing import Sequence

import duckdb
import pyarrow as pa

from bronze_ingest.errors import SchemaApplicationError
from bronze_ingest.resolver import TargetColumn
from bronze_ingest.type_casters.common import sql_identifier_quote

logger = logging.getLogger(__name__)

RAW_RELATION = "raw_source"


def rename_duplicate_column_headers(header: Sequence[str]) -> list[str]:
    counts: Counter[str] = Counter()
    new_header: list[str] = []
    for column in header:
        count = counts[column]
        counts[column] += 1
        if count > 0:
            new_header.append(f"{column}.{count}")
        else:
            new_header.append(column)
    return new_header


def normalize_column_names(table: pa.Table) -> pa.Table:
    """Lowercases every column name; collisions get '.1', '.2' suffixes."""
    names = rename_duplicate_column_headers([name.strip().lower() for name in table.column_names])
    return table.rename_columns(names)


def apply_target_schema(table: pa.Table, schema: Sequence[TargetColumn]) -> pa.Table:
    """
    Renames and casts the raw table.

    Declared columns come first in declared order, cast to their types.
    Undeclared source columns follow untouched. An empty schema only
    normalizes the column names.
    """
    table = normalize_column_names(table)
    if not schema:
        return table

    available = set(table.column_names)
    missing = [column.source_name for column in schema if column.normalized_name not in available]
    if missing:
        raise SchemaApplicationError(
            f"Declared column(s) {missing} not found in source. Found: {table.column_names}"
        )

    declared = {column.normalized_name for column in schema}
    passthrough = [name for name in table.column_names if name not in declared]

    plans = [(column, column.caster.plan(sql_identifier_quote(column.normalized_name))) for column in schema]

    with duckdb.connect() as conn:
        conn.register(RAW_RELATION, table)

        _check_casts(conn, plans)

        select_list = [
            f"CAST(({plan.value_expression}) AS {column.caster.sql_type}) AS {sql_identifier_quote(column.normalized_name)}"
            for column, plan in plans
        ]
        select_list.extend(sql_identifier_quote(name) for name in passthrough)

        result = conn.execute(f"SELECT {', '.join(select_list)} FROM {RAW_RELATION}").arrow()
        if isinstance(result, pa.RecordBatchReader):
            result = result.read_all()

    logger.debug("Applied schema: %s declared, %s passthrough columns", len(plans), len(passthrough))
    return result


def _check_casts(conn: duckdb.DuckDBPyConnection, plans) -> None:
    aggregates: list[str] = []
    for _, plan in plans:
        failed = f"({plan.clean_expression}) IS NOT NULL AND ({plan.value_expression}) IS NULL"
        aggregates.append(f"COUNT(*) FILTER (WHERE {failed})")
        aggregates.append(f"MIN({plan.clean_expression}) FILTER (WHERE {failed})")

    row = conn.execute(f"SELECT {', '.join(aggregates)} FROM {RAW_RELATION}").fetchone()
    if row is None:
        raise SchemaApplicationError("Cast check returned no result")

    errors: list[str] = []
    for i, (column, _) in enumerate(plans):
        failures, sample = row[2 * i], row[2 * i + 1]
        if failures:
            errors.append(
                f"column '{column.normalized_name}' ({column.data_type}): "
                f"{failures} value(s) failed to cast, e.g. '{sample}'"
            )

    if errors:
        raise SchemaApplicationError("Cast failure: " + "; ".join(errors))
