def sql_quote(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def sql_identifier_quote(identifier: str) -> str:
    escaped = identifier.replace('"', '""')
    return f'"{escaped}"'


def sql_in_list(values: list[str] | tuple[str, ...]) -> str:
    return "(" + ", ".join(sql_quote(v) for v in values) + ")"


def nullify_sql(column_sql: str) -> str:
    """NULL for blank tokens, else the trimmed value."""
    return f"NULLIF(TRIM(CAST({column_sql} AS VARCHAR)), '')"
