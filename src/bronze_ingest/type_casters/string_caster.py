from dataclasses import dataclass

from bronze_ingest.type_casters.base_caster import CasterBase


@dataclass(frozen=True)
class StringCaster(CasterBase):
    data_type: str = "string"

    @property
    def sql_type(self) -> str:
        return "VARCHAR"

    def clean_sql(self, column_sql: str) -> str:
        # Raw text is preserved as-is, only blanks become NULL.
        return f"CASE WHEN TRIM(CAST({column_sql} AS VARCHAR)) = '' THEN NULL ELSE CAST({column_sql} AS VARCHAR) END"

    def value_sql(self, clean_sql: str) -> str:
        return clean_sql
