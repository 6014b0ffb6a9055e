from dataclasses import dataclass

from bronze_ingest.type_casters.base_caster import CasterBase
from bronze_ingest.type_casters.common import sql_quote


@dataclass(frozen=True)
class DateCaster(CasterBase):
    """ISO dates by default; `format` takes a strptime pattern such as '%d/%m/%Y'."""
    data_type: str = "date"
    format: str | None = None

    @property
    def sql_type(self) -> str:
        return "DATE"

    def value_sql(self, clean_sql: str) -> str:
        if self.format:
            return f"CAST(TRY_STRPTIME({clean_sql}, {sql_quote(self.format)}) AS DATE)"
        return f"TRY_CAST({clean_sql} AS DATE)"


@dataclass(frozen=True)
class TimestampCaster(CasterBase):
    data_type: str = "timestamp"
    format: str | None = None

    @property
    def sql_type(self) -> str:
        return "TIMESTAMP"

    def value_sql(self, clean_sql: str) -> str:
        if self.format:
            return f"TRY_STRPTIME({clean_sql}, {sql_quote(self.format)})"
        return f"TRY_CAST({clean_sql} AS TIMESTAMP)"
