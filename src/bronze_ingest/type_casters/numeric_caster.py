from dataclasses import dataclass

from bronze_ingest.type_casters.base_caster import CasterBase


INTEGER_SQL_TYPES: dict[str, str] = {
    "short": "SMALLINT",
    "integer": "INTEGER",
    "long": "BIGINT",
}

FLOAT_SQL_TYPES: dict[str, str] = {
    "float": "FLOAT",
    "double": "DOUBLE",
}


@dataclass(frozen=True)
class IntegerCaster(CasterBase):
    data_type: str = "integer"

    @property
    def sql_type(self) -> str:
        return INTEGER_SQL_TYPES[self.data_type]

    def value_sql(self, clean_sql: str) -> str:
        digits = f"REPLACE({clean_sql}, ',', '')"
        # TRY_CAST rounds fractional text, so only plain integers reach the cast.
        return (
            f"CASE WHEN regexp_full_match({digits}, '[+-]?[0-9]+') "
            f"THEN TRY_CAST({digits} AS {self.sql_type}) END"
        )


@dataclass(frozen=True)
class FloatCaster(CasterBase):
    data_type: str = "double"

    @property
    def sql_type(self) -> str:
        return FLOAT_SQL_TYPES[self.data_type]

    def value_sql(self, clean_sql: str) -> str:
        return f"TRY_CAST(REPLACE({clean_sql}, ',', '') AS {self.sql_type})"
