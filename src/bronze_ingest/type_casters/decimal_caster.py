from dataclasses import dataclass

from bronze_ingest.type_casters.base_caster import CasterBase


@dataclass(frozen=True)
class DecimalCaster(CasterBase):
    data_type: str = "decimal"
    precision: int = 38
    scale: int = 10

    def __post_init__(self) -> None:
        if not 1 <= self.precision <= 38:
            raise ValueError(f"Decimal precision must be between 1 and 38, got {self.precision}")
        if not 0 <= self.scale <= self.precision:
            raise ValueError(f"Decimal scale must be between 0 and precision, got {self.scale}")

    @property
    def sql_type(self) -> str:
        return f"DECIMAL({self.precision},{self.scale})"

    def value_sql(self, clean_sql: str) -> str:
        return f"TRY_CAST(REPLACE({clean_sql}, ',', '') AS {self.sql_type})"
