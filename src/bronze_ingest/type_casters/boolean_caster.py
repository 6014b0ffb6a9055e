from dataclasses import dataclass, field

from bronze_ingest.type_casters.base_caster import CasterBase
from bronze_ingest.type_casters.common import sql_in_list


@dataclass(frozen=True)
class BooleanCaster(CasterBase):
    data_type: str = "boolean"
    true_values: tuple[str, ...] = field(default=("TRUE", "T", "YES", "Y", "1"))
    false_values: tuple[str, ...] = field(default=("FALSE", "F", "NO", "N", "0"))

    def __post_init__(self) -> None:
        overlap = {v.upper() for v in self.true_values} & {v.upper() for v in self.false_values}
        if overlap:
            raise ValueError(f"true_values and false_values overlap: {sorted(overlap)}")

    @property
    def sql_type(self) -> str:
        return "BOOLEAN"

    def value_sql(self, clean_sql: str) -> str:
        true_list = sql_in_list(tuple(v.upper() for v in self.true_values))
        false_list = sql_in_list(tuple(v.upper() for v in self.false_values))
        return (
            f"CASE WHEN UPPER({clean_sql}) IN {true_list} THEN TRUE "
            f"WHEN UPPER({clean_sql}) IN {false_list} THEN FALSE "
            f"ELSE NULL END"
        )
