from abc import ABC, abstractmethod
from dataclasses import dataclass

from bronze_ingest.type_casters.common import nullify_sql


@dataclass(frozen=True)
class CasterPlan:
    # SQL expression for the cleaned, not yet typed value (NULL for blanks)
    clean_expression: str
    # SQL expression for the typed value; NULL where the clean value did not parse
    value_expression: str


@dataclass(frozen=True)
class CasterBase(ABC):
    """
    Compiles a raw string column into a typed DuckDB expression.

    A cast fails for a row when `clean_expression` is not NULL but
    `value_expression` is.
    """
    data_type: str

    @property
    @abstractmethod
    def sql_type(self) -> str: ...

    @abstractmethod
    def value_sql(self, clean_sql: str) -> str: ...

    def clean_sql(self, column_sql: str) -> str:
        return nullify_sql(column_sql)

    def plan(self, column_sql: str) -> CasterPlan:
        clean_expression = self.clean_sql(column_sql)
        return CasterPlan(
            clean_expression=clean_expression,
            value_expression=self.value_sql(clean_expression),
        )
