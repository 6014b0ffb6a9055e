import re
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


STORAGE_URI_REGEX = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://\S+$")


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)


class ColumnSpec(StrictBaseModel):
    column_name: str = Field(min_length=1)
    # Validated lazily by build_target_schema so one bad tag only fails its own record.
    data_type: str
    format: str | None = None

    @property
    def normalized_name(self) -> str:
        return self.column_name.strip().lower()


class SourceSpec(StrictBaseModel):
    source_bucket: str
    source_prefix: str
    file_name_pattern: str
    columns: list[ColumnSpec] = Field(default_factory=list)

    header: bool = True
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    encoding: str = "utf8"

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        names = [column.normalized_name for column in self.columns]
        if duplicates := sorted({name for name in names if names.count(name) > 1}):
            raise ValueError(f"Duplicate column names (case-insensitive) found in columns: {duplicates}")
        return self


class DestinationSpec(StrictBaseModel):
    destination_path: str

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        path = self.destination_path.strip()
        if not path:
            raise ValueError("destination_path must not be empty")
        if not (STORAGE_URI_REGEX.match(path) or path.startswith("/")):
            raise ValueError(
                f"Invalid destination_path '{self.destination_path}'. "
                "Expected '<scheme>://<location>' or an absolute path."
            )
        return self


class ConfigRecord(StrictBaseModel):
    system_name: str = Field(min_length=1)
    source_system: str = "csv"

    source_spec: SourceSpec
    destination_spec: DestinationSpec
