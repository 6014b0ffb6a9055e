"""
Turns a ConfigRecord plus a RunContext into concrete work:

  resolve_source_path  -> <scheme>://<bucket>/<prefix>/<YYYY>/<MM>/<file_name>
  build_target_schema  -> ordered (lowercase name, canonical type, caster) list
"""
import re
from dataclasses import dataclass

from core import settings
from bronze_ingest.config_record import ConfigRecord
from bronze_ingest.domain import RunContext
from bronze_ingest.errors import TemplateResolutionError
from bronze_ingest.type_casters.base_caster import CasterBase
from bronze_ingest.type_casters.registry import canonical_type, resolve_caster

PLACEHOLDER_REGEX = re.compile(r"\{([^{}]*)\}")
REQUIRED_PLACEHOLDERS: tuple[str, ...] = ("YYYY", "MM", "DD")


@dataclass(frozen=True)
class TargetColumn:
    normalized_name: str
    data_type: str
    source_name: str
    caster: CasterBase


def render_file_name(pattern: str, context: RunContext) -> str:
    placeholders = PLACEHOLDER_REGEX.findall(pattern)

    unknown = sorted({p for p in placeholders if p not in REQUIRED_PLACEHOLDERS})
    if unknown:
        raise TemplateResolutionError(
            f"Unknown placeholder(s) {unknown} in file_name_pattern '{pattern}'. "
            f"Allowed: {list(REQUIRED_PLACEHOLDERS)}"
        )

    missing = [p for p in REQUIRED_PLACEHOLDERS if p not in placeholders]
    if missing:
        raise TemplateResolutionError(f"file_name_pattern '{pattern}' is missing placeholder(s) {missing}")

    values = {"YYYY": context.year, "MM": context.month, "DD": context.day}
    file_name = PLACEHOLDER_REGEX.sub(lambda m: values[m.group(1)], pattern)

    if "{" in file_name or "}" in file_name:
        raise TemplateResolutionError(f"Unbalanced braces in file_name_pattern '{pattern}'")

    return file_name


def resolve_source_path(record: ConfigRecord, context: RunContext, default_scheme: str | None = None) -> str:
    source = record.source_spec
    scheme = default_scheme or settings.DEFAULT_STORAGE_SCHEME

    bucket = source.source_bucket.strip()
    prefix = source.source_prefix.strip().strip("/")
    if not bucket.strip("/"):
        raise TemplateResolutionError(f"source_bucket is empty for '{record.system_name}'")
    if not prefix:
        raise TemplateResolutionError(f"source_prefix is empty for '{record.system_name}'")

    if "://" in bucket:
        base = bucket.rstrip("/")
    else:
        base = f"{scheme}://{bucket.strip('/')}"

    file_name = render_file_name(source.file_name_pattern, context)
    return f"{base}/{prefix}/{context.year}/{context.month}/{file_name}"


def build_target_schema(record: ConfigRecord) -> list[TargetColumn]:
    schema: list[TargetColumn] = []
    for column in record.source_spec.columns:
        schema.append(
            TargetColumn(
                normalized_name=column.normalized_name,
                data_type=canonical_type(column.data_type),
                source_name=column.column_name,
                caster=resolve_caster(column.data_type, column.format),
            )
        )
    return schema
