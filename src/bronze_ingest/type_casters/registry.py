import re

from bronze_ingest.errors import UnsupportedTypeError
from bronze_ingest.type_casters.base_caster import CasterBase
from bronze_ingest.type_casters.boolean_caster import BooleanCaster
from bronze_ingest.type_casters.decimal_caster import DecimalCaster
from bronze_ingest.type_casters.numeric_caster import FloatCaster, IntegerCaster
from bronze_ingest.type_casters.string_caster import StringCaster
from bronze_ingest.type_casters.temporal_caster import DateCaster, TimestampCaster

# alias -> canonical tag
TYPE_ALIASES: dict[str, str] = {
    "string": "string",
    "str": "string",
    "varchar": "string",
    "integer": "integer",
    "int": "integer",
    "long": "long",
    "bigint": "long",
    "short": "short",
    "smallint": "short",
    "double": "double",
    "float64": "double",
    "float": "float",
    "decimal": "decimal",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "timestamp": "timestamp",
    "datetime": "timestamp",
}

SUPPORTED_TYPES: frozenset[str] = frozenset(TYPE_ALIASES.values())

DECIMAL_REGEX = re.compile(r"^decimal\s*\(\s*(\d+)\s*,\s*(\d+)\s*\)$")


def canonical_type(data_type: str) -> str:
    """
    Normalizes a declared type tag, e.g. 'INT' -> 'integer', 'Decimal(10, 2)' -> 'decimal(10,2)'.
    Raises UnsupportedTypeError for anything outside the recognized primitives.
    """
    tag = data_type.strip().lower()
    if tag in TYPE_ALIASES:
        return TYPE_ALIASES[tag]

    if match := DECIMAL_REGEX.match(tag):
        precision, scale = int(match.group(1)), int(match.group(2))
        if not 1 <= precision <= 38 or scale > precision:
            raise UnsupportedTypeError(f"Invalid decimal precision/scale in data_type '{data_type}'")
        return f"decimal({precision},{scale})"

    raise UnsupportedTypeError(
        f"Unsupported data_type '{data_type}'. Supported: {sorted(SUPPORTED_TYPES)} or decimal(p,s)"
    )


def resolve_caster(data_type: str, format: str | None = None) -> CasterBase:
    tag = canonical_type(data_type)

    if tag == "string":
        return StringCaster()
    if tag in ("integer", "long", "short"):
        return IntegerCaster(data_type=tag)
    if tag in ("double", "float"):
        return FloatCaster(data_type=tag)
    if tag == "boolean":
        return BooleanCaster()
    if tag == "date":
        return DateCaster(format=format)
    if tag == "timestamp":
        return TimestampCaster(format=format)
    if tag == "decimal":
        return DecimalCaster()

    match = DECIMAL_REGEX.match(tag)
    if match is None:
        raise UnsupportedTypeError(f"No caster for data_type '{data_type}'")
    return DecimalCaster(data_type=tag, precision=int(match.group(1)), scale=int(match.group(2)))
