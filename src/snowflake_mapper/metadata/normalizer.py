"""
Result Normalizer
Maps raw Snowflake rows into metadata records.

SHOW commands return lowercase keys while INFORMATION_SCHEMA views return
uppercase ones, so every lookup tolerates either casing. Nothing here raises:
a value that cannot be coerced becomes None (or an empty string for names).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from .models import ColumnRecord, DatabaseRecord, TableRecord, WarehouseRecord

DEFAULT_ORIGIN = "snowflake"


def _get(row: Mapping[str, Any], key: str) -> Any:
    for candidate in (key, key.upper(), key.lower()):
        if candidate in row:
            return row[candidate]
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return _optional_text(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        if isinstance(value, (float, Decimal)):
            return int(value)
        text = str(value).strip()
        return int(Decimal(text)) if text else None
    except (ArithmeticError, ValueError):
        return None


def flag(value: Any) -> bool:
    """Snowflake 'Y'/'N' sentinel to bool. Only the exact string 'Y' is true."""
    return value == "Y"


def normalize_warehouse(row: Mapping[str, Any]) -> WarehouseRecord:
    return WarehouseRecord(
        name=_text(_get(row, 'name')),
        state=_text(_get(row, 'state')),
        type=_text(_get(row, 'type')),
        size=_text(_get(row, 'size')),
        is_default=flag(_get(row, 'is_default')),
        is_current=flag(_get(row, 'is_current')),
        owner=_text(_get(row, 'owner')),
        comment=_optional_text(_get(row, 'comment')),
    )


def normalize_database(row: Mapping[str, Any]) -> DatabaseRecord:
    return DatabaseRecord(
        name=_text(_get(row, 'name')),
        created=_optional_text(_get(row, 'created_on')),
        origin=_optional_text(_get(row, 'origin')) or DEFAULT_ORIGIN,
        owner=_text(_get(row, 'owner')),
        comment=_optional_text(_get(row, 'comment')),
        is_current=flag(_get(row, 'is_current')),
    )


def normalize_column(row: Mapping[str, Any]) -> ColumnRecord:
    return ColumnRecord(
        name=_text(_get(row, 'COLUMN_NAME')),
        data_type=_text(_get(row, 'DATA_TYPE')),
        is_nullable=_text(_get(row, 'IS_NULLABLE')).upper() == "YES",
        character_maximum_length=_int(_get(row, 'CHARACTER_MAXIMUM_LENGTH')),
        numeric_precision=_int(_get(row, 'NUMERIC_PRECISION')),
        numeric_scale=_int(_get(row, 'NUMERIC_SCALE')),
    )


def normalize_table(
    database: str,
    row: Mapping[str, Any],
    columns: Iterable[ColumnRecord] = (),
) -> TableRecord:
    return TableRecord(
        database=database,
        schema=_text(_get(row, 'TABLE_SCHEMA')),
        name=_text(_get(row, 'TABLE_NAME')),
        type=_text(_get(row, 'TABLE_TYPE')),
        row_count=_int(_get(row, 'ROW_COUNT')),
        bytes=_int(_get(row, 'BYTES')),
        retention_time=_int(_get(row, 'RETENTION_TIME')),
        created=_optional_text(_get(row, 'CREATED')),
        last_altered=_optional_text(_get(row, 'LAST_ALTERED')),
        comment=_optional_text(_get(row, 'COMMENT')),
        columns=tuple(columns),
    )
