from datetime import datetime, timezone
from decimal import Decimal

import pytest

from snowflake_mapper.metadata.normalizer import (
    flag,
    normalize_column,
    normalize_database,
    normalize_table,
    normalize_warehouse,
)

from conftest import database_row, table_row, warehouse_row


@pytest.mark.parametrize(
    "value, expected",
    [("Y", True), ("N", False), ("y", False), ("YES", False), (" Y", False), ("", False), (None, False), (True, False)],
)
def test_flag_is_true_only_for_exact_y(value, expected):
    assert flag(value) is expected


def test_normalize_warehouse_maps_flags_and_fields():
    record = normalize_warehouse(warehouse_row("COMPUTE_WH", is_default="Y", is_current="Y", comment="main"))

    assert record.name == "COMPUTE_WH"
    assert record.state == "STARTED"
    assert record.type == "STANDARD"
    assert record.size == "X-Small"
    assert record.is_default is True
    assert record.is_current is True
    assert record.owner == "ACCOUNTADMIN"
    assert record.comment == "main"


def test_normalize_warehouse_tolerates_missing_fields():
    record = normalize_warehouse({"name": "WH"})

    assert record.name == "WH"
    assert record.state == ""
    assert record.is_default is False
    assert record.is_current is False
    assert record.comment is None


@pytest.mark.parametrize("origin, expected", [("", "snowflake"), (None, "snowflake"), ("ORG.SHARE", "ORG.SHARE")])
def test_normalize_database_defaults_origin(origin, expected):
    assert normalize_database(database_row("SALES", origin=origin)).origin == expected


def test_normalize_database_without_origin_key():
    row = database_row("SALES")
    del row["origin"]

    assert normalize_database(row).origin == "snowflake"


def test_normalize_database_formats_timestamps():
    created = datetime(2023, 5, 1, 10, 0, tzinfo=timezone.utc)
    record = normalize_database(database_row("SALES", created_on=created, is_current="Y"))

    assert record.created == "2023-05-01T10:00:00+00:00"
    assert record.is_current is True


def test_normalize_table_coerces_numbers_and_keeps_database():
    row = table_row("PUBLIC", "ORDERS", ROW_COUNT=Decimal("42"), BYTES="1024", RETENTION_TIME=None)
    record = normalize_table("SALES", row)

    assert record.database == "SALES"
    assert record.schema == "PUBLIC"
    assert record.name == "ORDERS"
    assert record.type == "BASE TABLE"
    assert record.row_count == 42
    assert record.bytes == 1024
    assert record.retention_time is None
    assert record.columns == ()


def test_normalize_table_passes_bad_numbers_through_as_none():
    record = normalize_table("SALES", table_row("PUBLIC", "V", ROW_COUNT="n/a", BYTES=float("nan")))

    assert record.row_count is None
    assert record.bytes is None


def test_normalize_table_accepts_lowercase_keys():
    row = {k.lower(): v for k, v in table_row("PUBLIC", "ORDERS").items()}

    assert normalize_table("SALES", row).name == "ORDERS"


@pytest.mark.parametrize("raw, expected", [("YES", True), ("yes", True), ("NO", False), (None, False)])
def test_normalize_column_nullability(raw, expected):
    record = normalize_column({"COLUMN_NAME": "ID", "DATA_TYPE": "NUMBER", "IS_NULLABLE": raw})

    assert record.is_nullable is expected


def test_normalize_column_optional_sizes():
    record = normalize_column(
        {
            "COLUMN_NAME": "AMOUNT",
            "DATA_TYPE": "NUMBER",
            "IS_NULLABLE": "NO",
            "CHARACTER_MAXIMUM_LENGTH": None,
            "NUMERIC_PRECISION": 38,
            "NUMERIC_SCALE": "2",
        }
    )

    assert record.character_maximum_length is None
    assert record.numeric_precision == 38
    assert record.numeric_scale == 2
