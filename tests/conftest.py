from __future__ import annotations

import re
import sys
import threading
from pathlib import Path

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

import pytest
import snowflake.connector
from loguru import logger

from snowflake_mapper.config import HarvestSettings

_FROM_DB = re.compile(r'FROM "((?:[^"]|"")+)"\.INFORMATION_SCHEMA')
_SCHEMA_FILTER = re.compile(r"TABLE_SCHEMA = '((?:[^']|'')*)'")
_SHOW_SCHEMAS = re.compile(r'SHOW SCHEMAS IN DATABASE "((?:[^"]|"")+)"')
_LIKE = re.compile(r"SHOW DATABASES LIKE '((?:[^']|'')*)'")


class FakeCursor:
    def __init__(self, driver: "FakeDriver"):
        self.driver = driver
        self._rows: list[dict] = []
        self.closed = False

    def execute(self, query: str, timeout=None):
        self.driver.record(query, timeout)
        self._rows = self.driver.warehouse.respond(query)
        return self

    def fetchall(self) -> list[dict]:
        return [dict(r) for r in self._rows]

    def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Stands in for a snowflake.connector connection."""

    def __init__(self, warehouse: "FakeWarehouse", kwargs: dict):
        self.warehouse = warehouse
        self.kwargs = kwargs
        self.statements: list[str] = []
        self.timeouts: list = []
        self.closed = False

    def record(self, query: str, timeout) -> None:
        self.statements.append(" ".join(query.split()))
        self.timeouts.append(timeout)

    def cursor(self, cursor_class=None) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        if self.warehouse.fail_close:
            raise RuntimeError("close failed")
        self.closed = True


class FakeWarehouse:
    """
    In-memory Snowflake account.

    ``catalog`` maps database -> schema -> list of INFORMATION_SCHEMA.TABLES
    rows. ``fail_on`` holds SQL fragments that make a statement raise.
    """

    def __init__(self):
        self.warehouses: list[dict] = []
        self.databases: list[dict] = []
        self.catalog: dict[str, dict[str, list[dict]]] = {}
        self.columns: dict[tuple[str, str], list[dict]] = {}
        self.fail_on: list[str] = []
        self.fail_connect = False
        self.fail_close = False
        self.sessions: list[FakeDriver] = []
        self._lock = threading.Lock()

    def connect(self, **kwargs) -> FakeDriver:
        if self.fail_connect:
            raise RuntimeError("connection refused")
        driver = FakeDriver(self, kwargs)
        with self._lock:
            self.sessions.append(driver)
        return driver

    @property
    def statements(self) -> list[str]:
        return [s for driver in self.sessions for s in driver.statements]

    def respond(self, query: str) -> list[dict]:
        flat = " ".join(query.split())
        for fragment in self.fail_on:
            if fragment in flat:
                raise RuntimeError(f"simulated failure for {fragment}")

        if flat.startswith("USE "):
            return []
        if flat == "SHOW WAREHOUSES":
            return self.warehouses
        like = _LIKE.search(flat)
        if like:
            wanted = like.group(1).replace("''", "'").upper()
            return [d for d in self.databases if d["name"].upper() == wanted]
        if flat == "SHOW DATABASES":
            return self.databases
        show_schemas = _SHOW_SCHEMAS.search(flat)
        if show_schemas:
            database = show_schemas.group(1).replace('""', '"')
            return [{"name": s} for s in self.catalog.get(database, {})]

        database = _FROM_DB.search(flat).group(1).replace('""', '"')
        schema = _SCHEMA_FILTER.search(flat).group(1).replace("''", "'")
        if "INFORMATION_SCHEMA.TABLES" in flat:
            return self.catalog.get(database, {}).get(schema, [])
        if "INFORMATION_SCHEMA.COLUMNS" in flat:
            return self.columns.get((database, schema), [])
        raise AssertionError(f"unexpected statement: {flat}")


def table_row(schema: str, name: str, **overrides) -> dict:
    row = {
        "TABLE_SCHEMA": schema,
        "TABLE_NAME": name,
        "TABLE_TYPE": "BASE TABLE",
        "ROW_COUNT": 10,
        "BYTES": 2048,
        "RETENTION_TIME": 1,
        "CREATED": "2024-01-01T00:00:00+00:00",
        "LAST_ALTERED": "2024-02-01T00:00:00+00:00",
        "COMMENT": None,
    }
    row.update(overrides)
    return row


def database_row(name: str, **overrides) -> dict:
    row = {
        "name": name,
        "created_on": "2023-05-01T10:00:00+00:00",
        "origin": "",
        "owner": "SYSADMIN",
        "comment": None,
        "is_current": "N",
        "is_default": "N",
    }
    row.update(overrides)
    return row


def warehouse_row(name: str, **overrides) -> dict:
    row = {
        "name": name,
        "state": "STARTED",
        "type": "STANDARD",
        "size": "X-Small",
        "is_default": "N",
        "is_current": "N",
        "owner": "ACCOUNTADMIN",
        "comment": None,
    }
    row.update(overrides)
    return row


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger.remove()


@pytest.fixture
def fake_warehouse(monkeypatch) -> FakeWarehouse:
    warehouse = FakeWarehouse()
    monkeypatch.setattr(snowflake.connector, "connect", warehouse.connect)
    return warehouse


@pytest.fixture
def settings(tmp_path) -> HarvestSettings:
    return HarvestSettings(
        account="acme-xy12345",
        username="harvester",
        password="secret",
        output_dir=str(tmp_path / "output"),
    )
