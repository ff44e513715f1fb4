"""
Snowflake Connection Manager
Owns one Snowflake session, executes statements and tracks the session scope.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

import snowflake.connector
from snowflake.connector import DictCursor
from loguru import logger

from ..config import DEFAULT_ROLE, HarvestSettings
from ..errors import DisconnectionError, QueryError, ScopeError, SnowflakeConnectionError


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Single-quote a string literal, escaping embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


@dataclass(frozen=True)
class SessionScope:
    """
    The server-side scope of a session after a USE statement.

    Role, warehouse, database and schema are session globals on the Snowflake
    side. Every scoping call returns a new scope, and catalog operations take
    the scope they depend on as an argument.
    """

    role: Optional[str] = None
    warehouse: Optional[str] = None
    database: Optional[str] = None
    schema: Optional[str] = None

    def require_database(self) -> str:
        if not self.database:
            raise ScopeError("USE DATABASE", ValueError("no database selected in session scope"))
        return self.database

    def require_schema(self) -> str:
        self.require_database()
        if not self.schema:
            raise ScopeError("USE SCHEMA", ValueError("no schema selected in session scope"))
        return self.schema


class SnowflakeConnection:
    """Manages one Snowflake session and query execution."""

    def __init__(self, settings: HarvestSettings):
        """
        Initialize Snowflake connection.

        Args:
            settings: Harvest settings holding credentials and defaults
        """
        self.settings = settings
        self.connection: Optional[snowflake.connector.SnowflakeConnection] = None
        self.scope = SessionScope()

    def connect(self) -> snowflake.connector.SnowflakeConnection:
        """
        Establish connection to Snowflake.

        Returns:
            Snowflake connection object

        Raises:
            SnowflakeConnectionError: if the session cannot be opened
        """
        role = self.settings.role or DEFAULT_ROLE

        try:
            self.connection = snowflake.connector.connect(
                account=self.settings.account,
                user=self.settings.username,
                password=self.settings.password,
                warehouse=self.settings.warehouse,
                database=self.settings.database,
                role=role,
            )
        except Exception as e:
            logger.error(f"Failed to connect to Snowflake: {str(e)}")
            raise SnowflakeConnectionError(f"Failed to connect to Snowflake account {self.settings.account}: {e}") from e

        self.scope = SessionScope(
            role=role,
            warehouse=self.settings.warehouse,
            database=self.settings.database,
        )
        logger.info("Successfully connected to Snowflake")
        return self.connection

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    def execute_query(self, query: str) -> List[Dict[str, Any]]:
        """
        Execute a SQL statement and return every row.

        Results are fully buffered before returning.

        Args:
            query: SQL statement to execute

        Returns:
            List of dictionaries containing query results

        Raises:
            QueryError: wrapping the statement text and the driver error
        """
        if not self.connection:
            raise QueryError(query, RuntimeError("not connected to Snowflake"))

        logger.debug(f"Executing query: {' '.join(query.split())}")

        try:
            cursor = self.connection.cursor(DictCursor)
            try:
                if self.settings.query_timeout:
                    cursor.execute(query, timeout=self.settings.query_timeout)
                else:
                    cursor.execute(query)
                results = cursor.fetchall()
            finally:
                cursor.close()
        except Exception as e:
            raise QueryError(query, e) from e

        logger.debug(f"Query executed successfully, returned {len(results)} rows")
        if results:
            logger.debug(f"Sample row: {results[0]}")
        return results

    def _use(self, statement: str, scope: SessionScope) -> SessionScope:
        try:
            self.execute_query(statement)
        except QueryError as e:
            raise ScopeError(statement, e.cause) from e
        self.scope = scope
        return scope

    def use_role(self, role: str) -> SessionScope:
        """Set the active role for the session."""
        logger.debug(f"Setting active role to: {role}")
        return self._use(f"USE ROLE {quote_identifier(role)}", replace(self.scope, role=role))

    def use_warehouse(self, warehouse: str) -> SessionScope:
        """Set the active warehouse for the session."""
        logger.debug(f"Setting active warehouse to: {warehouse}")
        return self._use(
            f"USE WAREHOUSE {quote_identifier(warehouse)}",
            replace(self.scope, warehouse=warehouse),
        )

    def use_database(self, database: str) -> SessionScope:
        """Set the active database, clearing any active schema."""
        logger.debug(f"Setting active database to: {database}")
        return self._use(
            f"USE DATABASE {quote_identifier(database)}",
            replace(self.scope, database=database, schema=None),
        )

    def use_schema(self, scope: SessionScope, schema: str) -> SessionScope:
        """
        Set the active schema inside the database of ``scope``.

        Args:
            scope: Scope returned by ``use_database``
            schema: Schema name within that database

        Returns:
            Scope with both database and schema set
        """
        database = scope.require_database()
        logger.debug(f"Setting active schema to: {database}.{schema}")
        return self._use(
            f"USE SCHEMA {quote_identifier(database)}.{quote_identifier(schema)}",
            replace(scope, schema=schema),
        )

    def close(self) -> None:
        """
        Close the Snowflake connection.

        Raises:
            DisconnectionError: if the driver fails to close the session
        """
        if not self.connection:
            return

        connection, self.connection = self.connection, None
        self.scope = SessionScope()
        try:
            connection.close()
        except Exception as e:
            raise DisconnectionError(f"Failed to disconnect from Snowflake: {e}") from e
        logger.info("Snowflake connection closed")

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
