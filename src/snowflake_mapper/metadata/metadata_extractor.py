"""
Metadata Extraction Module
Walks a Snowflake account: warehouses, databases, schemas, tables and columns.
"""

from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from ..connection import SessionScope, SnowflakeConnection, quote_identifier, quote_literal
from ..errors import QueryError
from .models import ColumnRecord, DatabaseRecord, TableRecord, WarehouseRecord
from .normalizer import normalize_column, normalize_database, normalize_table, normalize_warehouse

TableSink = Callable[[TableRecord], None]


class MetadataExtractor:
    """Extracts metadata from Snowflake objects."""

    def __init__(self, connection: SnowflakeConnection, include_columns: bool = True):
        """
        Initialize metadata extractor.

        Args:
            connection: Snowflake connection instance
            include_columns: Whether to fetch column definitions for each schema
        """
        self.connection = connection
        self.include_columns = include_columns

    def list_warehouses(self) -> List[WarehouseRecord]:
        """List warehouses in the order Snowflake returns them."""
        logger.debug("Listing available warehouses...")
        results = self.connection.execute_query("SHOW WAREHOUSES")
        warehouses = [normalize_warehouse(row) for row in results]
        logger.info(f"Found {len(warehouses)} warehouses")
        return warehouses

    def list_databases(self) -> List[DatabaseRecord]:
        """List databases in the order Snowflake returns them."""
        logger.debug("Getting all databases...")
        results = self.connection.execute_query("SHOW DATABASES")
        databases = [normalize_database(row) for row in results]
        logger.info(f"Found {len(databases)} databases")
        return databases

    def describe_database(self, database_name: str) -> Optional[DatabaseRecord]:
        """
        Look up a single database.

        Args:
            database_name: Name of the database

        Returns:
            Database record, or None if the database is not visible
        """
        results = self.connection.execute_query(f"SHOW DATABASES LIKE {quote_literal(database_name)}")
        for row in results:
            record = normalize_database(row)
            if record.name.upper() == database_name.upper():
                return record
        logger.warning(f"Database {database_name} not found in SHOW DATABASES")
        return None

    def list_schemas(self, scope: SessionScope) -> List[str]:
        """
        List schema names in the scoped database.

        Args:
            scope: Scope returned by ``use_database``

        Returns:
            Schema names in listed order
        """
        database = scope.require_database()
        results = self.connection.execute_query(f"SHOW SCHEMAS IN DATABASE {quote_identifier(database)}")
        schemas = [str(row.get('name') or row.get('NAME')) for row in results if row.get('name') or row.get('NAME')]
        logger.debug(f"Found {len(schemas)} schemas in {database}")
        return schemas

    def list_tables(self, scope: SessionScope) -> List[TableRecord]:
        """
        List tables and views in the scoped schema, ordered by name.

        Args:
            scope: Scope returned by ``use_schema``

        Returns:
            Table records, with columns attached when enabled
        """
        schema = scope.require_schema()
        database = scope.database
        query = f"""
        SELECT
            TABLE_SCHEMA,
            TABLE_NAME,
            TABLE_TYPE,
            ROW_COUNT,
            BYTES,
            RETENTION_TIME,
            CREATED,
            LAST_ALTERED,
            COMMENT
        FROM {quote_identifier(database)}.INFORMATION_SCHEMA.TABLES
        WHERE TABLE_SCHEMA = {quote_literal(schema)}
        ORDER BY TABLE_SCHEMA, TABLE_NAME
        """

        results = self.connection.execute_query(query)
        if results:
            logger.debug(f"Found {len(results)} tables in schema {schema}")

        columns = self.list_columns(scope) if self.include_columns and results else {}
        return [
            normalize_table(database, row, columns.get(str(row.get('TABLE_NAME')), ()))
            for row in results
        ]

    def list_columns(self, scope: SessionScope) -> Dict[str, Tuple[ColumnRecord, ...]]:
        """
        Fetch column definitions for every table in the scoped schema.

        Column metadata is best effort: a failure is logged and every table in
        the schema is returned without columns.

        Args:
            scope: Scope returned by ``use_schema``

        Returns:
            Mapping of table name to its columns in ordinal order
        """
        schema = scope.require_schema()
        query = f"""
        SELECT
            TABLE_NAME,
            COLUMN_NAME,
            DATA_TYPE,
            IS_NULLABLE,
            CHARACTER_MAXIMUM_LENGTH,
            NUMERIC_PRECISION,
            NUMERIC_SCALE
        FROM {quote_identifier(scope.database)}.INFORMATION_SCHEMA.COLUMNS
        WHERE TABLE_SCHEMA = {quote_literal(schema)}
        ORDER BY TABLE_NAME, ORDINAL_POSITION
        """

        try:
            results = self.connection.execute_query(query)
        except QueryError as e:
            logger.warning(f"Failed to extract column metadata for {scope.database}.{schema}: {str(e)}")
            return {}

        grouped: Dict[str, List[ColumnRecord]] = OrderedDict()
        for row in results:
            grouped.setdefault(str(row.get('TABLE_NAME')), []).append(normalize_column(row))
        return {table: tuple(columns) for table, columns in grouped.items()}

    def tables_for_database(self, database_name: str, sink: Optional[TableSink] = None) -> List[TableRecord]:
        """
        Extract every table in a database, one schema at a time.

        A schema that cannot be scoped or queried is logged and skipped; the
        rest of the database is still extracted. Each table is passed to
        ``sink`` as soon as it is normalized.

        Args:
            database_name: Name of the database
            sink: Called once per table, typically to write it out

        Returns:
            All tables found, in schema order
        """
        logger.debug(f"Getting tables for database: {database_name}")

        db_scope = self.connection.use_database(database_name)
        schemas = self.list_schemas(db_scope)

        all_tables: List[TableRecord] = []
        for schema_name in schemas:
            logger.debug(f"Getting tables for schema: {schema_name}")
            try:
                schema_scope = self.connection.use_schema(db_scope, schema_name)
                tables = self.list_tables(schema_scope)
            except QueryError as e:
                logger.warning(f"Skipping schema {database_name}.{schema_name}: {str(e)}")
                continue

            for table in tables:
                if sink is not None:
                    sink(table)
                all_tables.append(table)

        logger.info(f"Extracted {len(all_tables)} tables from database: {database_name}")
        return all_tables
