"""
Harvest Pipeline
Orchestrates connection, discovery, per-database extraction and output.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from loguru import logger

from .config import DEFAULT_ROLE, DEFAULT_WAREHOUSE, HarvestSettings, LoggingConfig
from .connection import SnowflakeConnection
from .errors import DisconnectionError, HarvestFailed, OutputWriteError
from .metadata import DatabaseRecord, MetadataExtractor, TableRecord
from .output import OutputWriter

ConnectionFactory = Callable[[HarvestSettings], SnowflakeConnection]


@dataclass(frozen=True)
class HarvestResult:
    """Tables produced by one run, plus the databases that were skipped."""

    tables: Tuple[TableRecord, ...] = ()
    failed_databases: Tuple[str, ...] = ()
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    warehouse_count: int = 0
    database_count: int = 0

    def __len__(self) -> int:
        return len(self.tables)

    def __iter__(self):
        return iter(self.tables)


@dataclass
class _Aggregate:
    tables: List[TableRecord] = field(default_factory=list)
    failed_databases: List[str] = field(default_factory=list)
    warehouse_count: int = 0
    database_count: int = 0


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class HarvestPipeline:
    """Runs one metadata harvest from connect to disconnect."""

    def __init__(
        self,
        settings: HarvestSettings,
        logging_config: Optional[LoggingConfig] = None,
        connection_factory: ConnectionFactory = SnowflakeConnection,
        writer: Optional[OutputWriter] = None,
    ):
        """
        Initialize harvest pipeline.

        Args:
            settings: Harvest settings
            logging_config: Applied at construction when given
            connection_factory: Builds one session per call; tests pass stubs
            writer: Output writer, defaults to one rooted at ``settings.output_dir``
        """
        self.settings = settings
        self.connection_factory = connection_factory
        self.writer = writer or OutputWriter(settings.output_dir)

        if logging_config is not None:
            logging_config.configure()

    @property
    def role(self) -> str:
        return self.settings.role or DEFAULT_ROLE

    @property
    def warehouse(self) -> str:
        return self.settings.warehouse or DEFAULT_WAREHOUSE

    def _disconnect(self, connection: SnowflakeConnection) -> None:
        try:
            connection.close()
        except DisconnectionError as e:
            logger.error(f"Error disconnecting from Snowflake: {str(e)}")

    def _table_sink(self, table: TableRecord) -> None:
        try:
            self.writer.write_table(table)
        except OutputWriteError as e:
            if not self.settings.skip_failed_writes:
                raise
            logger.error(f"Skipping table {table.full_name}: {str(e)}")

    def _select_databases(self, databases: List[DatabaseRecord]) -> List[DatabaseRecord]:
        if not self.settings.databases:
            return databases

        wanted = {name.upper() for name in self.settings.databases}
        selected = [db for db in databases if db.name.upper() in wanted]
        missing = wanted - {db.name.upper() for db in selected}
        if missing:
            logger.warning(f"Requested databases not found: {', '.join(sorted(missing))}")
        return selected

    def _harvest_database(self, database: DatabaseRecord) -> List[TableRecord]:
        """Extract one database on its own session."""
        connection = self.connection_factory(self.settings)
        connection.connect()
        try:
            connection.use_role(self.role)
            connection.use_warehouse(self.warehouse)

            extractor = MetadataExtractor(connection, include_columns=self.settings.include_columns)
            tables = extractor.tables_for_database(database.name, sink=self._table_sink)

            self.writer.write_database_metadata(database.name, database.summary())
            return tables
        finally:
            self._disconnect(connection)

    def _fan_out(self, databases: List[DatabaseRecord], aggregate: _Aggregate) -> None:
        max_workers = max(1, min(self.settings.max_workers, len(databases)))
        logger.info(f"Processing {len(databases)} databases with {max_workers} workers")

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="harvest") as pool:
            futures = {pool.submit(self._harvest_database, db): db for db in databases}

            for future in as_completed(futures):
                database = futures[future]
                try:
                    tables = future.result()
                except Exception as e:
                    logger.error(f"Error getting tables for database {database.name}: {str(e)}")
                    aggregate.failed_databases.append(database.name)
                    continue

                aggregate.tables.extend(tables)
                logger.info(f"Processed database: {database.name} ({len(tables)} tables)")

    def _harvest_pinned(self, connection: SnowflakeConnection, database_name: str, aggregate: _Aggregate) -> None:
        extractor = MetadataExtractor(connection, include_columns=self.settings.include_columns)

        database = extractor.describe_database(database_name)
        aggregate.tables.extend(extractor.tables_for_database(database_name, sink=self._table_sink))

        if database is not None:
            self.writer.write_database_metadata(database_name, database.summary())
            aggregate.database_count = 1

    def run(self) -> HarvestResult:
        """
        Run the harvest.

        Returns:
            Harvest result holding every extracted table

        Raises:
            HarvestFailed: on any failure outside per-database isolation
        """
        logger.info("Starting Snowflake table extraction...")
        started_at = _utcnow()
        aggregate = _Aggregate()

        try:
            self.writer.purge()
        except OSError as e:
            logger.error(f"Could not prepare output directory {self.writer.root}: {str(e)}")
            raise HarvestFailed(f"Could not prepare output directory {self.writer.root}", e) from e

        try:
            connection = self.connection_factory(self.settings)
            connection.connect()
        except Exception as e:
            logger.error(f"Harvest failed before connecting: {str(e)}")
            raise HarvestFailed("Harvest failed before connecting", e) from e

        try:
            connection.use_role(self.role)

            extractor = MetadataExtractor(connection, include_columns=self.settings.include_columns)
            warehouses = extractor.list_warehouses()
            self.writer.write_warehouses(warehouses)
            aggregate.warehouse_count = len(warehouses)

            connection.use_warehouse(self.warehouse)

            if self.settings.database:
                logger.info(f"Extracting pinned database: {self.settings.database}")
                self._harvest_pinned(connection, self.settings.database, aggregate)
            else:
                databases = extractor.list_databases()
                self.writer.write_databases(databases)
                selected = self._select_databases(databases)
                aggregate.database_count = len(selected)
                self._fan_out(selected, aggregate)

        except Exception as e:
            logger.error(f"Harvest failed: {str(e)}")
            raise HarvestFailed("Error in Snowflake metadata harvest", e) from e

        finally:
            self._disconnect(connection)

        result = HarvestResult(
            tables=tuple(aggregate.tables),
            failed_databases=tuple(aggregate.failed_databases),
            started_at=started_at,
            finished_at=_utcnow(),
            warehouse_count=aggregate.warehouse_count,
            database_count=aggregate.database_count,
        )

        if result.failed_databases:
            logger.warning(f"Databases skipped after errors: {', '.join(result.failed_databases)}")
        logger.info(f"Successfully fetched tables: {len(result)}")
        return result
