"""
Harvest Errors
Exception hierarchy shared by the connection, extraction and output layers.
"""

from typing import Optional, Sequence


class HarvestError(Exception):
    """Base class for every error raised by snowflake-mapper."""


class ConfigurationError(HarvestError):
    """Required settings are missing, or a setting has an unusable value."""

    def __init__(self, missing: Sequence[str] = (), invalid: Sequence[str] = ()):
        self.missing = list(missing)
        self.invalid = list(invalid)
        problems = []
        if self.missing:
            problems.append(f"Missing required configuration: {', '.join(self.missing)}")
        if self.invalid:
            problems.append(f"Invalid configuration: {'; '.join(self.invalid)}")
        super().__init__(". ".join(problems))


class SnowflakeConnectionError(HarvestError):
    """Could not establish a Snowflake session."""


class QueryError(HarvestError):
    """A statement failed. Keeps the offending SQL for diagnostics."""

    def __init__(self, sql: str, cause: Optional[BaseException] = None, message: str = "Failed to execute query"):
        self.sql = sql
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{message}{detail} [sql: {' '.join(sql.split())}]")


class ScopeError(QueryError):
    """A USE statement failed, or a catalog call was made outside the scope it needs."""

    def __init__(self, sql: str, cause: Optional[BaseException] = None):
        super().__init__(sql, cause, message="Failed to change session scope")


class OutputWriteError(HarvestError):
    """An artifact could not be written."""

    def __init__(self, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")


class DisconnectionError(HarvestError):
    """Closing the session failed."""


class HarvestFailed(HarvestError):
    """The run hit a failure outside per-database isolation."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{message}{detail}")
