"""
Configuration
Loads harvest settings from a YAML file and the environment, and holds the
logging configuration applied by the pipeline.
"""

import os
import sys
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from loguru import logger

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/config.yaml"
DEFAULT_WAREHOUSE = "COMPUTE_WH"
DEFAULT_ROLE = "SALES"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_MAX_WORKERS = 4

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"


@dataclass(frozen=True)
class HarvestSettings:
    """Everything a harvest run needs to know before it connects."""

    account: str
    username: str
    password: str
    warehouse: str = DEFAULT_WAREHOUSE
    database: Optional[str] = None
    role: str = DEFAULT_ROLE
    output_dir: str = DEFAULT_OUTPUT_DIR
    databases: Tuple[str, ...] = ()
    max_workers: int = DEFAULT_MAX_WORKERS
    query_timeout: Optional[int] = None
    include_columns: bool = True
    skip_failed_writes: bool = False

    def with_overrides(self, **overrides: Any) -> "HarvestSettings":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def __repr__(self) -> str:
        return (
            f"HarvestSettings(account={self.account!r}, username={self.username!r}, "
            f"warehouse={self.warehouse!r}, database={self.database!r}, role={self.role!r})"
        )


@dataclass(frozen=True)
class LoggingConfig:
    """Logging sinks for one run."""

    level: str = "INFO"
    file: Optional[str] = None
    rotation: str = "100 MB"
    retention: str = "30 days"
    sinks: Tuple[Any, ...] = field(default=(), repr=False)

    @classmethod
    def from_config(cls, config: Dict[str, Any], debug: bool = False) -> "LoggingConfig":
        log_config = config.get('logging', {}) or {}
        level = "DEBUG" if debug else str(log_config.get('level', 'INFO')).upper()
        return cls(level=level, file=log_config.get('file'))

    def configure(self) -> None:
        """Replace loguru's handlers with the ones described here."""
        logger.remove()

        for sink in self.sinks or (sys.stderr,):
            logger.add(sink, format=CONSOLE_FORMAT, level=self.level)

        if self.file:
            logger.add(
                self.file,
                rotation=self.rotation,
                retention=self.retention,
                level=self.level,
                format=FILE_FORMAT,
            )

        logger.debug(f"Logging configured at level {self.level}")


def load_config_file(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
        return config or {}
    except FileNotFoundError:
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return {}


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "y", "on")


def _as_int(value: Any, key: str, invalid: List[str], minimum: int = 0) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        invalid.append(f"{key} must be an integer, got {value!r}")
        return None
    if number < minimum:
        invalid.append(f"{key} must be >= {minimum}, got {number}")
        return None
    return number


def _as_names(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(',')
    return tuple(str(v).strip() for v in value if str(v).strip())


def load_settings(
    config: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> HarvestSettings:
    """
    Build settings from a parsed config file and the environment.

    Environment variables win over the ``snowflake`` section of the config.

    Args:
        config: Parsed YAML configuration (may be empty)
        environ: Environment mapping, ``os.environ`` when omitted

    Returns:
        Harvest settings

    Raises:
        ConfigurationError: if account, username or password is missing,
            or a numeric harvest setting is not a usable integer
    """
    config = config or {}
    env = os.environ if environ is None else environ
    sf_config = config.get('snowflake', {}) or {}
    harvest_config = config.get('harvest', {}) or {}

    account = _first(env.get('SNOWFLAKE_ACCOUNT'), sf_config.get('account'))
    username = _first(
        env.get('SNOWFLAKE_USERNAME'),
        env.get('SNOWFLAKE_USER'),
        sf_config.get('user'),
        sf_config.get('username'),
    )
    password = _first(env.get('SNOWFLAKE_PASSWORD'), sf_config.get('password'))

    missing = [
        name for name, value in (
            ('SNOWFLAKE_ACCOUNT', account),
            ('SNOWFLAKE_USERNAME', username),
            ('SNOWFLAKE_PASSWORD', password),
        )
        if not value
    ]
    invalid: List[str] = []
    max_workers = _as_int(harvest_config.get('max_workers'), 'harvest.max_workers', invalid, minimum=1)
    query_timeout = _as_int(harvest_config.get('query_timeout'), 'harvest.query_timeout', invalid, minimum=1)

    if missing or invalid:
        raise ConfigurationError(missing, invalid)

    return HarvestSettings(
        account=account,
        username=username,
        password=password,
        warehouse=_first(env.get('SNOWFLAKE_WAREHOUSE'), sf_config.get('warehouse'), DEFAULT_WAREHOUSE),
        database=_first(env.get('SNOWFLAKE_DATABASE'), sf_config.get('database')),
        role=_first(env.get('SNOWFLAKE_ROLE'), sf_config.get('role'), DEFAULT_ROLE),
        output_dir=str(harvest_config.get('output_dir') or DEFAULT_OUTPUT_DIR),
        databases=_as_names(harvest_config.get('databases')),
        max_workers=max_workers or DEFAULT_MAX_WORKERS,
        query_timeout=query_timeout,
        include_columns=_as_bool(harvest_config.get('include_columns'), True),
        skip_failed_writes=_as_bool(harvest_config.get('skip_failed_writes'), False),
    )
