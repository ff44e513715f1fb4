"""
snowflake-mapper
Harvests Snowflake warehouse, database, schema and table metadata into JSON.
"""

from .config import HarvestSettings, LoggingConfig, load_settings
from .pipeline import HarvestPipeline, HarvestResult

__version__ = "0.1.0"

__all__ = ['HarvestPipeline', 'HarvestResult', 'HarvestSettings', 'LoggingConfig', 'load_settings']
