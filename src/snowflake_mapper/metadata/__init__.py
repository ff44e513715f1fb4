from .metadata_extractor import MetadataExtractor
from .models import ColumnRecord, DatabaseRecord, DatabaseSummary, TableRecord, WarehouseRecord

__all__ = [
    'MetadataExtractor',
    'ColumnRecord',
    'DatabaseRecord',
    'DatabaseSummary',
    'TableRecord',
    'WarehouseRecord',
]
