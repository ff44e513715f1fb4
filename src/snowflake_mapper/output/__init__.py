from .writer import OutputWriter, database_metadata_path, safe_name, table_path

__all__ = ['OutputWriter', 'database_metadata_path', 'safe_name', 'table_path']
