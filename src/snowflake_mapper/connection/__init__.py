from .snowflake_connection import SessionScope, SnowflakeConnection, quote_identifier, quote_literal

__all__ = ['SessionScope', 'SnowflakeConnection', 'quote_identifier', 'quote_literal']
