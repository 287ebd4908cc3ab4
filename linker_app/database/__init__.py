from .connection import Base, build_database_url, create_db_engine, ensure_schema, ping

__all__ = ["Base", "build_database_url", "create_db_engine", "ensure_schema", "ping"]
