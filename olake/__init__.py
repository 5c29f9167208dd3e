"""Connection configuration, type mapping and chunk planning for MongoDB, MySQL and Postgres syncs."""

__version__ = "0.1.0"
__all__ = ["base", "mongodb", "mysql", "postgres"]