"""SQLite database engine and property-graph schema via SQLAlchemy Core."""

from orgdir.infrastructure.database.engine import create_db_engine, init_database
from orgdir.infrastructure.database.schema import edges, metadata, nodes

__all__ = [
    "create_db_engine",
    "edges",
    "init_database",
    "metadata",
    "nodes",
]
