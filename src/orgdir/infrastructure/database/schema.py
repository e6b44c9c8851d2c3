"""SQLAlchemy Core table definitions for the directory property graph.

Two tables model a labelled property graph: ``nodes`` (Area, Collection,
Contact, Url, Day) and ``edges`` (PARENT_OF, RESPONSIBLE_FOR, COMES_BEFORE,
IN_COLLECTION, HAS_URL, ONLY_WORKS).  Label-specific data lives in the
``properties`` JSON column; ``name`` and ``is_root`` are promoted to columns
because tree navigation filters and sorts on them.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)

metadata = MetaData()

nodes = Table(
    "nodes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("label", Text, nullable=False),
    Column("name", Text),  # Area only
    Column("is_root", Integer, default=0, server_default="0"),
    Column("properties", JSON, nullable=False, default=dict),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

edges = Table(
    "edges",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_id", Integer, ForeignKey("nodes.id"), nullable=False),
    Column("target_id", Integer, ForeignKey("nodes.id"), nullable=False),
    Column("edge_type", Text, nullable=False),
    Column("properties", JSON, nullable=False, default=dict),
    Column("created", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Indexes for traversal in both directions
# ---------------------------------------------------------------------------

Index("ix_nodes_label", nodes.c.label)
Index("ix_nodes_name", nodes.c.name)
Index("ix_edges_source_type", edges.c.source_id, edges.c.edge_type)
Index("ix_edges_target_type", edges.c.target_id, edges.c.edge_type)
