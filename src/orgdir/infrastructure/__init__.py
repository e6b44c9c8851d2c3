"""Infrastructure layer — database, graph store, graph engine.

This layer depends on stdlib and third-party libs (SQLAlchemy, NetworkX).
It may import domain types and errors, but never services, commands, or output.
"""
