"""orgdir — hierarchical organizational directory of areas, collections and contacts."""

__version__ = "0.1.0"
