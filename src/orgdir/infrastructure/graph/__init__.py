"""NetworkX view of the directory graph."""
