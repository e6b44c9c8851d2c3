"""Plugins shipped with orgdir."""
