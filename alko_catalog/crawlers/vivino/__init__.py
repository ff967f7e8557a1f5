"""Vivino rating lookups."""
