"""Shared helpers: pacing, cache keys, text, spreadsheet parsing, resources."""
