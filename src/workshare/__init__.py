"""Persistent multi-worker task queue on a local SQLite file."""

__version__ = "0.3.0"
