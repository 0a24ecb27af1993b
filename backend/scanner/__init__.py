"""Futures momentum scanner service: data retrieval, batching and scheduling."""

__version__ = "0.1.0"
