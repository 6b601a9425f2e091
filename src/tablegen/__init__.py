"""tablegen - schema compiler for marked Python model classes.

Classifies marked classes into top-level tables and sub-tables, normalizes
their field types to canonical storage column types, and generates typed
table, cursor, view and query accessors for each of them.
"""
from __future__ import annotations

__version__ = "0.1.0"

from .markers import table

__all__ = ["table", "__version__"]
