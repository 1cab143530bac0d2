"""Destination stores with abstract base."""

from places_transact.store.base import BaseStore, TxReport
from places_transact.store.sqlite import InstantMicros, SQLiteDatomStore, load_default_schema

__all__ = [
    "BaseStore",
    "TxReport",
    "SQLiteDatomStore",
    "InstantMicros",
    "load_default_schema",
]
