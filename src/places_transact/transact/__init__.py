"""Statement buffering, entity encoding and commit policies."""

from places_transact.transact.builder import ResolutionMap, TransactBuilder, escape_string
from places_transact.transact.driver import (
    MAX_TRANSACT_BUFFER_SIZE,
    CommitPolicy,
    MigrationDriver,
    MigrationSummary,
)
from places_transact.transact.encoder import encode_place, encode_place_attributes, encode_visit

__all__ = [
    "TransactBuilder",
    "ResolutionMap",
    "escape_string",
    "encode_place",
    "encode_place_attributes",
    "encode_visit",
    "CommitPolicy",
    "MigrationDriver",
    "MigrationSummary",
    "MAX_TRANSACT_BUFFER_SIZE",
]
