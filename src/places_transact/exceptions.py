"""Unified exception hierarchy for places-transact."""


class PlacesTransactError(Exception):
    """Base exception for all migration errors."""


# Source
class SourceError(PlacesTransactError):
    """Base exception for source database operations."""


class SourceReadError(SourceError):
    """Failed to open or read the source places database."""


# Encoding
class EncodingInvariantViolation(PlacesTransactError, AssertionError):
    """An entity reached the encoder in a state the grouper never produces."""


# Store
class StoreError(PlacesTransactError):
    """Base exception for destination store operations."""


class SchemaError(StoreError):
    """Invalid schema definition or schema bootstrap misuse."""


class TransactError(StoreError):
    """The store rejected a batch of statements."""


# Commit
class BackendCommitError(PlacesTransactError):
    """A buffered batch could not be committed.

    ``statements`` holds the raw batch text that was submitted, for offline
    diagnosis.
    """

    def __init__(self, message: str, statements: str = ""):
        super().__init__(message)
        self.statements = statements


# Destination
class DestinationExistsError(PlacesTransactError):
    """The output store already exists and overwriting was not requested."""
