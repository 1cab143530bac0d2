"""Abstract base class for transactional datom stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class TxReport:
    """Outcome of one successfully applied batch."""

    tx_id: int
    tempids: dict[str, int] = field(default_factory=dict)
    datom_count: int = 0


class BaseStore(ABC):
    """Abstract interface for an append-only attribute-value store."""

    @abstractmethod
    def bootstrap_schema(self, schema: str) -> None:
        """Install the schema definition. Must run once, before any data."""
        ...

    @abstractmethod
    def apply_batch(self, statements: str) -> TxReport:
        """Atomically apply a batch of statements and resolve its tempids."""
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
