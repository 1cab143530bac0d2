"""Size-bounded buffer of textual :db/add statements."""

from __future__ import annotations

import logging

from places_transact.exceptions import BackendCommitError, StoreError
from places_transact.store.base import BaseStore

logger = logging.getLogger(__name__)

# tempid -> permanent entid, valid only for the commit that produced it.
ResolutionMap = dict[int, int]

_BATCH_OPEN = "[\n"
_BATCH_CLOSE = "]"


def escape_string(value: str) -> str:
    """Escape a string for embedding between double quotes in a batch."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


class TransactBuilder:
    """Accumulates statements for one store transaction at a time.

    Tempids are allocated from a counter that survives ``reset()``, so ids
    handed out before a commit are never reissued afterwards.
    """

    def __init__(self, max_size: int):
        if max_size < 0:
            raise ValueError(f"max_size must be >= 0, got {max_size}")
        self.max_size = max_size
        self.counter = 0
        self.terms = 0
        self.total_terms = 0
        self.commits = 0
        self._parts: list[str] = [_BATCH_OPEN]
        self._size = len(_BATCH_OPEN)
        # Highest tempid issued before the last commit.
        self._committed_counter = 0

    @property
    def size(self) -> int:
        """UTF-8 byte length of the pending batch text."""
        return self._size

    @property
    def data(self) -> str:
        """Pending batch text, without the closing bracket."""
        return "".join(self._parts)

    def next_tempid(self) -> int:
        self.counter += 1
        return self.counter

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def add_ref_to_tempid(self, tempid: int, attr: str, ref_tempid: int) -> None:
        """Reference an entity created in the pending batch."""
        self._check_tempid(ref_tempid)
        if ref_tempid <= self._committed_counter:
            raise ValueError(
                f"tempid {ref_tempid} belongs to an already committed batch; "
                "reference its resolved entid instead"
            )
        self._add(tempid, attr, f'"{ref_tempid}"')

    def add_ref_to_entid(self, tempid: int, attr: str, entid: int) -> None:
        """Reference an entity already committed by an earlier batch."""
        self._add(tempid, attr, str(int(entid)))

    def add_instant(self, tempid: int, attr: str, micros: int) -> None:
        self._add(tempid, attr, f"#instmicros {int(micros)}")

    def add_enum(self, tempid: int, attr: str, value: str) -> None:
        self._add(tempid, attr, value)

    def add_string(self, tempid: int, attr: str, value: str) -> None:
        self._add(tempid, attr, f'"{escape_string(value)}"')

    def add_long(self, tempid: int, attr: str, value: int) -> None:
        self._add(tempid, attr, str(int(value)))

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def should_flush(self) -> bool:
        return self._size >= self.max_size

    def flush_if_ready(self, store: BaseStore) -> ResolutionMap | None:
        if self.should_flush():
            return self.commit(store)
        return None

    def commit(self, store: BaseStore) -> ResolutionMap | None:
        """Submit pending statements as one transaction.

        Returns the tempid resolutions of this batch, or None when nothing
        was pending. On failure the pending state is left as it was.
        """
        if self.terms == 0:
            return None

        logger.info("Transacting %d terms (total = %d)", self.terms, self.total_terms)
        statements = self.data + _BATCH_CLOSE
        try:
            report = store.apply_batch(statements)
        except StoreError as e:
            logger.error("Transaction of %d terms failed: %s\n%s", self.terms, e, statements)
            raise BackendCommitError(f"Store rejected batch of {self.terms} terms: {e}", statements) from e

        self.commits += 1
        self.reset()
        return {int(tempid): entid for tempid, entid in report.tempids.items()}

    def reset(self) -> None:
        self.terms = 0
        self._parts = [_BATCH_OPEN]
        self._size = len(_BATCH_OPEN)
        self._committed_counter = self.counter

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _check_tempid(self, tempid: int) -> None:
        if not 0 < tempid <= self.counter:
            raise ValueError(f"tempid {tempid} was not allocated by this builder")

    def _add(self, tempid: int, attr: str, value: str) -> None:
        self._check_tempid(tempid)
        line = f' [:db/add "{tempid}" {attr} {value}]\n'
        self._parts.append(line)
        self._size += len(line.encode("utf-8"))
        self.terms += 1
        self.total_terms += 1
