"""Drive grouped places through the builder into the store."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from places_transact.catalog import AttributeCatalog
from places_transact.exceptions import BackendCommitError
from places_transact.places.grouper import group_places
from places_transact.places.models import Place, PlaceVisitRow
from places_transact.store.base import BaseStore
from places_transact.transact.builder import TransactBuilder
from places_transact.transact.encoder import encode_place, encode_place_attributes, encode_visit

logger = logging.getLogger(__name__)

# Large enough that a bulk run is effectively one transaction.
MAX_TRANSACT_BUFFER_SIZE = 1024 * 1024 * 1024

ProgressCallback = Callable[[int, int | None], None]


class CommitPolicy(enum.Enum):
    BULK = "bulk"
    PER_CHILD = "per_child"

    @classmethod
    def for_buffer_size(cls, buffer_size: int) -> CommitPolicy:
        """A zero-byte buffer means every place and every visit commits alone."""
        return cls.PER_CHILD if buffer_size == 0 else cls.BULK


@dataclass
class MigrationSummary:
    """Counts for a finished migration run."""

    places: int = 0
    visits: int = 0
    commits: int = 0
    total_terms: int = 0


class MigrationDriver:
    """Group source rows into places and commit them under a batching policy."""

    def __init__(
        self,
        store: BaseStore,
        catalog: AttributeCatalog,
        buffer_size: int = MAX_TRANSACT_BUFFER_SIZE,
        on_progress: ProgressCallback | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.builder = TransactBuilder(max_size=buffer_size)
        self.policy = CommitPolicy.for_buffer_size(buffer_size)
        self.on_progress = on_progress

    def run(self, rows: Iterable[PlaceVisitRow], total: int | None = None) -> MigrationSummary:
        """Migrate every place in ``rows``; errors abort the run."""
        summary = MigrationSummary()
        logger.info("Migrating with %s policy (buffer size %d)", self.policy.value, self.builder.max_size)

        for place in group_places(rows, self.catalog):
            if self.policy is CommitPolicy.PER_CHILD:
                self._add_per_child(place)
            else:
                self._add_bulk(place)

            summary.places += 1
            summary.visits += len(place.visits)
            logger.debug("Processing %d / %s places (approx.)", summary.places, total if total is not None else "?")
            if self.on_progress:
                self.on_progress(summary.places, total)

        self.builder.commit(self.store)

        summary.commits = self.builder.commits
        summary.total_terms = self.builder.total_terms
        return summary

    def _add_bulk(self, place: Place) -> None:
        encode_place(place, self.builder, self.catalog)
        self.builder.flush_if_ready(self.store)

    def _add_per_child(self, place: Place) -> None:
        place_tempid = encode_place_attributes(place, self.builder, self.catalog)
        resolved = self.builder.commit(self.store) or {}
        place_entid = resolved.get(place_tempid)
        if place_entid is None:
            raise BackendCommitError(f"Store did not resolve tempid {place_tempid} for place {place.id}")

        for visit in place.visits:
            encode_visit(visit, self.builder, self.catalog, place_entid=place_entid)
            self.builder.commit(self.store)
