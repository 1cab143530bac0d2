"""Data models for the places history source."""

from __future__ import annotations

from dataclasses import dataclass, field

from places_transact.catalog import AttributeCatalog


@dataclass(frozen=True)
class PlaceVisitRow:
    """One row of the moz_places / moz_historyvisits join."""

    place_id: int
    url: str
    url_hash: int
    description: str | None
    title: str
    frecency: int
    visit_date: int  # microseconds since the Unix epoch
    visit_type: int  # 1-indexed transition type


@dataclass
class Visit:
    """A single visit to a place."""

    date: int
    visit_type: str  # enum ident, e.g. ":visit.type/link"

    @classmethod
    def from_row(cls, row: PlaceVisitRow, catalog: AttributeCatalog) -> Visit:
        return cls(date=row.visit_date, visit_type=catalog.visit_type(row.visit_type))


@dataclass
class Place:
    """A history place aggregated with all of its visits."""

    id: int
    url: str
    url_hash: int = 0
    title: str = ""
    description: str | None = None
    frecency: int = 0
    visits: list[Visit] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: PlaceVisitRow, catalog: AttributeCatalog) -> Place:
        """Seed a place and its first visit from a join row."""
        return cls(
            id=row.place_id,
            url=row.url,
            url_hash=row.url_hash,
            title=row.title,
            description=row.description,
            frecency=row.frecency,
            visits=[Visit.from_row(row, catalog)],
        )
