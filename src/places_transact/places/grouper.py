"""Fold the sorted place/visit join stream into aggregated places."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from places_transact.catalog import AttributeCatalog
from places_transact.places.models import Place, PlaceVisitRow, Visit

# Place ids in moz_places are positive; anything below zero marks "no place yet".
_NO_PLACE_ID = -1


def group_places(rows: Iterable[PlaceVisitRow], catalog: AttributeCatalog) -> Iterator[Place]:
    """Yield one Place per run of consecutive rows sharing a place id.

    Rows must already be sorted by place id. Unsorted input is not detected
    and produces split places.
    """
    current = Place(id=_NO_PLACE_ID, url="")
    for row in rows:
        if row.place_id == current.id:
            current.visits.append(Visit.from_row(row, catalog))
            continue
        if current.id >= 0:
            yield current
        current = Place.from_row(row, catalog)

    if current.id >= 0:
        yield current
