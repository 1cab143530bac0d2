"""Encode aggregated places into builder statements."""

from __future__ import annotations

from places_transact.catalog import AttributeCatalog
from places_transact.exceptions import EncodingInvariantViolation
from places_transact.places.models import Place, Visit
from places_transact.transact.builder import TransactBuilder


def encode_place(place: Place, builder: TransactBuilder, catalog: AttributeCatalog) -> int:
    """Add a place and all of its visits to the pending batch.

    Visits reference the place through its tempid, so the whole place must
    be committed in one batch. Returns the place tempid.
    """
    _check_has_visits(place)
    place_tempid = encode_place_attributes(place, builder, catalog)
    for visit in place.visits:
        encode_visit(visit, builder, catalog, place_tempid=place_tempid)
    return place_tempid


def encode_place_attributes(place: Place, builder: TransactBuilder, catalog: AttributeCatalog) -> int:
    """Add only the place's own attributes. Returns the place tempid."""
    _check_has_visits(place)
    place_tempid = builder.next_tempid()
    builder.add_string(place_tempid, catalog.place_url, place.url)
    builder.add_long(place_tempid, catalog.place_url_hash, place.url_hash)
    builder.add_string(place_tempid, catalog.place_title, place.title)
    if place.description is not None:
        builder.add_string(place_tempid, catalog.place_description, place.description)
    builder.add_long(place_tempid, catalog.place_frecency, place.frecency)
    return place_tempid


def encode_visit(
    visit: Visit,
    builder: TransactBuilder,
    catalog: AttributeCatalog,
    *,
    place_tempid: int | None = None,
    place_entid: int | None = None,
) -> int:
    """Add one visit, referencing its place by tempid or by resolved entid."""
    if (place_tempid is None) == (place_entid is None):
        raise ValueError("exactly one of place_tempid and place_entid is required")

    visit_tempid = builder.next_tempid()
    if place_tempid is not None:
        builder.add_ref_to_tempid(visit_tempid, catalog.visit_place, place_tempid)
    else:
        builder.add_ref_to_entid(visit_tempid, catalog.visit_place, place_entid)
    builder.add_instant(visit_tempid, catalog.visit_date, visit.date)
    builder.add_enum(visit_tempid, catalog.visit_type_attr, visit.visit_type)
    return visit_tempid


def _check_has_visits(place: Place) -> None:
    if not place.visits:
        raise EncodingInvariantViolation(f"place {place.id} ({place.url}) has no visits")
