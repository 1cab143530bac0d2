"""Firefox places history source."""

from places_transact.places.grouper import group_places
from places_transact.places.models import Place, PlaceVisitRow, Visit
from places_transact.places.reader import PlacesReader

__all__ = [
    "PlacesReader",
    "group_places",
    "Place",
    "PlaceVisitRow",
    "Visit",
]
