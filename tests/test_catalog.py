"""Tests for the attribute catalog."""

import dataclasses

import pytest

from places_transact.catalog import DEFAULT_CATALOG, VISIT_TYPE_NAMES, AttributeCatalog


def test_visit_types_follow_source_order():
    assert len(DEFAULT_CATALOG.visit_types) == 9
    assert DEFAULT_CATALOG.visit_types[0] == ":visit.type/link"
    assert DEFAULT_CATALOG.visit_types[-1] == ":visit.type/reload"
    assert [kw.split("/")[1] for kw in DEFAULT_CATALOG.visit_types] == list(VISIT_TYPE_NAMES)


@pytest.mark.parametrize(
    "code, expected",
    [
        (1, ":visit.type/link"),
        (2, ":visit.type/typed"),
        (3, ":visit.type/bookmark"),
        (9, ":visit.type/reload"),
    ],
)
def test_visit_type_is_one_indexed(code, expected):
    assert DEFAULT_CATALOG.visit_type(code) == expected


@pytest.mark.parametrize("code", [0, -4, 10, 1000, None])
def test_invalid_visit_type_clamps_to_first_kind(code):
    assert DEFAULT_CATALOG.visit_type(code) == ":visit.type/link"


def test_catalog_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_CATALOG.place_url = ":other/url"


def test_custom_catalog():
    catalog = AttributeCatalog(place_url=":page/url")
    assert catalog.place_url == ":page/url"
    assert catalog.visit_date == ":visit/date"
