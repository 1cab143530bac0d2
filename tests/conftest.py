"""Shared fixtures: places.sqlite builders and a commit-recording store."""

import sqlite3

import pytest

from places_transact.places.models import PlaceVisitRow
from places_transact.store.base import TxReport
from places_transact.store.sqlite import SQLiteDatomStore, load_default_schema


def make_row(place_id, visit_date, visit_type=1, url=None, title="", description=None, frecency=100):
    return PlaceVisitRow(
        place_id=place_id,
        url=url or f"http://example.com/{place_id}",
        url_hash=place_id * 1000,
        description=description,
        title=title,
        frecency=frecency,
        visit_date=visit_date,
        visit_type=visit_type,
    )


class RecordingStore(SQLiteDatomStore):
    """SQLite store that remembers every batch it was asked to apply."""

    def __init__(self, path=":memory:"):
        super().__init__(path)
        self.batches: list[str] = []

    def apply_batch(self, statements: str) -> TxReport:
        self.batches.append(statements)
        return super().apply_batch(statements)


@pytest.fixture
def store():
    s = RecordingStore()
    s.bootstrap_schema(load_default_schema())
    yield s
    s.close()


@pytest.fixture
def places_db(tmp_path):
    """Create a minimal places.sqlite: two visited places and one unvisited place."""
    db_path = tmp_path / "places.sqlite"
    conn = sqlite3.connect(str(db_path))
    conn.execute("""
        CREATE TABLE moz_places (
            id INTEGER PRIMARY KEY,
            url LONGVARCHAR,
            title LONGVARCHAR,
            url_hash INTEGER DEFAULT 0 NOT NULL,
            description TEXT,
            frecency INTEGER DEFAULT -1 NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE moz_historyvisits (
            id INTEGER PRIMARY KEY,
            place_id INTEGER,
            visit_date INTEGER,
            visit_type INTEGER
        )
    """)
    conn.execute(
        "INSERT INTO moz_places (id, url, title, url_hash, description, frecency) VALUES (?, ?, ?, ?, ?, ?)",
        (1, "http://a", 'Page "A"', 11, "C:\\dir", 50),
    )
    conn.execute(
        "INSERT INTO moz_places (id, url, title, url_hash, description, frecency) VALUES (?, ?, ?, ?, ?, ?)",
        (2, "http://b", None, 22, None, 10),
    )
    conn.execute(
        "INSERT INTO moz_places (id, url, title, url_hash, description, frecency) VALUES (?, ?, ?, ?, ?, ?)",
        (3, "http://unvisited", "Never", 33, None, 0),
    )
    conn.executemany(
        "INSERT INTO moz_historyvisits (id, place_id, visit_date, visit_type) VALUES (?, ?, ?, ?)",
        [(1, 1, 200, 3), (2, 2, 300, 1), (3, 1, 100, 1)],
    )
    conn.commit()
    conn.close()
    return db_path


def place_visits(conn):
    """Map each stored place url to the sorted (date, type ident) pairs of its visits."""
    rows = conn.execute("""
        SELECT url.v, date.v, type_ident.ident
        FROM datoms url
        JOIN idents url_attr ON url_attr.entid = url.a AND url_attr.ident = ':place/url'
        JOIN datoms place_ref ON place_ref.v = url.e
        JOIN idents ref_attr ON ref_attr.entid = place_ref.a AND ref_attr.ident = ':visit/place'
        JOIN datoms date ON date.e = place_ref.e
        JOIN idents date_attr ON date_attr.entid = date.a AND date_attr.ident = ':visit/date'
        JOIN datoms type ON type.e = place_ref.e
        JOIN idents type_attr ON type_attr.entid = type.a AND type_attr.ident = ':visit/type'
        JOIN idents type_ident ON type_ident.entid = type.v
    """).fetchall()
    result = {}
    for url, date, visit_type in rows:
        result.setdefault(url, []).append((date, visit_type))
    return {url: sorted(visits) for url, visits in result.items()}
