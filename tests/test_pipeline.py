"""End-to-end migration tests."""

import sqlite3

import pytest

from conftest import place_visits

from places_transact.config import MigrationConfig
from places_transact.exceptions import (
    BackendCommitError,
    DestinationExistsError,
    SchemaError,
    SourceReadError,
    TransactError,
)
from places_transact.pipeline import migrate
from places_transact.places.reader import PlacesReader
from places_transact.store.sqlite import SQLiteDatomStore

EXPECTED_VISITS = {
    "http://a": [(100, ":visit.type/link"), (200, ":visit.type/bookmark")],
    "http://b": [(300, ":visit.type/link")],
}


def _stored(path):
    conn = sqlite3.connect(str(path))
    try:
        visits = place_visits(conn)
        strings = {
            ident: value
            for ident, value in conn.execute(
                "SELECT i.ident, d.v FROM datoms d JOIN idents i ON i.entid = d.a "
                "WHERE i.ident IN (':place/title', ':place/description') AND d.v != ''"
            )
        }
        transactions = conn.execute("SELECT count(*) FROM transactions").fetchone()[0]
    finally:
        conn.close()
    return visits, strings, transactions


def test_bulk_migration(places_db, tmp_path):
    output = tmp_path / "out.db"
    summary = migrate(MigrationConfig(source_path=places_db, output_path=output))

    assert summary.places == 2
    assert summary.visits == 3
    assert summary.commits == 1
    visits, strings, transactions = _stored(output)
    assert visits == EXPECTED_VISITS
    assert strings == {":place/title": 'Page "A"', ":place/description": "C:\\dir"}
    assert transactions == 1


def test_realistic_migration(places_db, tmp_path):
    output = tmp_path / "out.db"
    summary = migrate(MigrationConfig.realistic(places_db, output_path=output))

    assert summary.commits == 2 + 3
    visits, _, transactions = _stored(output)
    assert visits == EXPECTED_VISITS
    assert transactions == 5


def test_progress_uses_place_count(places_db, tmp_path):
    calls = []
    migrate(
        MigrationConfig(source_path=places_db, output_path=tmp_path / "out.db"),
        on_progress=lambda done, total: calls.append((done, total)),
    )
    # moz_places has an unvisited place, so the total is approximate
    assert calls == [(1, 3), (2, 3)]


def test_existing_destination_refused(places_db, tmp_path):
    output = tmp_path / "out.db"
    output.write_text("keep me")
    with pytest.raises(DestinationExistsError):
        migrate(MigrationConfig(source_path=places_db, output_path=output))
    assert output.read_text() == "keep me"


def test_existing_destination_overwritten(places_db, tmp_path):
    output = tmp_path / "out.db"
    output.write_text("replace me")
    summary = migrate(MigrationConfig(source_path=places_db, output_path=output, overwrite=True))
    assert summary.places == 2


def test_missing_source(tmp_path):
    with pytest.raises(SourceReadError):
        migrate(MigrationConfig(source_path=tmp_path / "missing.sqlite", output_path=tmp_path / "out.db"))


def test_overwrite_keeps_output_when_source_is_missing(tmp_path):
    output = tmp_path / "out.db"
    output.write_text("previous run")
    with pytest.raises(SourceReadError):
        migrate(MigrationConfig(source_path=tmp_path / "missing.sqlite", output_path=output, overwrite=True))
    assert output.read_text() == "previous run"


def test_source_connection_closed_when_commit_fails(places_db, tmp_path, monkeypatch):
    opened = []
    original_connect = PlacesReader._connect

    def recording_connect(self):
        conn = original_connect(self)
        opened.append(conn)
        return conn

    def failing_apply(self, statements):
        raise TransactError("disk full")

    monkeypatch.setattr(PlacesReader, "_connect", recording_connect)
    monkeypatch.setattr(SQLiteDatomStore, "apply_batch", failing_apply)

    with pytest.raises(BackendCommitError):
        migrate(MigrationConfig.realistic(places_db, output_path=tmp_path / "out.db"))

    assert opened
    for conn in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")


def test_custom_schema_path(places_db, tmp_path):
    with pytest.raises(SchemaError, match="Failed to read schema"):
        migrate(
            MigrationConfig(
                source_path=places_db,
                output_path=tmp_path / "out.db",
                schema_path=tmp_path / "missing.schema",
            )
        )
