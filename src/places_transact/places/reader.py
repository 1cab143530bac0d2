"""Read-only access to a Firefox places.sqlite history database."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from places_transact.exceptions import SourceReadError
from places_transact.places.models import PlaceVisitRow

logger = logging.getLogger(__name__)

# One row per place/visit pair, grouped by place. The grouper relies on this order.
PLACE_VISITS_QUERY = """
    SELECT
        p.id AS place_id,
        p.url AS url,
        p.url_hash AS url_hash,
        p.description AS description,
        p.title AS title,
        p.frecency AS frecency,
        v.visit_date AS visit_date,
        v.visit_type AS visit_type
    FROM moz_places p
    JOIN moz_historyvisits v
        ON p.id = v.place_id
    ORDER BY p.id, v.visit_date
"""


class PlacesReader:
    """Read places and their visits from places.sqlite."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def iter_rows(self) -> Iterator[PlaceVisitRow]:
        """Lazily yield join rows sorted by place id.

        The connection stays open until the iterator is exhausted or closed.
        """
        conn = self._connect()
        try:
            try:
                cursor = conn.execute(PLACE_VISITS_QUERY)
            except sqlite3.Error as e:
                raise SourceReadError(f"Failed querying places history: {e}") from e

            while True:
                try:
                    row = cursor.fetchone()
                except sqlite3.Error as e:
                    raise SourceReadError(f"Failed reading places history: {e}") from e
                if row is None:
                    break
                yield self._row_to_record(row)
        finally:
            conn.close()

    def count_places(self) -> int:
        return self._count("SELECT count(*) FROM moz_places")

    def count_visits(self) -> int:
        return self._count("SELECT count(*) FROM moz_historyvisits")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        if not self.db_path.exists():
            raise SourceReadError(f"places database not found at {self.db_path}.")
        try:
            conn = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)
            conn.row_factory = sqlite3.Row
            return conn
        except sqlite3.Error as e:
            raise SourceReadError(f"Cannot open places database {self.db_path}: {e}") from e

    def _count(self, query: str) -> int:
        conn = self._connect()
        try:
            return int(conn.execute(query).fetchone()[0])
        except sqlite3.Error as e:
            raise SourceReadError(f"Failed counting places history: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> PlaceVisitRow:
        try:
            return PlaceVisitRow(
                place_id=int(row["place_id"]),
                url=row["url"] or "",
                url_hash=int(row["url_hash"] or 0),
                description=row["description"],
                title=row["title"] or "",
                frecency=int(row["frecency"] or 0),
                visit_date=int(row["visit_date"] or 0),
                visit_type=int(row["visit_type"] or 0),
            )
        except (TypeError, ValueError) as e:
            raise SourceReadError(f"Malformed places row for place {row['place_id']}: {e}") from e
