"""Append-only datom store backed by a single SQLite file.

Batches arrive as EDN text, a vector of ``[:db/add e a v]`` statements.
``e`` is either a tempid string, resolved to a fresh entid in the user
partition, or the entid of an entity committed by an earlier batch. A batch
is validated in full before anything is written, and is then written in one
SQLite transaction, so it lands completely or not at all.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from importlib import resources
from pathlib import Path

import edn_format

from places_transact.exceptions import SchemaError, StoreError, TransactError
from places_transact.store.base import BaseStore, TxReport

logger = logging.getLogger(__name__)

DB_PARTITION_START = 0
USER_PARTITION_START = 0x10000
TX_PARTITION_START = 0x10000000

VALUE_TYPES = {
    ":db.type/string",
    ":db.type/long",
    ":db.type/double",
    ":db.type/boolean",
    ":db.type/instant",
    ":db.type/keyword",
    ":db.type/ref",
}
CARDINALITIES = {":db.cardinality/one", ":db.cardinality/many"}
UNIQUENESS = {":db.unique/value", ":db.unique/identity"}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TABLES = """
CREATE TABLE IF NOT EXISTS partitions (
    name TEXT PRIMARY KEY,
    next_entid INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS idents (
    ident TEXT PRIMARY KEY,
    entid INTEGER NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS attributes (
    entid INTEGER PRIMARY KEY,
    value_type TEXT NOT NULL,
    cardinality TEXT NOT NULL,
    uniqueness TEXT,
    indexed INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS transactions (
    tx INTEGER PRIMARY KEY,
    tx_instant INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS datoms (
    e INTEGER NOT NULL,
    a INTEGER NOT NULL,
    v,
    tx INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_datoms_ea ON datoms (e, a);
CREATE INDEX IF NOT EXISTS idx_datoms_av ON datoms (a, v);
"""


@dataclass(frozen=True)
class InstantMicros:
    """Value of an ``#instmicros`` tagged element."""

    micros: int


edn_format.add_tag("instmicros", InstantMicros)


@dataclass(frozen=True)
class Attribute:
    entid: int
    ident: str
    value_type: str
    cardinality: str
    uniqueness: str | None = None
    indexed: bool = False

    @property
    def many(self) -> bool:
        return self.cardinality == ":db.cardinality/many"


@dataclass(frozen=True)
class _TempRef:
    """A ref value naming a tempid of the same batch."""

    tempid: str


def load_default_schema() -> str:
    """Return the bundled places schema definition."""
    return resources.files("places_transact.store").joinpath("places.schema").read_text(encoding="utf-8")


def _ident(value) -> str | None:
    if isinstance(value, edn_format.Keyword):
        return f":{value.name}"
    return None


def _is_vector(value) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str)


def _is_long(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class SQLiteDatomStore(BaseStore):
    """Datom store persisted in SQLite."""

    def __init__(self, path: Path | str, timeout: float = 5.0):
        self.path = path
        try:
            self._conn = sqlite3.connect(str(path), timeout=timeout)
            self._conn.executescript(_TABLES)
            with self._conn:
                self._conn.executemany(
                    "INSERT OR IGNORE INTO partitions (name, next_entid) VALUES (?, ?)",
                    [
                        ("db", DB_PARTITION_START),
                        ("user", USER_PARTITION_START),
                        ("tx", TX_PARTITION_START),
                    ],
                )
            self._idents = dict(self._conn.execute("SELECT ident, entid FROM idents").fetchall())
            self._attributes = self._load_attributes()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open datom store at {path}: {e}") from e

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def bootstrap_schema(self, schema: str) -> None:
        if self._idents:
            raise SchemaError("Schema has already been bootstrapped")
        try:
            has_data = self.datom_count() > 0
            next_entid = self._next_entid("db")
        except sqlite3.Error as e:
            raise SchemaError(f"Failed reading store state: {e}") from e
        if has_data:
            raise SchemaError("Schema must be bootstrapped before any data is transacted")

        try:
            entries = edn_format.loads(schema)
        except Exception as e:
            raise SchemaError(f"Cannot parse schema: {e}") from e
        if not _is_vector(entries):
            raise SchemaError("Schema must be a vector of maps")

        idents: dict[str, int] = {}
        attributes: list[Attribute] = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                raise SchemaError(f"Schema entry is not a map: {entry!r}")
            fields = {_ident(k): v for k, v in entry.items()}
            ident = _ident(fields.get(":db/ident"))
            if ident is None:
                raise SchemaError(f"Schema entry without :db/ident: {entry!r}")
            if ident in idents:
                raise SchemaError(f"Duplicate schema ident {ident}")

            idents[ident] = next_entid
            next_entid += 1
            if ":db/valueType" in fields:
                attributes.append(self._parse_attribute(idents[ident], ident, fields))

        try:
            with self._conn:
                self._conn.executemany("INSERT INTO idents (ident, entid) VALUES (?, ?)", idents.items())
                self._conn.executemany(
                    "INSERT INTO attributes (entid, value_type, cardinality, uniqueness, indexed) "
                    "VALUES (?, ?, ?, ?, ?)",
                    [(a.entid, a.value_type, a.cardinality, a.uniqueness, int(a.indexed)) for a in attributes],
                )
                self._set_next_entid("db", next_entid)
        except sqlite3.Error as e:
            raise SchemaError(f"Failed writing schema: {e}") from e

        self._idents = idents
        self._attributes = {a.ident: a for a in attributes}
        logger.info("Bootstrapped schema: %d idents, %d attributes", len(idents), len(attributes))

    def apply_batch(self, statements: str) -> TxReport:
        if not self._attributes:
            raise TransactError("Schema has not been bootstrapped")
        try:
            batch = edn_format.loads(statements)
        except Exception as e:
            raise TransactError(f"Cannot parse batch: {e}") from e
        if not _is_vector(batch):
            raise TransactError("Batch must be a vector of statements")

        try:
            return self._transact(batch)
        except sqlite3.Error as e:
            raise TransactError(f"Failed applying transaction: {e}") from e

    def entid(self, ident: str) -> int | None:
        return self._idents.get(ident)

    def datom_count(self) -> int:
        return self._conn.execute("SELECT count(*) FROM datoms").fetchone()[0]

    def transaction_count(self) -> int:
        return self._conn.execute("SELECT count(*) FROM transactions").fetchone()[0]

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _transact(self, batch) -> TxReport:
        """Resolve, validate and write one parsed batch; SQLite errors propagate."""
        next_user = self._next_entid("user")
        terms = [self._parse_term(term, next_user) for term in batch]

        tempids: dict[str, int] = {}
        for entity, _, _ in terms:
            if isinstance(entity, str) and entity not in tempids:
                tempids[entity] = next_user
                next_user += 1
        for _, _, value in terms:
            if isinstance(value, _TempRef) and value.tempid not in tempids:
                raise TransactError(f"Tempid {value.tempid!r} is only used as a value")

        datoms = self._resolve_datoms(terms, tempids)
        tx = self._next_entid("tx")
        with self._conn:
            self._conn.execute(
                "INSERT INTO transactions (tx, tx_instant) VALUES (?, ?)",
                (tx, time.time_ns() // 1000),
            )
            self._conn.executemany(
                "INSERT INTO datoms (e, a, v, tx) VALUES (?, ?, ?, ?)",
                [(e, a, v, tx) for e, a, v in datoms],
            )
            self._set_next_entid("user", next_user)
            self._set_next_entid("tx", tx + 1)

        logger.debug("Applied tx %d: %d datoms, %d tempids", tx, len(datoms), len(tempids))
        return TxReport(tx_id=tx, tempids=tempids, datom_count=len(datoms))

    def _load_attributes(self) -> dict[str, Attribute]:
        rows = self._conn.execute(
            """
            SELECT i.ident, a.entid, a.value_type, a.cardinality, a.uniqueness, a.indexed
            FROM attributes a
            JOIN idents i ON i.entid = a.entid
            """
        ).fetchall()
        return {
            ident: Attribute(entid, ident, value_type, cardinality, uniqueness, bool(indexed))
            for ident, entid, value_type, cardinality, uniqueness, indexed in rows
        }

    def _next_entid(self, partition: str) -> int:
        return self._conn.execute(
            "SELECT next_entid FROM partitions WHERE name = ?", (partition,)
        ).fetchone()[0]

    def _set_next_entid(self, partition: str, next_entid: int) -> None:
        self._conn.execute("UPDATE partitions SET next_entid = ? WHERE name = ?", (next_entid, partition))

    @staticmethod
    def _parse_attribute(entid: int, ident: str, fields: dict) -> Attribute:
        value_type = _ident(fields.get(":db/valueType"))
        if value_type not in VALUE_TYPES:
            raise SchemaError(f"{ident}: unsupported value type {fields.get(':db/valueType')!r}")
        cardinality = _ident(fields.get(":db/cardinality"))
        if cardinality not in CARDINALITIES:
            raise SchemaError(f"{ident}: missing or invalid :db/cardinality")
        uniqueness = _ident(fields.get(":db/unique"))
        if ":db/unique" in fields and uniqueness not in UNIQUENESS:
            raise SchemaError(f"{ident}: invalid :db/unique {fields[':db/unique']!r}")
        return Attribute(
            entid=entid,
            ident=ident,
            value_type=value_type,
            cardinality=cardinality,
            uniqueness=uniqueness,
            indexed=bool(fields.get(":db/index", False)),
        )

    def _parse_term(self, term, next_user: int):
        if not _is_vector(term) or len(term) != 4:
            raise TransactError(f"Malformed statement: {term!r}")
        op, entity, attr, value = term
        if _ident(op) != ":db/add":
            raise TransactError(f"Unsupported operation {op!r}; only :db/add is accepted")

        if not isinstance(entity, str):
            self._check_entid(entity, next_user)

        attr_ident = _ident(attr)
        attribute = self._attributes.get(attr_ident)
        if attribute is None:
            raise TransactError(f"Unknown attribute {attr!r}")
        return entity, attribute, self._coerce_value(attribute, value, next_user)

    @staticmethod
    def _check_entid(entid, next_user: int) -> None:
        if not _is_long(entid) or not USER_PARTITION_START <= entid < next_user:
            raise TransactError(f"Unknown entity {entid!r}")

    def _coerce_value(self, attribute: Attribute, value, next_user: int):
        value_type = attribute.value_type
        if value_type == ":db.type/string" and isinstance(value, str):
            return value
        if value_type == ":db.type/long" and _is_long(value):
            return value
        if value_type == ":db.type/double" and (_is_long(value) or isinstance(value, float)):
            return float(value)
        if value_type == ":db.type/boolean" and isinstance(value, bool):
            return int(value)
        if value_type == ":db.type/keyword" and _ident(value) is not None:
            return _ident(value)
        if value_type == ":db.type/instant":
            if isinstance(value, InstantMicros):
                return value.micros
            if isinstance(value, datetime):
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
                return (value - _EPOCH) // timedelta(microseconds=1)
        if value_type == ":db.type/ref":
            if isinstance(value, str):
                return _TempRef(value)
            if _is_long(value):
                self._check_entid(value, next_user)
                return value
            ident = _ident(value)
            if ident is not None:
                if ident not in self._idents:
                    raise TransactError(f"Unknown ident {ident} for {attribute.ident}")
                return self._idents[ident]
        raise TransactError(f"Value {value!r} does not match {value_type} of {attribute.ident}")

    def _resolve_datoms(self, terms, tempids: dict[str, int]) -> list[tuple[int, int, object]]:
        datoms: list[tuple[int, int, object]] = []
        seen: set[tuple[int, int, object]] = set()
        single: dict[tuple[int, int], object] = {}
        unique: dict[tuple[int, object], int] = {}
        fresh = set(tempids.values())

        for entity, attribute, value in terms:
            e = tempids[entity] if isinstance(entity, str) else entity
            v = tempids[value.tempid] if isinstance(value, _TempRef) else value
            a = attribute.entid
            if (e, a, v) in seen:
                continue

            if not attribute.many:
                previous = single.get((e, a))
                if previous is None and e not in fresh:
                    row = self._conn.execute(
                        "SELECT v FROM datoms WHERE e = ? AND a = ? LIMIT 1", (e, a)
                    ).fetchone()
                    previous = row[0] if row else None
                if previous is not None and previous != v:
                    raise TransactError(
                        f"Cardinality conflict on {attribute.ident} for entity {e}: {previous!r} vs {v!r}"
                    )
                single[(e, a)] = v
                if previous is not None:
                    continue

            if attribute.uniqueness:
                owner = unique.get((a, v))
                if owner is None:
                    row = self._conn.execute(
                        "SELECT e FROM datoms WHERE a = ? AND v = ? LIMIT 1", (a, v)
                    ).fetchone()
                    owner = row[0] if row else None
                if owner is not None and owner != e:
                    raise TransactError(f"Unique value {v!r} of {attribute.ident} already belongs to entity {owner}")
                unique[(a, v)] = e

            seen.add((e, a, v))
            datoms.append((e, a, v))
        return datoms
