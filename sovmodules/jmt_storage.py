"""Storage backed by an on-disk key-value database with transaction and batch caches."""

from __future__ import annotations

import contextlib
import hashlib
import shutil
import sqlite3
from os import PathLike
from pathlib import Path

from .cache import FirstReads, StorageInternalCache, ValueReader
from .storage import Storage, StorageKey, StorageValue

_DB_FILE = "state.db"
_VERSION = 0

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS preimages ("
    " key_hash BLOB PRIMARY KEY, key BLOB NOT NULL)",
    "CREATE TABLE IF NOT EXISTS jmt_values ("
    " version INTEGER NOT NULL, key_hash BLOB NOT NULL, value BLOB,"
    " PRIMARY KEY (version, key_hash))",
)


def _key_hash(key: bytes) -> bytes:
    return hashlib.sha256(key).digest()


class _StateDB(ValueReader):
    """Versioned values indexed by key hash, with key preimages."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        with self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    @classmethod
    def temporary(cls) -> _StateDB:
        return cls(sqlite3.connect(":memory:"))

    @classmethod
    def with_path(cls, path: str | PathLike[str]) -> _StateDB:
        directory = Path(path)
        directory.mkdir(parents=True, exist_ok=True)
        return cls(sqlite3.connect(directory / _DB_FILE))

    def read_value(self, key: StorageKey) -> StorageValue | None:
        row = self._conn.execute(
            "SELECT value FROM jmt_values WHERE key_hash = ? AND version <= ?"
            " ORDER BY version DESC LIMIT 1",
            (_key_hash(bytes(key)), _VERSION),
        ).fetchone()
        if row is None or row[0] is None:
            return None
        return StorageValue(row[0])

    def write_batch(self, writes: list[tuple[StorageKey, StorageValue | None]]) -> None:
        with self._conn:
            for key, value in writes:
                key_hash = _key_hash(bytes(key))
                self._conn.execute(
                    "INSERT OR REPLACE INTO preimages (key_hash, key) VALUES (?, ?)",
                    (key_hash, bytes(key)),
                )
                self._conn.execute(
                    "INSERT OR REPLACE INTO jmt_values (version, key_hash, value)"
                    " VALUES (?, ?, ?)",
                    (_VERSION, key_hash, None if value is None else bytes(value)),
                )


class JmtStorage(Storage):
    """Native storage: reads go through a transaction cache to the database.

    Share one instance to share its caches and database.
    """

    def __init__(self, db: _StateDB) -> None:
        self._db = db
        self._batch_cache = StorageInternalCache()
        self._tx_cache = StorageInternalCache()

    @classmethod
    def temporary(cls) -> JmtStorage:
        """Create storage over an in-memory database."""
        return cls(_StateDB.temporary())

    @classmethod
    def with_path(cls, path: str | PathLike[str]) -> JmtStorage:
        """Open storage whose database lives in the directory `path`."""
        return cls(_StateDB.with_path(path))

    def get_first_reads(self) -> FirstReads:
        """Return the first reads recorded by the transaction cache."""
        return self._tx_cache.log.get_first_reads()

    def get(self, key: StorageKey) -> StorageValue | None:
        return self._tx_cache.get_or_fetch(key, self._db)

    def set(self, key: StorageKey, value: StorageValue) -> None:
        self._tx_cache.set(key, value)

    def delete(self, key: StorageKey) -> None:
        self._tx_cache.delete(key)

    def merge(self) -> None:
        self._batch_cache.merge(self._tx_cache)

    def finalize(self) -> None:
        self._db.write_batch(self._batch_cache.log.drain_writes())


def delete_storage(path: str | PathLike[str]) -> None:
    """Remove a storage directory or file, ignoring any failure."""
    target = Path(path)
    try:
        shutil.rmtree(target)
    except OSError:
        with contextlib.suppress(OSError):
            target.unlink()