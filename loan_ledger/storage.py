"""
Storage Backend Module

Provides the abstract storage interface consumed by the loan ledger and two
implementations: in-memory (testing) and SQLite (persistence). Records are
JSON documents; monetary values are stored as Decimal strings.

Loans are written with versioned compare-and-swap saves so concurrent
writers on the same loan cannot silently overwrite each other. A transaction
holds the backend lock from ``begin_transaction`` until ``commit`` or
``rollback``, so one writer's rollback never touches another writer's data.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager

from .exceptions import ConcurrentModification

Document = Dict[str, Any]


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Document:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result


def _copy(document: Document) -> Document:
    return json.loads(json.dumps(document, default=str))


def _matches(document: Document, filters: Dict[str, Any]) -> bool:
    return all(key in document and document[key] == value for key, value in filters.items())


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        """Save a record unconditionally"""

    @abstractmethod
    def save_versioned(
        self,
        table: str,
        record_id: str,
        data: Document,
        expected_version: Optional[int]
    ) -> None:
        """
        Save a record only if the stored version matches

        ``expected_version`` of None means the record must not exist yet.
        The new version is taken from ``data['version']``.

        Raises:
            ConcurrentModification: if another writer got there first
        """

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        """Load a record, or None if absent"""

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        """Load all records from a table"""

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        """Records whose fields equal every filter value"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    @abstractmethod
    def close(self) -> None:
        """Release backend resources"""

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a transaction and take exclusive use of the backend"""

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction and release the backend"""

    @abstractmethod
    def rollback(self) -> None:
        """Undo the current transaction and release the backend"""

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except BaseException:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Document]]] = None
        self._depth = 0

    def _table(self, table: str) -> Dict[str, Document]:
        return self._data.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            self._table(table)[record_id] = _copy(data)

    def save_versioned(
        self,
        table: str,
        record_id: str,
        data: Document,
        expected_version: Optional[int]
    ) -> None:
        """Compare-and-swap save guarded by the storage lock"""
        with self._lock:
            current = self._table(table).get(record_id)
            actual = current.get('version') if current is not None else None
            if actual != expected_version:
                raise ConcurrentModification(record_id, expected_version, actual)
            self._table(table)[record_id] = _copy(data)

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            record = self._table(table).get(record_id)
            return _copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            return [_copy(record) for record in self._table(table).values()]

    def begin_transaction(self) -> None:
        """Lock the store and snapshot it for a possible rollback"""
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = _copy(self._data)
        self._depth += 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        # Inner blocks only unwind; the outermost one restores the snapshot
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self._data = self._snapshot
            self._snapshot = None
        self._lock.release()

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # DEFERRED isolation so transactions are controlled manually
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._tables: set = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Create the document table on first use"""
        if table in self._tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                version INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._connection.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        self._commit_unless_in_transaction()
        self._tables.add(table)

    def _commit_unless_in_transaction(self) -> None:
        if self._depth == 0:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, version, created_at, updated_at)
                VALUES (?, ?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, json.dumps(data, default=str), data.get('version'), record_id, now, now))
            self._commit_unless_in_transaction()

    def save_versioned(
        self,
        table: str,
        record_id: str,
        data: Document,
        expected_version: Optional[int]
    ) -> None:
        """Conditional INSERT/UPDATE keyed on the stored version column"""
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)

            if expected_version is None:
                try:
                    self._connection.execute(f"""
                        INSERT INTO {table} (id, data, version, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                    """, (record_id, data_json, data.get('version'), now, now))
                except sqlite3.IntegrityError:
                    raise ConcurrentModification(
                        record_id, expected_version, self._stored_version(table, record_id)
                    )
            else:
                cursor = self._connection.execute(f"""
                    UPDATE {table} SET data = ?, version = ?, updated_at = ?
                    WHERE id = ? AND version = ?
                """, (data_json, data.get('version'), now, record_id, expected_version))
                if cursor.rowcount == 0:
                    raise ConcurrentModification(
                        record_id, expected_version, self._stored_version(table, record_id)
                    )
            self._commit_unless_in_transaction()

    def _stored_version(self, table: str, record_id: str) -> Optional[int]:
        row = self._connection.execute(
            f"SELECT version FROM {table} WHERE id = ?", (record_id,)
        ).fetchone()
        return row['version'] if row else None

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"SELECT data FROM {table} ORDER BY created_at")
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def begin_transaction(self) -> None:
        """Lock the connection; DEFERRED isolation opens the transaction on the first write"""
        self._lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        if self._depth == 1:
            self._connection.commit()
        self._depth -= 1
        self._lock.release()

    def rollback(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self._connection.rollback()
            # Tables created inside the transaction are gone again
            self._tables.clear()
        self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL

    ``memory://`` gives an InMemoryStorage, ``sqlite:///path`` (or
    ``sqlite://`` for an in-memory database) a SQLiteStorage.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
