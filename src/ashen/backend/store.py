"""SQLite-backed table store with a small query interface and realtime hooks.

The database lives at ``{project_root}/.ashen/ashen.db``.  Every named
table holds JSON documents keyed by ``id``; filters, ordering and limits
are evaluated with SQLite's JSON functions.  Insert and update events are
published to in-process subscribers after the write commits.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Iterable

from ashen.core.config import get_ashen_dir, load_config
from ashen.core.errors import BackendError, ConflictError

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Subscriber = Callable[[str, Row], None]

_TABLE_RE = re.compile(r"^[a-z][a-z0-9_]{0,62}$")
_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

EVENTS = ("insert", "update")
WRITE_OPS = frozenset({"insert", "update", "delete"})


class Backend:
    """Thread-safe document tables on top of SQLite.

    Usage::

        backend = Backend(project_path)
        backend.insert("error_logs", {"component_path": "src/App.tsx", ...})
        rows = backend.select("error_logs", eq={"status": "open"},
                              order_by="created_at", desc=True, limit=100)
    """

    def __init__(
        self,
        project_path: Path | None = None,
        db_path: Path | None = None,
    ) -> None:
        self._ashen_dir = get_ashen_dir(project_path)
        if db_path is None:
            cfg = load_config(project_path)
            db_path = self._ashen_dir / cfg.storage.database
        self._db_path = db_path
        self._lock = threading.Lock()
        self._known_tables: set[str] = set()
        self._subscribers: dict[tuple[str, str], list[Subscriber]] = defaultdict(list)

    @property
    def path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=10, isolation_level=None)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_table(self, conn: sqlite3.Connection, table: str) -> None:
        if table in self._known_tables:
            return
        conn.execute(
            f'CREATE TABLE IF NOT EXISTS "{table}" ('
            "  id   TEXT PRIMARY KEY,"
            "  data TEXT NOT NULL,"
            "  seq  INTEGER NOT NULL"
            ")"
        )
        self._known_tables.add(table)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, Iterable[Any]] | None = None,
        order_by: str | None = None,
        desc: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every equality and inclusion filter."""
        _check_table(table)
        where, params = _where(eq, in_)
        query = f'SELECT data FROM "{table}"{where}'
        if order_by:
            _check_field(order_by)
            direction = "DESC" if desc else "ASC"
            query += f" ORDER BY json_extract(data, '$.{order_by}') {direction}, seq {direction}"
        else:
            query += " ORDER BY seq ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        with self._guard("select", table) as conn:
            rows = conn.execute(query, params).fetchall()
        return [json.loads(r["data"]) for r in rows]

    def get(self, table: str, row_id: str) -> Row | None:
        rows = self.select(table, eq={"id": row_id}, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        """Insert one or more rows; rows without an ``id`` get a fresh one."""
        _check_table(table)
        batch = [dict(r) for r in (rows if isinstance(rows, list) else [rows])]
        for row in batch:
            row.setdefault("id", uuid.uuid4().hex)

        with self._guard("insert", table) as conn:
            seq = self._next_seq(conn, table)
            for offset, row in enumerate(batch):
                conn.execute(
                    f'INSERT INTO "{table}" (id, data, seq) VALUES (?, ?, ?)',
                    (str(row["id"]), _dumps(row), seq + offset),
                )

        for row in batch:
            self._publish(table, "insert", row)
        return batch

    def update(self, table: str, values: Row, *, eq: dict[str, Any]) -> list[Row]:
        """Merge *values* into every row matching *eq*.  Returns updated rows.

        The read and the write share one immediate transaction, so a filter
        on a status field acts as a compare-and-set across processes.
        """
        _check_table(table)
        if not eq:
            raise BackendError("update requires at least one equality filter")
        values = {k: v for k, v in values.items() if k != "id"}
        where, params = _where(eq, None)

        updated: list[Row] = []
        with self._guard("update", table) as conn:
            rows = conn.execute(f'SELECT data FROM "{table}"{where}', params).fetchall()
            for r in rows:
                row = json.loads(r["data"])
                row.update(values)
                conn.execute(
                    f'UPDATE "{table}" SET data = ? WHERE id = ?',
                    (_dumps(row), str(row["id"])),
                )
                updated.append(row)

        for row in updated:
            self._publish(table, "update", row)
        return updated

    def upsert(self, table: str, row: Row, *, on: str = "id") -> Row:
        """Insert *row*, or merge it into the existing row sharing field *on*."""
        _check_field(on)
        if on not in row:
            raise BackendError(f"upsert row has no {on!r} field")
        existing = self.select(table, eq={on: row[on]}, limit=1)
        if existing:
            return self.update(table, row, eq={"id": existing[0]["id"]})[0]
        return self.insert(table, row)[0]

    def delete(self, table: str, *, eq: dict[str, Any]) -> int:
        """Delete rows matching *eq*.  Returns the number removed."""
        _check_table(table)
        if not eq:
            raise BackendError("delete requires at least one equality filter")
        where, params = _where(eq, None)
        with self._guard("delete", table) as conn:
            cur = conn.execute(f'DELETE FROM "{table}"{where}', params)
            return cur.rowcount

    def count(self, table: str, *, eq: dict[str, Any] | None = None) -> int:
        _check_table(table)
        where, params = _where(eq, None)
        with self._guard("count", table) as conn:
            row = conn.execute(f'SELECT COUNT(*) AS cnt FROM "{table}"{where}', params).fetchone()
        return row["cnt"] if row else 0

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    def subscribe(
        self,
        table: str,
        callback: Subscriber,
        event: str = "insert",
    ) -> Callable[[], None]:
        """Call *callback(event, row)* after each *event* on *table*.

        Returns a function that removes the subscription.
        """
        _check_table(table)
        if event not in EVENTS:
            raise BackendError(f"Unknown realtime event {event!r}")
        key = (table, event)
        with self._lock:
            self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[key]:
                    self._subscribers[key].remove(callback)

        return unsubscribe

    def _publish(self, table: str, event: str, row: Row) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get((table, event), ()))
        for callback in callbacks:
            try:
                callback(event, dict(row))
            except Exception:
                logger.exception("Subscriber for %s:%s raised", table, event)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _next_seq(self, conn: sqlite3.Connection, table: str) -> int:
        row = conn.execute(f'SELECT COALESCE(MAX(seq), 0) AS seq FROM "{table}"').fetchone()
        return row["seq"] + 1

    def _guard(self, op: str, table: str) -> _Transaction:
        return _Transaction(self, op, table)


class _Transaction:
    """Locks the store, opens a connection and maps sqlite errors."""

    def __init__(self, backend: Backend, op: str, table: str) -> None:
        self._backend = backend
        self._op = op
        self._table = table
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> sqlite3.Connection:
        self._backend._lock.acquire()
        try:
            self._conn = self._backend._connect()
            if self._op in WRITE_OPS:
                self._conn.execute("BEGIN IMMEDIATE")
            self._backend._ensure_table(self._conn, self._table)
        except sqlite3.Error as e:
            self._backend._lock.release()
            raise BackendError(f"{self._op} on {self._table} failed: {e}") from e
        return self._conn

    def __exit__(self, exc_type, exc, tb) -> bool:
        conn = self._conn
        try:
            if conn is not None:
                if exc_type is None:
                    conn.commit()
                else:
                    conn.rollback()
                    # A table created by this transaction is gone again.
                    self._backend._known_tables.discard(self._table)
                conn.close()
        except sqlite3.Error as e:
            raise BackendError(f"{self._op} on {self._table} failed: {e}") from e
        finally:
            self._backend._lock.release()
        if exc_type is not None and issubclass(exc_type, sqlite3.IntegrityError):
            raise ConflictError(f"{self._op} on {self._table} failed: {exc}") from exc
        if exc_type is not None and issubclass(exc_type, sqlite3.Error):
            raise BackendError(f"{self._op} on {self._table} failed: {exc}") from exc
        return False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _check_table(table: str) -> None:
    if not _TABLE_RE.match(table):
        raise BackendError(f"Invalid table name {table!r}")


def _check_field(name: str) -> None:
    if not _FIELD_RE.match(name):
        raise BackendError(f"Invalid field name {name!r}")


def _where(
    eq: dict[str, Any] | None,
    in_: dict[str, Iterable[Any]] | None,
) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for name, value in (eq or {}).items():
        _check_field(name)
        if name == "id":
            clauses.append("id = ?")
            params.append(str(value))
        elif value is None:
            clauses.append(f"json_extract(data, '$.{name}') IS NULL")
        else:
            clauses.append(f"json_extract(data, '$.{name}') = ?")
            params.append(value)
    for name, values in (in_ or {}).items():
        _check_field(name)
        values = list(values)
        if not values:
            clauses.append("0")
            continue
        marks = ", ".join("?" for _ in values)
        column = "id" if name == "id" else f"json_extract(data, '$.{name}')"
        clauses.append(f"{column} IN ({marks})")
        params.extend(values)
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def _dumps(row: Row) -> str:
    try:
        return json.dumps(row, default=str)
    except (TypeError, ValueError) as e:
        raise BackendError(f"Row is not JSON serialisable: {e}") from e
