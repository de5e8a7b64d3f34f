"""SQLite-backed gig and bid storage."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any, NoReturn

if TYPE_CHECKING:
    from collections.abc import Iterator


class DuplicateGigError(Exception):
    """Raised when attempting to insert a gig with a duplicate gig_id."""


class DuplicatePendingBidError(Exception):
    """Raised when a write would leave two pending bids for one (gig, freelancer) pair."""


class StaleStateError(Exception):
    """Raised when a guarded write violates a storage-level state constraint."""


GIG_STATUSES: tuple[str, ...] = ("open", "assigned")
BID_STATUSES: tuple[str, ...] = ("pending", "hired", "rejected")

_GIG_COLUMNS: tuple[str, ...] = (
    "gig_id",
    "owner_id",
    "title",
    "description",
    "budget",
    "status",
    "hired_bid_id",
    "created_at",
    "assigned_at",
)
_BID_COLUMNS: tuple[str, ...] = (
    "bid_id",
    "gig_id",
    "freelancer_id",
    "freelancer_name",
    "message",
    "price",
    "status",
    "created_at",
    "updated_at",
)

_GIG_SELECT_SQL = (
    "SELECT gig_id, owner_id, title, description, budget, status, hired_bid_id, "
    "created_at, assigned_at FROM gigs"
)
_BID_SELECT_SQL = (
    "SELECT b.bid_id, b.gig_id, b.freelancer_id, b.freelancer_name, b.message, b.price, "
    "b.status, b.created_at, b.updated_at, g.title AS gig_title, g.status AS gig_status, "
    "g.owner_id AS gig_owner_id "
    "FROM bids b JOIN gigs g ON g.gig_id = b.gig_id"
)


def _row_to_gig(row: sqlite3.Row) -> dict[str, Any]:
    return {column: row[column] for column in _GIG_COLUMNS}


def _row_to_bid(row: sqlite3.Row) -> dict[str, Any]:
    bid = {column: row[column] for column in _BID_COLUMNS}
    bid["gig_title"] = row["gig_title"]
    bid["gig_status"] = row["gig_status"]
    bid["gig_owner_id"] = row["gig_owner_id"]
    return bid


def _raise_for_integrity_error(exc: sqlite3.IntegrityError) -> NoReturn:
    error_msg = str(exc).lower()
    if "unique" in error_msg and "freelancer_id" in error_msg:
        raise DuplicatePendingBidError(
            "A pending bid already exists for this gig and freelancer"
        ) from exc
    if "unique" in error_msg or "check" in error_msg:
        raise StaleStateError(str(exc)) from exc
    raise exc


class StoreTransaction:
    """
    Reads and writes bound to one open ``BEGIN IMMEDIATE`` transaction.

    Only obtainable through ``MarketplaceStore.transaction()``. Every read
    made here sees the same state the writes are applied to.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get_gig(self, gig_id: str) -> dict[str, Any] | None:
        """Fetch a gig by ID."""
        row = self._db.execute(_GIG_SELECT_SQL + " WHERE gig_id = ?", (gig_id,)).fetchone()
        return None if row is None else _row_to_gig(row)

    def get_bid(self, bid_id: str) -> dict[str, Any] | None:
        """Fetch a bid by ID, joined with its gig."""
        row = self._db.execute(_BID_SELECT_SQL + " WHERE b.bid_id = ?", (bid_id,)).fetchone()
        return None if row is None else _row_to_bid(row)

    def find_pending_bid(self, gig_id: str, freelancer_id: str) -> dict[str, Any] | None:
        """Fetch the pending bid for a (gig, freelancer) pair, if any."""
        row = self._db.execute(
            _BID_SELECT_SQL
            + " WHERE b.gig_id = ? AND b.freelancer_id = ? AND b.status = 'pending'",
            (gig_id, freelancer_id),
        ).fetchone()
        return None if row is None else _row_to_bid(row)

    def list_bids(
        self,
        gig_id: str,
        status: str,
        *,
        exclude_bid_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """List a gig's bids in the given status, oldest first."""
        query = _BID_SELECT_SQL + " WHERE b.gig_id = ? AND b.status = ?"
        params: list[object] = [gig_id, status]
        if exclude_bid_id is not None:
            query += " AND b.bid_id != ?"
            params.append(exclude_bid_id)
        query += " ORDER BY b.created_at, b.rowid"
        return [_row_to_bid(row) for row in self._db.execute(query, params).fetchall()]

    def insert_bid(self, bid_data: dict[str, Any]) -> None:
        """Insert a bid row."""
        values = tuple(bid_data[column] for column in _BID_COLUMNS)
        try:
            self._db.execute(
                "INSERT INTO bids ("
                "bid_id, gig_id, freelancer_id, freelancer_name, message, price, status, "
                "created_at, updated_at"
                ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                values,
            )
        except sqlite3.IntegrityError as exc:
            _raise_for_integrity_error(exc)

    def update_gig(
        self,
        gig_id: str,
        updates: dict[str, Any],
        *,
        expected_status: str | None,
    ) -> int:
        """Update gig columns and return the number of affected rows."""
        return self._update("gigs", "gig_id", _GIG_COLUMNS, gig_id, updates, expected_status)

    def update_bid(
        self,
        bid_id: str,
        updates: dict[str, Any],
        *,
        expected_status: str | tuple[str, ...] | None,
    ) -> int:
        """Update bid columns and return the number of affected rows."""
        return self._update("bids", "bid_id", _BID_COLUMNS, bid_id, updates, expected_status)

    def _update(
        self,
        table: str,
        key_column: str,
        allowed_columns: tuple[str, ...],
        key: str,
        updates: dict[str, Any],
        expected_status: str | tuple[str, ...] | None,
    ) -> int:
        if len(updates) == 0:
            return 0

        if any(column not in allowed_columns for column in updates):
            msg = f"Attempted to update unknown {table} column"
            raise ValueError(msg)

        set_clause = ", ".join(f"{column} = ?" for column in updates)
        params: list[object] = list(updates.values())
        query = f"UPDATE {table} SET {set_clause} WHERE {key_column} = ?"  # nosec B608
        params.append(key)

        if isinstance(expected_status, str):
            query += " AND status = ?"
            params.append(expected_status)
        elif expected_status is not None:
            placeholders = ", ".join("?" for _ in expected_status)
            query += f" AND status IN ({placeholders})"
            params.extend(expected_status)

        try:
            cursor = self._db.execute(query, params)
        except sqlite3.IntegrityError as exc:
            _raise_for_integrity_error(exc)
        return int(cursor.rowcount)


class MarketplaceStore:
    """SQLite-backed storage for gigs and bids."""

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                """
                CREATE TABLE IF NOT EXISTS gigs (
                    gig_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    budget REAL NOT NULL CHECK (budget > 0),
                    status TEXT NOT NULL DEFAULT 'open'
                        CHECK (status IN ('open', 'assigned')),
                    hired_bid_id TEXT,
                    created_at TEXT NOT NULL,
                    assigned_at TEXT
                );

                CREATE TABLE IF NOT EXISTS bids (
                    bid_id TEXT PRIMARY KEY,
                    gig_id TEXT NOT NULL REFERENCES gigs(gig_id),
                    freelancer_id TEXT NOT NULL,
                    freelancer_name TEXT NOT NULL,
                    message TEXT NOT NULL,
                    price REAL NOT NULL CHECK (price > 0),
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'hired', 'rejected')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE UNIQUE INDEX IF NOT EXISTS ux_pending_bid_per_gig_freelancer
                    ON bids(gig_id, freelancer_id)
                    WHERE status = 'pending';

                CREATE UNIQUE INDEX IF NOT EXISTS ux_hired_bid_per_gig
                    ON bids(gig_id)
                    WHERE status = 'hired';

                CREATE INDEX IF NOT EXISTS ix_bids_gig_freelancer_status
                    ON bids(gig_id, freelancer_id, status);

                CREATE INDEX IF NOT EXISTS ix_bids_freelancer_created
                    ON bids(freelancer_id, created_at);

                CREATE INDEX IF NOT EXISTS ix_gigs_status_created
                    ON gigs(status, created_at);

                CREATE INDEX IF NOT EXISTS ix_gigs_owner_created
                    ON gigs(owner_id, created_at);
                """
            )
            self._db.commit()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """
        Run a block as one serializable write unit.

        Commits when the block exits normally; rolls back and re-raises on
        any exception, leaving no partial effect.
        """
        with self._lock:
            self._db.execute("BEGIN IMMEDIATE")
            try:
                yield StoreTransaction(self._db)
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise
            try:
                self._db.commit()
            except sqlite3.Error:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise

    # ------------------------------------------------------------------
    # Gigs
    # ------------------------------------------------------------------

    def insert_gig(self, gig_data: dict[str, Any]) -> None:
        """Insert a new gig row."""
        values = tuple(gig_data[column] for column in _GIG_COLUMNS)

        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(
                    "INSERT INTO gigs ("
                    "gig_id, owner_id, title, description, budget, status, hired_bid_id, "
                    "created_at, assigned_at"
                    ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
                self._db.commit()
            except sqlite3.IntegrityError as exc:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                if "unique" in str(exc).lower():
                    raise DuplicateGigError(
                        f"A gig with gig_id={gig_data['gig_id']} already exists"
                    ) from exc
                raise
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise

    def get_gig(self, gig_id: str) -> dict[str, Any] | None:
        """Fetch a gig by ID."""
        with self._lock:
            row = self._db.execute(_GIG_SELECT_SQL + " WHERE gig_id = ?", (gig_id,)).fetchone()
        return None if row is None else _row_to_gig(row)

    def list_gigs(
        self,
        status: str | None,
        owner_id: str | None,
        search: str | None,
        limit: int | None,
        offset: int | None,
    ) -> list[dict[str, Any]]:
        """List gigs with optional filters, newest first."""
        query = _GIG_SELECT_SQL
        clauses: list[str] = []
        params: list[object] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(owner_id)
        if search:
            escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            clauses.append("title LIKE ? ESCAPE '\\'")
            params.append(f"%{escaped}%")

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY created_at DESC, rowid DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        elif offset is not None:
            query += " LIMIT -1"
        if offset is not None:
            query += " OFFSET ?"
            params.append(offset)

        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [_row_to_gig(row) for row in rows]

    def count_gigs_by_status(self) -> dict[str, int]:
        """Count gigs grouped by status, zero-filled."""
        counts = dict.fromkeys(GIG_STATUSES, 0)
        with self._lock:
            rows = self._db.execute("SELECT status, COUNT(*) FROM gigs GROUP BY status").fetchall()
        counts.update({str(row[0]): int(row[1]) for row in rows})
        return counts

    # ------------------------------------------------------------------
    # Bids
    # ------------------------------------------------------------------

    def get_bid(self, bid_id: str) -> dict[str, Any] | None:
        """Fetch a bid by ID, joined with its gig."""
        with self._lock:
            row = self._db.execute(_BID_SELECT_SQL + " WHERE b.bid_id = ?", (bid_id,)).fetchone()
        return None if row is None else _row_to_bid(row)

    def list_bids_for_gig(self, gig_id: str) -> list[dict[str, Any]]:
        """Fetch all bids for a gig, newest first."""
        with self._lock:
            rows = self._db.execute(
                _BID_SELECT_SQL
                + " WHERE b.gig_id = ? ORDER BY b.created_at DESC, b.rowid DESC",
                (gig_id,),
            ).fetchall()
        return [_row_to_bid(row) for row in rows]

    def list_bids_for_freelancer(self, freelancer_id: str) -> list[dict[str, Any]]:
        """Fetch all bids placed by a freelancer, newest first."""
        with self._lock:
            rows = self._db.execute(
                _BID_SELECT_SQL
                + " WHERE b.freelancer_id = ? ORDER BY b.created_at DESC, b.rowid DESC",
                (freelancer_id,),
            ).fetchall()
        return [_row_to_bid(row) for row in rows]

    def count_bids_by_status(self) -> dict[str, int]:
        """Count bids grouped by status, zero-filled."""
        counts = dict.fromkeys(BID_STATUSES, 0)
        with self._lock:
            rows = self._db.execute("SELECT status, COUNT(*) FROM bids GROUP BY status").fetchall()
        counts.update({str(row[0]): int(row[1]) for row in rows})
        return counts

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
