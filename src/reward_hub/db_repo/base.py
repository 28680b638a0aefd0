from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path

from reward_hub.events import ChangeFeed, document_topic

logger = logging.getLogger(__name__)


class TrackedConnection(sqlite3.Connection):
    """Connection that remembers which collections and documents it wrote."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.touched: set[str] = set()


def mark_touched(conn: sqlite3.Connection, collection: str, doc_id: str | None = None) -> None:
    touched = getattr(conn, "touched", None)
    if touched is None:
        return
    touched.add(collection)
    if doc_id is not None:
        touched.add(document_topic(collection, doc_id))


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.changes = ChangeFeed()
        self._init_db()

    def _connect(self) -> TrackedConnection:
        conn = sqlite3.connect(self.path, timeout=30, isolation_level=None, factory=TrackedConnection)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Atomic read-modify-write scope.

        ``BEGIN IMMEDIATE`` takes the database write lock up front, so
        concurrent transactions on the same records are serialized. Any
        exception rolls every write back; subscribers are notified only
        after a successful commit.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except sqlite3.Error:
                logger.exception("store write failed, rolling back")
                conn.execute("ROLLBACK")
                raise
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            touched = set(conn.touched)
        finally:
            conn.close()
        self.changes.publish(touched)

    @contextmanager
    def _reading(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with closing(self._connect()) as own:
            yield own

    @contextmanager
    def _writing(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.transaction() as own:
            yield own

    def _init_db(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, list[str]] = {
                1: [
                    """
                    CREATE TABLE accounts (
                        uid TEXT PRIMARY KEY,
                        email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                        password_hash TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """,
                    """
                    CREATE TABLE sessions (
                        token TEXT PRIMARY KEY,
                        uid TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """,
                    """
                    CREATE TABLE users (
                        uid TEXT PRIMARY KEY,
                        email TEXT NOT NULL,
                        balance REAL NOT NULL DEFAULT 0 CHECK(balance >= 0),
                        referral_code TEXT UNIQUE,
                        referred_by TEXT,
                        completed_task_ids TEXT NOT NULL DEFAULT '[]',
                        is_admin INTEGER NOT NULL DEFAULT 0,
                        is_banned INTEGER NOT NULL DEFAULT 0,
                        joined_at TEXT NOT NULL,
                        referral_count INTEGER NOT NULL DEFAULT 0,
                        energy INTEGER NOT NULL DEFAULT 100 CHECK(energy >= 0),
                        max_energy INTEGER NOT NULL DEFAULT 100,
                        xp INTEGER NOT NULL DEFAULT 0,
                        level INTEGER NOT NULL DEFAULT 1,
                        mining_power INTEGER NOT NULL DEFAULT 1,
                        last_daily_bonus TEXT,
                        daily_streak INTEGER NOT NULL DEFAULT 0,
                        spins_available INTEGER NOT NULL DEFAULT 0,
                        daily_refill_count INTEGER NOT NULL DEFAULT 0,
                        daily_spin_count INTEGER NOT NULL DEFAULT 0,
                        daily_ads_watched INTEGER NOT NULL DEFAULT 0,
                        daily_mining_count INTEGER NOT NULL DEFAULT 0,
                        last_daily_goal_reset TEXT,
                        daily_goal_claimed INTEGER NOT NULL DEFAULT 0
                    )
                    """,
                    """
                    CREATE TABLE tasks (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        reward REAL NOT NULL,
                        type TEXT NOT NULL CHECK(type IN ('GAME', 'SURVEY', 'SIGNUP', 'AD')),
                        image_url TEXT NOT NULL DEFAULT '',
                        currency_val REAL,
                        is_active INTEGER NOT NULL DEFAULT 0,
                        is_multi_task INTEGER NOT NULL DEFAULT 0,
                        max_completions INTEGER,
                        url TEXT NOT NULL DEFAULT ''
                    )
                    """,
                    """
                    CREATE TABLE withdrawals (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        user_email TEXT NOT NULL DEFAULT '',
                        amount REAL NOT NULL CHECK(amount > 0),
                        method TEXT NOT NULL,
                        status TEXT NOT NULL CHECK(status IN ('PENDING', 'APPROVED', 'REJECTED')),
                        date TEXT NOT NULL,
                        rejection_reason TEXT
                    )
                    """,
                    "CREATE INDEX idx_withdrawals_user ON withdrawals(user_id, date)",
                    """
                    CREATE TABLE globals (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """,
                    """
                    CREATE TABLE admin_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        admin_email TEXT NOT NULL DEFAULT '',
                        admin_uid TEXT NOT NULL DEFAULT '',
                        action TEXT NOT NULL,
                        details TEXT NOT NULL DEFAULT '',
                        timestamp TEXT NOT NULL
                    )
                    """,
                ],
            }

            now = datetime.now().isoformat()
            for version in sorted(migrations):
                if version in current:
                    continue
                # executescript() would commit the open transaction
                for statement in migrations[version]:
                    conn.execute(statement)
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
                logger.info("applied schema migration version=%s", version)
