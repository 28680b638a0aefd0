from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from reward_hub.db_constants import SETTINGS_KEY
from reward_hub.db_converters import _row_to_admin_log
from reward_hub.db_models import AdminLogEntry, GlobalSettings
from reward_hub.db_repo.base import mark_touched


class DbProtocol(Protocol):
    def _reading(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def _writing(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def get_settings_document(self, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None: ...


class SystemMixin:
    def get_settings_document(self: DbProtocol, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
        with self._reading(conn) as c:
            row = c.execute("SELECT value_json FROM globals WHERE key = ?", (SETTINGS_KEY,)).fetchone()
        if row is None:
            return None
        try:
            payload = json.loads(str(row["value_json"]))
        except json.JSONDecodeError:
            return None
        return payload if isinstance(payload, dict) else None

    def get_global_settings(self: DbProtocol, conn: sqlite3.Connection | None = None) -> GlobalSettings:
        return GlobalSettings.from_dict(self.get_settings_document(conn=conn))

    def set_global_settings(
        self: DbProtocol,
        settings: GlobalSettings,
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._writing(conn) as c:
            c.execute(
                """
                INSERT INTO globals(key, value_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json=excluded.value_json,
                    updated_at=excluded.updated_at
                """,
                (SETTINGS_KEY, json.dumps(settings.to_dict()), now.isoformat()),
            )
            mark_touched(c, "settings", SETTINGS_KEY)

    def add_admin_log(
        self: DbProtocol,
        *,
        admin_email: str,
        admin_uid: str,
        action: str,
        details: str,
        timestamp: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._writing(conn) as c:
            c.execute(
                """
                INSERT INTO admin_logs(admin_email, admin_uid, action, details, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (admin_email, admin_uid, action, details, timestamp.isoformat()),
            )
            mark_touched(c, "admin_logs")

    def list_admin_logs(self: DbProtocol, limit: int = 100) -> list[AdminLogEntry]:
        with self._reading() as c:
            rows = c.execute(
                "SELECT * FROM admin_logs ORDER BY timestamp DESC, id DESC LIMIT ?",
                (max(1, limit),),
            ).fetchall()
        return [_row_to_admin_log(r) for r in rows]

    def dashboard_counts(self: DbProtocol) -> dict[str, Any]:
        with self._reading() as c:
            users = c.execute(
                "SELECT COUNT(*) AS n, COALESCE(SUM(balance), 0) AS total FROM users"
            ).fetchone()
            pending = c.execute(
                "SELECT COUNT(*) AS n FROM withdrawals WHERE status = 'PENDING'"
            ).fetchone()
        return {
            "total_users": int(users["n"]),
            "total_coins": float(users["total"]),
            "pending_payouts": int(pending["n"]),
        }
