from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from reward_hub.db_constants import NEW_USER_ENERGY, NEW_USER_SPINS
from reward_hub.db_converters import _row_to_user
from reward_hub.db_models import UserRecord
from reward_hub.db_repo.base import mark_touched
from reward_hub.gamification import generate_referral_code

USER_COLUMNS = frozenset(UserRecord.__dataclass_fields__) - {"uid"}


class DbProtocol(Protocol):
    def _reading(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def _writing(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def get_user(self, uid: str, conn: sqlite3.Connection | None = None) -> UserRecord | None: ...


def _to_column_value(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return value


def _unused_referral_code(conn: sqlite3.Connection) -> str:
    while True:
        code = generate_referral_code()
        row = conn.execute("SELECT 1 FROM users WHERE referral_code = ?", (code,)).fetchone()
        if row is None:
            return code


class UserMixin:
    def create_user_record(
        self: DbProtocol,
        uid: str,
        email: str,
        joined_at: datetime,
        is_admin: bool = False,
        conn: sqlite3.Connection | None = None,
    ) -> UserRecord:
        with self._writing(conn) as c:
            code = _unused_referral_code(c)
            c.execute(
                """
                INSERT INTO users(
                    uid, email, balance, referral_code, completed_task_ids, is_admin, is_banned,
                    joined_at, referral_count, energy, max_energy, xp, level, mining_power,
                    spins_available, last_daily_goal_reset
                )
                VALUES (?, ?, 0, ?, '[]', ?, 0, ?, 0, ?, 100, 0, 1, 1, ?, ?)
                """,
                (
                    uid,
                    email,
                    code,
                    1 if is_admin else 0,
                    joined_at.isoformat(),
                    NEW_USER_ENERGY,
                    NEW_USER_SPINS,
                    joined_at.isoformat(),
                ),
            )
            mark_touched(c, "users", uid)
            user = self.get_user(uid, conn=c)
        assert user is not None
        return user

    def get_user(self: DbProtocol, uid: str, conn: sqlite3.Connection | None = None) -> UserRecord | None:
        with self._reading(conn) as c:
            row = c.execute("SELECT * FROM users WHERE uid = ?", (uid,)).fetchone()
        return _row_to_user(row) if row else None

    def find_user_by_referral_code(self: DbProtocol, code: str, conn: sqlite3.Connection | None = None) -> UserRecord | None:
        with self._reading(conn) as c:
            row = c.execute("SELECT * FROM users WHERE referral_code = ? LIMIT 1", (code,)).fetchone()
        return _row_to_user(row) if row else None

    def list_users(self: DbProtocol) -> list[UserRecord]:
        with self._reading() as c:
            rows = c.execute("SELECT * FROM users ORDER BY joined_at ASC").fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user_fields(
        self: DbProtocol,
        uid: str,
        patch: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        if not patch:
            return False
        unknown = set(patch) - USER_COLUMNS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        keys = sorted(patch)
        assignments = ", ".join(f"{k} = ?" for k in keys)
        params = [_to_column_value(patch[k]) for k in keys]
        params.append(uid)
        with self._writing(conn) as c:
            cur = c.execute(f"UPDATE users SET {assignments} WHERE uid = ?", params)
            if cur.rowcount > 0:
                mark_touched(c, "users", uid)
        return cur.rowcount > 0

    def ensure_referral_code(self: DbProtocol, uid: str) -> UserRecord | None:
        with self._writing() as c:
            user = self.get_user(uid, conn=c)
            if user is None or user.referral_code:
                return user
            c.execute("UPDATE users SET referral_code = ? WHERE uid = ?", (_unused_referral_code(c), uid))
            mark_touched(c, "users", uid)
            return self.get_user(uid, conn=c)
