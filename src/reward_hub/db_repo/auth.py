from __future__ import annotations

import secrets
import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from werkzeug.security import check_password_hash, generate_password_hash

from reward_hub.db_converters import _row_to_session
from reward_hub.db_models import Session, UserRecord
from reward_hub.errors import AuthError, EmailAlreadyRegistered, InvalidCredentials

MIN_PASSWORD_LENGTH = 6


class DbProtocol(Protocol):
    def _reading(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def _writing(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def create_user_record(
        self,
        uid: str,
        email: str,
        joined_at: datetime,
        is_admin: bool = False,
        conn: sqlite3.Connection | None = None,
    ) -> UserRecord: ...
    def _open_session(self, conn: sqlite3.Connection, uid: str, email: str, now: datetime) -> Session: ...


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, stored: str) -> bool:
    return check_password_hash(stored, password)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthMixin:
    def register_account(
        self: DbProtocol,
        email: str,
        password: str,
        now: datetime,
        is_admin: bool = False,
    ) -> Session:
        """Create the account, its user record and a first session atomically."""
        normalized = normalize_email(email)
        if "@" not in normalized:
            raise AuthError("Invalid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        uid = secrets.token_hex(14)
        with self._writing() as c:
            row = c.execute("SELECT 1 FROM accounts WHERE email = ?", (normalized,)).fetchone()
            if row is not None:
                raise EmailAlreadyRegistered()
            c.execute(
                "INSERT INTO accounts(uid, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (uid, normalized, hash_password(password), now.isoformat()),
            )
            self.create_user_record(uid, normalized, now, is_admin=is_admin, conn=c)
            return self._open_session(c, uid, normalized, now)

    def login(self: DbProtocol, email: str, password: str, now: datetime) -> Session:
        normalized = normalize_email(email)
        with self._writing() as c:
            row = c.execute(
                "SELECT uid, email, password_hash FROM accounts WHERE email = ?",
                (normalized,),
            ).fetchone()
            if row is None or not verify_password(password, str(row["password_hash"])):
                raise InvalidCredentials()
            return self._open_session(c, str(row["uid"]), str(row["email"]), now)

    def logout(self: DbProtocol, token: str) -> bool:
        with self._writing() as c:
            cur = c.execute("DELETE FROM sessions WHERE token = ?", (token,))
        return cur.rowcount > 0

    def resolve_session(self: DbProtocol, token: str) -> Session | None:
        with self._reading() as c:
            row = c.execute(
                """
                SELECT s.token, s.uid, a.email, s.created_at
                FROM sessions s
                JOIN accounts a ON a.uid = s.uid
                WHERE s.token = ?
                """,
                (token,),
            ).fetchone()
        return _row_to_session(row) if row else None

    def _open_session(self, conn: sqlite3.Connection, uid: str, email: str, now: datetime) -> Session:
        token = secrets.token_urlsafe(32)
        conn.execute(
            "INSERT INTO sessions(token, uid, created_at) VALUES (?, ?, ?)",
            (token, uid, now.isoformat()),
        )
        return Session(token=token, uid=uid, email=email, created_at=now)
