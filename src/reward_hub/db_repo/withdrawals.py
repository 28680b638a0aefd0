from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import Protocol

from reward_hub.db_converters import _row_to_withdrawal
from reward_hub.db_models import WithdrawalRequest
from reward_hub.db_repo.base import mark_touched


class DbProtocol(Protocol):
    def _reading(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def _writing(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...


class WithdrawalMixin:
    def insert_withdrawal(self: DbProtocol, request: WithdrawalRequest, conn: sqlite3.Connection | None = None) -> None:
        with self._writing(conn) as c:
            c.execute(
                """
                INSERT INTO withdrawals(id, user_id, user_email, amount, method, status, date, rejection_reason)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    request.id,
                    request.user_id,
                    request.user_email,
                    request.amount,
                    request.method,
                    request.status,
                    request.date.isoformat(),
                    request.rejection_reason,
                ),
            )
            mark_touched(c, "withdrawals", request.id)

    def get_withdrawal(self: DbProtocol, withdrawal_id: str, conn: sqlite3.Connection | None = None) -> WithdrawalRequest | None:
        with self._reading(conn) as c:
            row = c.execute("SELECT * FROM withdrawals WHERE id = ?", (withdrawal_id,)).fetchone()
        return _row_to_withdrawal(row) if row else None

    def set_withdrawal_status(
        self: DbProtocol,
        withdrawal_id: str,
        status: str,
        rejection_reason: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        with self._writing(conn) as c:
            cur = c.execute(
                "UPDATE withdrawals SET status = ?, rejection_reason = ? WHERE id = ?",
                (status, rejection_reason, withdrawal_id),
            )
            if cur.rowcount > 0:
                mark_touched(c, "withdrawals", withdrawal_id)
        return cur.rowcount > 0

    def list_withdrawals(self: DbProtocol, user_id: str | None = None) -> list[WithdrawalRequest]:
        with self._reading() as c:
            if user_id is None:
                rows = c.execute("SELECT * FROM withdrawals ORDER BY date DESC").fetchall()
            else:
                rows = c.execute(
                    "SELECT * FROM withdrawals WHERE user_id = ? ORDER BY date DESC",
                    (user_id,),
                ).fetchall()
        return [_row_to_withdrawal(r) for r in rows]
