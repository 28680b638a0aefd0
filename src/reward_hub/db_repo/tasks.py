from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import Protocol

from reward_hub.db_converters import _row_to_task
from reward_hub.db_models import Task
from reward_hub.db_repo.base import mark_touched


class DbProtocol(Protocol):
    def _reading(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def _writing(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...


class TaskMixin:
    def list_tasks(self: DbProtocol, active_only: bool = False) -> list[Task]:
        with self._reading() as c:
            if active_only:
                rows = c.execute("SELECT * FROM tasks WHERE is_active = 1 ORDER BY title ASC").fetchall()
            else:
                rows = c.execute("SELECT * FROM tasks ORDER BY title ASC").fetchall()
        return [_row_to_task(r) for r in rows]

    def get_task(self: DbProtocol, task_id: str, conn: sqlite3.Connection | None = None) -> Task | None:
        with self._reading(conn) as c:
            row = c.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

    def save_task(self: DbProtocol, task: Task, conn: sqlite3.Connection | None = None) -> None:
        with self._writing(conn) as c:
            c.execute(
                """
                INSERT INTO tasks(
                    id, title, description, reward, type, image_url, currency_val,
                    is_active, is_multi_task, max_completions, url
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    description=excluded.description,
                    reward=excluded.reward,
                    type=excluded.type,
                    image_url=excluded.image_url,
                    currency_val=excluded.currency_val,
                    is_active=excluded.is_active,
                    is_multi_task=excluded.is_multi_task,
                    max_completions=excluded.max_completions,
                    url=excluded.url
                """,
                (
                    task.id,
                    task.title,
                    task.description,
                    task.reward,
                    task.type,
                    task.image_url,
                    task.currency_val,
                    1 if task.is_active else 0,
                    1 if task.is_multi_task else 0,
                    task.max_completions,
                    task.url,
                ),
            )
            mark_touched(c, "tasks", task.id)

    def delete_task(self: DbProtocol, task_id: str, conn: sqlite3.Connection | None = None) -> bool:
        with self._writing(conn) as c:
            cur = c.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            if cur.rowcount > 0:
                mark_touched(c, "tasks", task_id)
        return cur.rowcount > 0
