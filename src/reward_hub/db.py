from __future__ import annotations

from reward_hub.db_models import (
    AdminLogEntry,
    Announcement,
    GamificationTuning,
    GlobalSettings,
    Session,
    Task,
    UserRecord,
    WithdrawalRequest,
)
from reward_hub.db_repo import (
    AuthMixin,
    BaseDatabase,
    SystemMixin,
    TaskMixin,
    UserMixin,
    WithdrawalMixin,
)


class Database(
    BaseDatabase,
    AuthMixin,
    UserMixin,
    TaskMixin,
    WithdrawalMixin,
    SystemMixin,
):
    pass


__all__ = [
    "AdminLogEntry",
    "Announcement",
    "Database",
    "GamificationTuning",
    "GlobalSettings",
    "Session",
    "Task",
    "UserRecord",
    "WithdrawalRequest",
]
