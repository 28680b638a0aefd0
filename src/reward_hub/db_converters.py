from __future__ import annotations

import json
import sqlite3
from datetime import datetime

from reward_hub.db_models import AdminLogEntry, Session, Task, UserRecord, WithdrawalRequest
from reward_hub.time_utils import parse_timestamp


def _row_to_user(row: sqlite3.Row) -> UserRecord:
    completed_raw = row["completed_task_ids"] or "[]"
    try:
        completed = json.loads(completed_raw)
    except json.JSONDecodeError:
        completed = []
    joined = parse_timestamp(row["joined_at"])
    assert joined is not None

    return UserRecord(
        uid=row["uid"],
        email=row["email"],
        balance=float(row["balance"] or 0),
        referral_code=row["referral_code"] or "",
        referred_by=row["referred_by"],
        completed_task_ids=tuple(str(t) for t in completed),
        is_admin=bool(row["is_admin"]),
        is_banned=bool(row["is_banned"]),
        joined_at=joined,
        referral_count=int(row["referral_count"] or 0),
        energy=int(row["energy"] if row["energy"] is not None else 100),
        max_energy=int(row["max_energy"] or 100),
        xp=int(row["xp"] or 0),
        level=int(row["level"] or 1),
        mining_power=int(row["mining_power"] or 1),
        last_daily_bonus=parse_timestamp(row["last_daily_bonus"]),
        daily_streak=int(row["daily_streak"] or 0),
        spins_available=int(row["spins_available"] or 0),
        daily_refill_count=int(row["daily_refill_count"] or 0),
        daily_spin_count=int(row["daily_spin_count"] or 0),
        daily_ads_watched=int(row["daily_ads_watched"] or 0),
        daily_mining_count=int(row["daily_mining_count"] or 0),
        last_daily_goal_reset=parse_timestamp(row["last_daily_goal_reset"]),
        daily_goal_claimed=bool(row["daily_goal_claimed"]),
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        reward=float(row["reward"]),
        type=row["type"],
        image_url=row["image_url"] or "",
        currency_val=float(row["currency_val"]) if row["currency_val"] is not None else None,
        is_active=bool(row["is_active"]),
        is_multi_task=bool(row["is_multi_task"]),
        max_completions=int(row["max_completions"]) if row["max_completions"] is not None else None,
        url=row["url"] or "",
    )


def _row_to_withdrawal(row: sqlite3.Row) -> WithdrawalRequest:
    created = parse_timestamp(row["date"])
    assert created is not None
    return WithdrawalRequest(
        id=row["id"],
        user_id=row["user_id"],
        user_email=row["user_email"] or "",
        amount=float(row["amount"]),
        method=row["method"],
        status=row["status"],
        date=created,
        rejection_reason=row["rejection_reason"],
    )


def _row_to_admin_log(row: sqlite3.Row) -> AdminLogEntry:
    return AdminLogEntry(
        id=int(row["id"]),
        admin_email=row["admin_email"] or "",
        admin_uid=row["admin_uid"] or "",
        action=row["action"],
        details=row["details"] or "",
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        token=row["token"],
        uid=row["uid"],
        email=row["email"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
