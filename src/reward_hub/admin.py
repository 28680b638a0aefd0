from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import yaml

from reward_hub.config import Settings, is_super_admin
from reward_hub.db import Database, GlobalSettings, Task
from reward_hub.db_constants import ADMIN_WRITABLE_USER_FIELDS, INITIAL_SETTINGS
from reward_hub.db_models import TASK_TYPES
from reward_hub.errors import TaskNotFound, UserNotFound, WithdrawalNotFound
from reward_hub.gamification import generate_document_id

logger = logging.getLogger(__name__)

WithdrawalAction = Literal["APPROVE", "REJECT"]


@dataclass(frozen=True)
class Actor:
    uid: str
    email: str


def _log(db: Database, actor: Actor, action: str, details: str, now: datetime, conn: sqlite3.Connection) -> None:
    db.add_admin_log(
        admin_email=actor.email,
        admin_uid=actor.uid,
        action=action,
        details=details,
        timestamp=now,
        conn=conn,
    )
    logger.info("admin action=%r actor=%s details=%r", action, actor.email or actor.uid, details)


def process_withdrawal(
    db: Database,
    withdrawal_id: str,
    action: WithdrawalAction,
    actor: Actor,
    now: datetime,
    reason: str | None = None,
) -> bool:
    """Move a PENDING withdrawal to APPROVED or REJECTED.

    Returns ``False`` without writing anything when the request was already
    processed. REJECT credits the amount back to the user if they still
    exist.
    """
    if action not in ("APPROVE", "REJECT"):
        raise ValueError(f"unsupported action: {action}")
    with db.transaction() as conn:
        request = db.get_withdrawal(withdrawal_id, conn=conn)
        if request is None:
            raise WithdrawalNotFound()
        if request.status != "PENDING":
            logger.info("process_withdrawal no-op id=%s status=%s", withdrawal_id, request.status)
            return False

        if action == "APPROVE":
            db.set_withdrawal_status(withdrawal_id, "APPROVED", conn=conn)
        else:
            user = db.get_user(request.user_id, conn=conn)
            if user is not None:
                db.update_user_fields(user.uid, {"balance": user.balance + request.amount}, conn=conn)
            else:
                logger.warning("rejecting withdrawal id=%s for missing user=%s", withdrawal_id, request.user_id)
            db.set_withdrawal_status(withdrawal_id, "REJECTED", rejection_reason=reason, conn=conn)

        _log(
            db,
            actor,
            "Process Withdrawal",
            f"{action} withdrawal {withdrawal_id}. Reason: {reason or 'N/A'}",
            now,
            conn,
        )
    return True


def _coerce_user_value(key: str, value: Any) -> Any:
    kind = ADMIN_WRITABLE_USER_FIELDS[key]
    if kind is bool:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    coerced = kind(value)
    if coerced < 0:
        raise ValueError(f"{key} must not be negative")
    return coerced


def admin_update_user(db: Database, uid: str, updates: dict[str, Any], actor: Actor, now: datetime) -> dict[str, Any]:
    sanitized = {
        key: _coerce_user_value(key, value)
        for key, value in updates.items()
        if key in ADMIN_WRITABLE_USER_FIELDS
    }
    with db.transaction() as conn:
        if db.get_user(uid, conn=conn) is None:
            raise UserNotFound()
        if sanitized:
            db.update_user_fields(uid, sanitized, conn=conn)
            _log(db, actor, "Update User", f"Updated user {uid}: {', '.join(sorted(sanitized))}.", now, conn)
    return sanitized


def sync_admin_status(db: Database, settings: Settings, uid: str, email: str) -> bool:
    is_admin = is_super_admin(settings, uid, email)
    user = db.get_user(uid)
    if user is not None and user.is_admin != is_admin:
        db.update_user_fields(uid, {"is_admin": is_admin})
    return is_admin


def _validate_task(task: Task) -> None:
    if task.type not in TASK_TYPES:
        raise ValueError(f"unsupported task type: {task.type}")
    if task.reward < 0:
        raise ValueError("reward must not be negative")
    if not task.title.strip():
        raise ValueError("title is required")


def save_task(db: Database, task: Task, actor: Actor, now: datetime) -> Task:
    if not task.id:
        task = replace(task, id=generate_document_id())
    _validate_task(task)
    with db.transaction() as conn:
        db.save_task(task, conn=conn)
        _log(db, actor, "Save Task", f"Saved task: {task.title}", now, conn)
    return task


def duplicate_task(db: Database, task_id: str, actor: Actor, now: datetime) -> Task:
    with db.transaction() as conn:
        original = db.get_task(task_id, conn=conn)
        if original is None:
            raise TaskNotFound()
        copy = replace(
            original,
            id=generate_document_id(),
            title=f"{original.title} (Copy)",
            is_active=False,
        )
        db.save_task(copy, conn=conn)
        _log(db, actor, "Duplicate Task", f"Duplicated task: {original.title}", now, conn)
    return copy


def delete_task(db: Database, task_id: str, actor: Actor, now: datetime) -> None:
    if not task_id:
        raise ValueError("Task ID is missing")
    with db.transaction() as conn:
        if not db.delete_task(task_id, conn=conn):
            raise TaskNotFound()
        _log(db, actor, "Delete Task", f"Deleted task ID: {task_id}", now, conn)


def merge_settings(stored: dict[str, Any] | None, updates: dict[str, Any]) -> dict[str, Any]:
    merged = dict(stored or {})
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def update_settings(db: Database, updates: dict[str, Any], actor: Actor, now: datetime) -> GlobalSettings:
    """Apply a partial settings document; keys left out keep their stored values."""
    with db.transaction() as conn:
        merged = merge_settings(db.get_settings_document(conn=conn), updates)
        settings = GlobalSettings.from_dict(merged)
        db.set_global_settings(settings, now, conn=conn)
        _log(db, actor, "Update Settings", "Updated global settings", now, conn)
    return settings


def load_seed_catalog(path: Path) -> list[Task]:
    raw = yaml.safe_load(path.read_text()) or {}
    entries = raw.get("tasks", []) if isinstance(raw, dict) else []
    tasks: list[Task] = []
    for item in entries:
        if not isinstance(item, dict):
            continue
        max_completions = item.get("max_completions")
        currency_val = item.get("currency_val")
        task = Task(
            id=str(item.get("id") or generate_document_id()),
            title=str(item.get("title", "")),
            description=str(item.get("description", "")),
            reward=float(item.get("reward", 0)),
            type=str(item.get("type", "GAME")).upper(),
            image_url=str(item.get("image_url", "")),
            currency_val=float(currency_val) if currency_val is not None else None,
            is_active=bool(item.get("is_active", True)),
            is_multi_task=bool(item.get("is_multi_task", False)),
            max_completions=int(max_completions) if max_completions is not None else None,
            url=str(item.get("url", "")),
        )
        _validate_task(task)
        tasks.append(task)
    return tasks


def seed_database(db: Database, actor: Actor, now: datetime, catalog_path: Path) -> list[Task]:
    """Write the sample task catalog and the initial settings document."""
    tasks = load_seed_catalog(catalog_path)
    with db.transaction() as conn:
        for task in tasks:
            db.save_task(task, conn=conn)
        db.set_global_settings(GlobalSettings.from_dict(INITIAL_SETTINGS), now, conn=conn)
        _log(db, actor, "Seed Database", f"Populated database with {len(tasks)} sample tasks", now, conn)
    return tasks


def dashboard_stats(db: Database) -> dict[str, Any]:
    return db.dashboard_counts()
