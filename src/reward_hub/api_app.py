from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime
from functools import partial
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from reward_hub import admin, ledger
from reward_hub.admin import Actor, WithdrawalAction
from reward_hub.config import Settings, is_super_admin, load_settings
from reward_hub.db import Database, Session, Task
from reward_hub.db_models import TaskType, WithdrawalMethod
from reward_hub.errors import (
    AuthError,
    EmailAlreadyRegistered,
    EntityMissing,
    InvalidCredentials,
    LedgerRejection,
    NotAuthenticated,
    PermissionDenied,
    RewardHubError,
    UserNotFound,
)
from reward_hub.gamification import daily_goal_progress, is_ad_watch_task, referral_tier
from reward_hub.logging_setup import setup_logging
from reward_hub.messages import (
    bonus_message,
    credited_message,
    error_message,
    mined_message,
    referral_message,
    should_notify,
    spin_message,
    withdrawal_message,
)
from reward_hub.time_utils import now_local

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _session_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.headers.get("x-session-token") or None


def _status_for(exc: RewardHubError) -> int:
    if isinstance(exc, (NotAuthenticated, InvalidCredentials)):
        return 401
    if isinstance(exc, PermissionDenied):
        return 403
    if isinstance(exc, EntityMissing):
        return 404
    if isinstance(exc, (LedgerRejection, EmailAlreadyRegistered)):
        return 409
    if isinstance(exc, AuthError):
        return 400
    return 500


class Credentials(BaseModel):
    email: str
    password: str


class RegisterRequest(Credentials):
    referral_code: str | None = None


class RedeemRequest(BaseModel):
    code: str


class CompleteTaskRequest(BaseModel):
    reward: float = Field(default=0.0, ge=0)


class WithdrawalCreate(BaseModel):
    amount: float = Field(gt=0)
    method: WithdrawalMethod


class UserUpdateRequest(BaseModel):
    updates: dict[str, Any] = Field(default_factory=dict)


class TaskPayload(BaseModel):
    id: str = ""
    title: str
    description: str = ""
    reward: float = Field(ge=0)
    type: TaskType
    image_url: str = ""
    currency_val: float | None = None
    is_active: bool = True
    is_multi_task: bool = False
    max_completions: int | None = None
    url: str = ""


class ProcessWithdrawalRequest(BaseModel):
    action: WithdrawalAction
    reason: str | None = None


class SettingsUpdateRequest(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)


def build_api_app(db: Database, settings: Settings, clock: Clock | None = None) -> FastAPI:
    app = FastAPI(title="Reward Hub API", version="1.0.0")
    tz = settings.tz
    if clock is None:
        clock = partial(now_local, tz)

    @app.exception_handler(RewardHubError)
    async def handle_reward_error(request: Request, exc: RewardHubError) -> JSONResponse:
        status = _status_for(exc)
        if not should_notify(exc):
            logger.warning("permission denied path=%s", request.url.path)
        return JSONResponse(
            status_code=status,
            content={"code": exc.code, "message": error_message(exc)},
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"code": "INVALID_REQUEST", "message": str(exc)})

    def _require_session(request: Request) -> Session:
        token = _session_token(request)
        session = db.resolve_session(token) if token else None
        if session is None:
            raise NotAuthenticated()
        return session

    def _require_admin(request: Request) -> Actor:
        session = _require_session(request)
        if not admin.sync_admin_status(db, settings, session.uid, session.email):
            raise PermissionDenied()
        return Actor(uid=session.uid, email=session.email)

    def _session_payload(session: Session) -> dict[str, Any]:
        return {"token": session.token, "uid": session.uid, "email": session.email}

    # -- auth ---------------------------------------------------------------

    @app.post("/api/auth/register")
    async def api_register(payload: RegisterRequest) -> dict[str, Any]:
        session = db.register_account(
            payload.email,
            payload.password,
            clock(),
            is_admin=is_super_admin(settings, "", payload.email),
        )
        result: dict[str, Any] = {"ok": True, "session": _session_payload(session)}
        if payload.referral_code:
            try:
                outcome = ledger.redeem_referral_code(db, session.uid, payload.referral_code)
            except LedgerRejection as exc:
                result["referral"] = {"ok": False, "code": exc.code, "message": error_message(exc)}
            else:
                result["referral"] = {"ok": True, "message": referral_message(outcome.referee_reward)}
        logger.info("registered uid=%s", session.uid)
        return result

    @app.post("/api/auth/login")
    async def api_login(payload: Credentials) -> dict[str, Any]:
        session = db.login(payload.email, payload.password, clock())
        admin.sync_admin_status(db, settings, session.uid, session.email)
        return {"ok": True, "session": _session_payload(session)}

    @app.post("/api/auth/logout")
    async def api_logout(request: Request) -> dict[str, Any]:
        token = _session_token(request)
        return {"ok": db.logout(token) if token else False}

    # -- profile ------------------------------------------------------------

    @app.get("/api/me")
    async def api_me(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        is_admin = admin.sync_admin_status(db, settings, session.uid, session.email)
        user = db.ensure_referral_code(session.uid)
        if user is None:
            raise UserNotFound()
        tier = referral_tier(user.referral_count)
        return {
            "user": asdict(user),
            "is_admin": is_admin,
            "tier": {"name": tier.name, "multiplier": tier.multiplier},
        }

    @app.get("/api/me/goals")
    async def api_goals(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        user = db.get_user(session.uid)
        if user is None:
            raise UserNotFound()
        progress = daily_goal_progress(user, clock(), tz)
        return {**asdict(progress), "met": progress.met}

    @app.get("/api/settings")
    async def api_settings() -> dict[str, Any]:
        return db.get_global_settings().to_dict()

    @app.get("/api/tasks")
    async def api_tasks() -> dict[str, Any]:
        return {"tasks": [asdict(t) for t in db.list_tasks(active_only=True)]}

    # -- ledger -------------------------------------------------------------

    @app.post("/api/mine")
    async def api_mine(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.mine(db, session.uid, clock(), tz=tz)
        return {
            "user": asdict(outcome.user),
            "reward_coins": outcome.reward_coins,
            "xp_gained": outcome.xp_gained,
            "message": mined_message(outcome.reward_coins, outcome.xp_gained),
        }

    @app.post("/api/energy/refill")
    async def api_refill(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.refill_energy(db, session.uid, clock(), tz=tz)
        return {"user": asdict(outcome.user), "message": "Energy refilled!"}

    @app.post("/api/bonus/daily")
    async def api_daily_bonus(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.claim_daily_bonus(db, session.uid, clock(), tz=tz)
        return {
            "user": asdict(outcome.user),
            "bonus": outcome.bonus,
            "streak": outcome.streak,
            "message": bonus_message(outcome.bonus, outcome.streak),
        }

    @app.post("/api/spin")
    async def api_spin(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        result = ledger.spin_wheel(db, session.uid, clock(), tz=tz)
        return {
            "user": asdict(result.user),
            "label": result.label,
            "reward_coins": result.reward_coins,
            "reward_energy": result.reward_energy,
            "message": spin_message(result.label),
        }

    @app.post("/api/spin/bonus")
    async def api_bonus_spin(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.grant_bonus_spin(db, session.uid, clock(), tz=tz)
        return {"user": asdict(outcome.user), "message": "+1 Spin added!"}

    @app.post("/api/goals/claim")
    async def api_claim_goal(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.claim_daily_goal_reward(db, session.uid, clock(), tz=tz)
        return {"user": asdict(outcome.user), "message": credited_message(outcome.credited)}

    @app.post("/api/referral/redeem")
    async def api_redeem(request: Request, payload: RedeemRequest) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.redeem_referral_code(db, session.uid, payload.code)
        return {
            "user": asdict(outcome.user),
            "tier": outcome.tier.name,
            "message": referral_message(outcome.referee_reward),
        }

    @app.post("/api/ads/reward")
    async def api_ad_reward(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        outcome = ledger.claim_ad_reward(db, session.uid, clock(), tz=tz)
        return {"user": asdict(outcome.user), "message": credited_message(outcome.credited)}

    @app.post("/api/tasks/{task_id}/complete")
    async def api_complete_task(task_id: str, request: Request, payload: CompleteTaskRequest) -> dict[str, Any]:
        session = _require_session(request)
        reward = payload.reward
        if not is_ad_watch_task(task_id):
            task = db.get_task(task_id)
            if task is not None:
                reward = task.reward
        outcome = ledger.complete_task(db, session.uid, task_id, reward, clock(), tz=tz)
        return {
            "user": asdict(outcome.user),
            "completions": outcome.completions,
            "limit": outcome.limit,
            "message": credited_message(outcome.reward),
        }

    @app.post("/api/withdrawals")
    async def api_request_withdrawal(request: Request, payload: WithdrawalCreate) -> dict[str, Any]:
        session = _require_session(request)
        created = ledger.request_withdrawal(db, session.uid, payload.amount, payload.method, clock())
        return {
            "withdrawal": asdict(created),
            "message": withdrawal_message(created.amount, created.method),
        }

    @app.get("/api/withdrawals")
    async def api_own_withdrawals(request: Request) -> dict[str, Any]:
        session = _require_session(request)
        return {"withdrawals": [asdict(w) for w in db.list_withdrawals(user_id=session.uid)]}

    # -- admin --------------------------------------------------------------

    @app.get("/api/admin/stats")
    async def api_admin_stats(request: Request) -> dict[str, Any]:
        _require_admin(request)
        return admin.dashboard_stats(db)

    @app.get("/api/admin/users")
    async def api_admin_users(request: Request) -> dict[str, Any]:
        _require_admin(request)
        return {"users": [asdict(u) for u in db.list_users()]}

    @app.patch("/api/admin/users/{uid}")
    async def api_admin_update_user(uid: str, request: Request, payload: UserUpdateRequest) -> dict[str, Any]:
        actor = _require_admin(request)
        applied = admin.admin_update_user(db, uid, payload.updates, actor, clock())
        return {"ok": True, "updated": applied}

    @app.get("/api/admin/tasks")
    async def api_admin_tasks(request: Request) -> dict[str, Any]:
        _require_admin(request)
        return {"tasks": [asdict(t) for t in db.list_tasks()]}

    @app.post("/api/admin/tasks")
    async def api_admin_save_task(request: Request, payload: TaskPayload) -> dict[str, Any]:
        actor = _require_admin(request)
        saved = admin.save_task(db, Task(**payload.model_dump()), actor, clock())
        return {"ok": True, "task": asdict(saved)}

    @app.post("/api/admin/tasks/{task_id}/duplicate")
    async def api_admin_duplicate_task(task_id: str, request: Request) -> dict[str, Any]:
        actor = _require_admin(request)
        copy = admin.duplicate_task(db, task_id, actor, clock())
        return {"ok": True, "task": asdict(copy)}

    @app.delete("/api/admin/tasks/{task_id}")
    async def api_admin_delete_task(task_id: str, request: Request) -> dict[str, Any]:
        actor = _require_admin(request)
        admin.delete_task(db, task_id, actor, clock())
        return {"ok": True}

    @app.get("/api/admin/withdrawals")
    async def api_admin_withdrawals(request: Request) -> dict[str, Any]:
        _require_admin(request)
        return {"withdrawals": [asdict(w) for w in db.list_withdrawals()]}

    @app.post("/api/admin/withdrawals/{withdrawal_id}/process")
    async def api_admin_process_withdrawal(
        withdrawal_id: str,
        request: Request,
        payload: ProcessWithdrawalRequest,
    ) -> dict[str, Any]:
        actor = _require_admin(request)
        changed = admin.process_withdrawal(db, withdrawal_id, payload.action, actor, clock(), reason=payload.reason)
        return {"ok": True, "changed": changed}

    @app.put("/api/admin/settings")
    async def api_admin_settings(request: Request, payload: SettingsUpdateRequest) -> dict[str, Any]:
        actor = _require_admin(request)
        saved = admin.update_settings(db, payload.settings, actor, clock())
        return {"ok": True, "settings": saved.to_dict()}

    @app.post("/api/admin/seed")
    async def api_admin_seed(request: Request) -> dict[str, Any]:
        actor = _require_admin(request)
        tasks = admin.seed_database(db, actor, clock(), settings.seed_catalog_path)
        return {"ok": True, "seeded": len(tasks)}

    @app.get("/api/admin/logs")
    async def api_admin_logs(request: Request, limit: int = 100) -> dict[str, Any]:
        _require_admin(request)
        return {"rows": [asdict(e) for e in db.list_admin_logs(limit=limit)]}

    return app


def run_api() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    db = Database(settings.database_path)
    app = build_api_app(db, settings)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
