from __future__ import annotations

import logging
import random
import sqlite3
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from reward_hub.db import Database, GlobalSettings, UserRecord, WithdrawalRequest
from reward_hub.db_constants import (
    DAILY_GOAL_REWARD,
    DAILY_REFILL_LIMIT,
    DAILY_SPIN_LIMIT,
    MAX_ENERGY,
)
from reward_hub.db_models import WITHDRAWAL_METHODS
from reward_hub.errors import (
    AdsDisabled,
    AlreadyClaimed,
    AlreadyReferred,
    CompletionLimitReached,
    DailyLimitReached,
    GoalsReset,
    InsufficientFunds,
    InvalidCode,
    LedgerRejection,
    NoSpins,
    OutOfEnergy,
    SelfReferral,
    UserNotFound,
)
from reward_hub.gamification import (
    ReferralTier,
    completion_limit,
    count_completions,
    daily_reset_patch,
    generate_document_id,
    is_ad_watch_task,
    level_from_xp,
    normalize_referral_code,
    referral_tier,
    spin_outcome,
    streak_after_claim,
)
from reward_hub.time_utils import DEFAULT_TZ, hours_between

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class LedgerOutcome:
    user: UserRecord
    credited: float = 0.0


@dataclass(frozen=True)
class MineOutcome:
    user: UserRecord
    reward_coins: float
    xp_gained: int
    energy_spent: int


@dataclass(frozen=True)
class BonusOutcome:
    user: UserRecord
    bonus: float
    streak: int


@dataclass(frozen=True)
class SpinResult:
    user: UserRecord
    label: str
    reward_coins: float
    reward_energy: int


@dataclass(frozen=True)
class ReferralOutcome:
    user: UserRecord
    referrer_id: str
    tier: ReferralTier
    referrer_reward: float
    referee_reward: float


@dataclass(frozen=True)
class TaskCompletion:
    user: UserRecord
    task_id: str
    reward: float
    completions: int
    limit: int


def _load_user(db: Database, conn: sqlite3.Connection, uid: str) -> UserRecord:
    user = db.get_user(uid, conn=conn)
    if user is None:
        raise UserNotFound()
    return user


def _resolve_config(db: Database, conn: sqlite3.Connection, config: GlobalSettings | None) -> GlobalSettings:
    if config is not None:
        return config
    return db.get_global_settings(conn=conn)


def _rejected(exc: LedgerRejection, operation: str, uid: str) -> LedgerRejection:
    logger.info("%s rejected uid=%s code=%s", operation, uid, exc.code)
    return exc


def _commit(db: Database, conn: sqlite3.Connection, user: UserRecord, patch: dict[str, Any]) -> UserRecord:
    db.update_user_fields(user.uid, patch, conn=conn)
    return replace(user, **patch)


def mine(
    db: Database,
    uid: str,
    now: datetime,
    config: GlobalSettings | None = None,
    tz: str = DEFAULT_TZ,
) -> MineOutcome:
    """Spend energy for coins and XP.

    Raises ``OutOfEnergy`` (nothing written) or ``UserNotFound``.
    """
    with db.transaction() as conn:
        tuning = _resolve_config(db, conn, config).gamification
        user = _load_user(db, conn, uid)
        reset = daily_reset_patch(user, now, tz)
        current = replace(user, **reset)

        cost = tuning.energy_cost_per_click
        if current.energy < cost:
            raise _rejected(OutOfEnergy(), "mine", uid)

        xp = current.xp + tuning.xp_per_click
        updated = _commit(
            db,
            conn,
            current,
            {
                **reset,
                "energy": current.energy - cost,
                "balance": current.balance + tuning.click_reward,
                "xp": xp,
                "level": level_from_xp(xp),
                "daily_mining_count": current.daily_mining_count + 1,
            },
        )
    logger.info("mine uid=%s energy=%s balance=%.6f", uid, updated.energy, updated.balance)
    return MineOutcome(
        user=updated,
        reward_coins=tuning.click_reward,
        xp_gained=tuning.xp_per_click,
        energy_spent=cost,
    )


def refill_energy(db: Database, uid: str, now: datetime, tz: str = DEFAULT_TZ) -> LedgerOutcome:
    """Refill energy to full after an ad view the caller vouches for.

    Raises ``DailyLimitReached("refill")`` or ``UserNotFound``.
    """
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        reset = daily_reset_patch(user, now, tz)
        current = replace(user, **reset)
        if current.daily_refill_count >= DAILY_REFILL_LIMIT:
            raise _rejected(DailyLimitReached("refill"), "refill_energy", uid)
        updated = _commit(
            db,
            conn,
            current,
            {**reset, "energy": MAX_ENERGY, "daily_refill_count": current.daily_refill_count + 1},
        )
    logger.info("refill_energy uid=%s refills_today=%s", uid, updated.daily_refill_count)
    return LedgerOutcome(user=updated)


def claim_daily_bonus(
    db: Database,
    uid: str,
    now: datetime,
    config: GlobalSettings | None = None,
    tz: str = DEFAULT_TZ,
) -> BonusOutcome:
    """Credit ``dailyBonusBase * streak`` once per 24 hours.

    A claim 24 to 48 hours after the previous one continues the streak;
    anything later restarts it at 1. The streak is not capped.
    Raises ``AlreadyClaimed("daily_bonus")`` or ``UserNotFound``.
    """
    with db.transaction() as conn:
        base = _resolve_config(db, conn, config).gamification.daily_bonus_base
        user = _load_user(db, conn, uid)

        hours_since = hours_between(user.last_daily_bonus or EPOCH, now)
        if hours_since < 24:
            raise _rejected(AlreadyClaimed("daily_bonus"), "claim_daily_bonus", uid)

        streak = streak_after_claim(hours_since, user.daily_streak)
        bonus = base * streak
        reset = daily_reset_patch(user, now, tz)
        updated = _commit(
            db,
            conn,
            replace(user, **reset),
            {
                **reset,
                "balance": user.balance + bonus,
                "last_daily_bonus": now,
                "daily_streak": streak,
            },
        )
    logger.info("claim_daily_bonus uid=%s streak=%s bonus=%.6f", uid, streak, bonus)
    return BonusOutcome(user=updated, bonus=bonus, streak=streak)


def spin_wheel(
    db: Database,
    uid: str,
    now: datetime,
    roll: float | None = None,
    tz: str = DEFAULT_TZ,
) -> SpinResult:
    """Consume one spin and apply the drawn outcome.

    Raises ``DailyLimitReached("spin")``, ``NoSpins`` or ``UserNotFound``.
    """
    outcome = spin_outcome(random.random() if roll is None else roll)
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        reset = daily_reset_patch(user, now, tz)
        current = replace(user, **reset)

        if current.daily_spin_count >= DAILY_SPIN_LIMIT:
            raise _rejected(DailyLimitReached("spin"), "spin_wheel", uid)
        if current.spins_available < 1:
            raise _rejected(NoSpins(), "spin_wheel", uid)

        updated = _commit(
            db,
            conn,
            current,
            {
                **reset,
                "balance": current.balance + outcome.reward_coins,
                "energy": min(current.energy + outcome.reward_energy, MAX_ENERGY),
                "spins_available": current.spins_available - 1,
                "daily_spin_count": current.daily_spin_count + 1,
            },
        )
    logger.info("spin_wheel uid=%s outcome=%r", uid, outcome.label)
    return SpinResult(
        user=updated,
        label=outcome.label,
        reward_coins=outcome.reward_coins,
        reward_energy=outcome.reward_energy,
    )


def grant_bonus_spin(db: Database, uid: str, now: datetime, tz: str = DEFAULT_TZ) -> LedgerOutcome:
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        reset = daily_reset_patch(user, now, tz)
        current = replace(user, **reset)
        updated = _commit(
            db,
            conn,
            current,
            {
                **reset,
                "spins_available": current.spins_available + 1,
                "daily_ads_watched": current.daily_ads_watched + 1,
            },
        )
    logger.info("grant_bonus_spin uid=%s spins=%s", uid, updated.spins_available)
    return LedgerOutcome(user=updated)


def claim_daily_goal_reward(db: Database, uid: str, now: datetime, tz: str = DEFAULT_TZ) -> LedgerOutcome:
    """Credit the fixed daily goal reward.

    Evaluated against the stored record: if the day rolled over since the
    last reset, nothing is written and ``GoalsReset`` is raised so the
    caller sees zeroed goals first. Goal thresholds are not checked here.
    Raises ``GoalsReset``, ``AlreadyClaimed("daily_goal")`` or ``UserNotFound``.
    """
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        if daily_reset_patch(user, now, tz):
            raise _rejected(GoalsReset(), "claim_daily_goal_reward", uid)
        if user.daily_goal_claimed:
            raise _rejected(AlreadyClaimed("daily_goal"), "claim_daily_goal_reward", uid)
        updated = _commit(
            db,
            conn,
            user,
            {"balance": user.balance + DAILY_GOAL_REWARD, "daily_goal_claimed": True},
        )
    logger.info("claim_daily_goal_reward uid=%s", uid)
    return LedgerOutcome(user=updated, credited=DAILY_GOAL_REWARD)


def redeem_referral_code(
    db: Database,
    uid: str,
    code: str,
    config: GlobalSettings | None = None,
) -> ReferralOutcome:
    """Credit both sides of a referral in one transaction.

    The referrer's tier is taken from their count before this redemption.
    Raises ``AlreadyReferred``, ``SelfReferral``, ``InvalidCode`` or
    ``UserNotFound``.
    """
    normalized = normalize_referral_code(code)
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        if user.referred_by:
            raise _rejected(AlreadyReferred(), "redeem_referral_code", uid)
        if not normalized:
            raise _rejected(InvalidCode(), "redeem_referral_code", uid)
        if user.referral_code == normalized:
            raise _rejected(SelfReferral(), "redeem_referral_code", uid)

        referrer = db.find_user_by_referral_code(normalized, conn=conn)
        if referrer is None:
            raise _rejected(InvalidCode(), "redeem_referral_code", uid)
        if referrer.uid == uid:
            raise _rejected(SelfReferral(), "redeem_referral_code", uid)

        base = _resolve_config(db, conn, config).referral_bonus
        tier = referral_tier(referrer.referral_count)
        referrer_reward = base * tier.multiplier
        referee_reward = base / 2

        _commit(
            db,
            conn,
            referrer,
            {
                "balance": referrer.balance + referrer_reward,
                "referral_count": referrer.referral_count + 1,
            },
        )
        updated = _commit(
            db,
            conn,
            user,
            {"referred_by": referrer.uid, "balance": user.balance + referee_reward},
        )
    logger.info("redeem_referral_code uid=%s referrer=%s tier=%s", uid, referrer.uid, tier.name)
    return ReferralOutcome(
        user=updated,
        referrer_id=referrer.uid,
        tier=tier,
        referrer_reward=referrer_reward,
        referee_reward=referee_reward,
    )


def complete_task(
    db: Database,
    uid: str,
    task_id: str,
    reward: float,
    now: datetime,
    tz: str = DEFAULT_TZ,
) -> TaskCompletion:
    """Record one completion of ``task_id`` and credit ``reward``.

    ``AD_WATCH*`` ids are not looked up in the catalog and have no limit.
    Raises ``CompletionLimitReached`` or ``UserNotFound``.
    """
    if reward < 0:
        raise ValueError("reward must not be negative")
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        task = None if is_ad_watch_task(task_id) else db.get_task(task_id, conn=conn)
        limit = completion_limit(task)
        done = count_completions(user.completed_task_ids, task_id)
        if done >= limit:
            raise _rejected(CompletionLimitReached(), "complete_task", uid)

        reset = daily_reset_patch(user, now, tz)
        updated = _commit(
            db,
            conn,
            replace(user, **reset),
            {
                **reset,
                "balance": user.balance + reward,
                "completed_task_ids": user.completed_task_ids + (task_id,),
            },
        )
    logger.info("complete_task uid=%s task=%s completions=%s/%s", uid, task_id, done + 1, limit)
    return TaskCompletion(user=updated, task_id=task_id, reward=reward, completions=done + 1, limit=limit)


def request_withdrawal(
    db: Database,
    uid: str,
    amount: float,
    method: str,
    now: datetime,
) -> WithdrawalRequest:
    """Debit the balance and file a PENDING withdrawal atomically.

    Raises ``InsufficientFunds`` or ``UserNotFound``.
    """
    if amount <= 0:
        raise ValueError("amount must be positive")
    if method not in WITHDRAWAL_METHODS:
        raise ValueError(f"unsupported withdrawal method: {method}")

    withdrawal_id = generate_document_id()
    with db.transaction() as conn:
        user = _load_user(db, conn, uid)
        if user.balance < amount:
            raise _rejected(InsufficientFunds(), "request_withdrawal", uid)

        _commit(db, conn, user, {"balance": user.balance - amount})
        request = WithdrawalRequest(
            id=withdrawal_id,
            user_id=uid,
            user_email=user.email,
            amount=amount,
            method=method,
            status="PENDING",
            date=now,
        )
        db.insert_withdrawal(request, conn=conn)
    logger.info("request_withdrawal uid=%s id=%s amount=%.6f method=%s", uid, withdrawal_id, amount, method)
    return request


def claim_ad_reward(
    db: Database,
    uid: str,
    now: datetime,
    config: GlobalSettings | None = None,
    tz: str = DEFAULT_TZ,
) -> LedgerOutcome:
    """Credit ``coinsPerAd`` for a watched ad.

    Raises ``AdsDisabled`` or ``UserNotFound``.
    """
    with db.transaction() as conn:
        settings = _resolve_config(db, conn, config)
        if not settings.ads_enabled:
            raise _rejected(AdsDisabled(), "claim_ad_reward", uid)
        user = _load_user(db, conn, uid)
        reset = daily_reset_patch(user, now, tz)
        current = replace(user, **reset)
        updated = _commit(
            db,
            conn,
            current,
            {
                **reset,
                "balance": current.balance + settings.coins_per_ad,
                "daily_ads_watched": current.daily_ads_watched + 1,
            },
        )
    logger.info("claim_ad_reward uid=%s credited=%.6f", uid, settings.coins_per_ad)
    return LedgerOutcome(user=updated, credited=settings.coins_per_ad)
