from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from reward_hub.db_constants import (
    AD_WATCH_PREFIX,
    DOCUMENT_ID_ALPHABET,
    DOCUMENT_ID_LENGTH,
    GOAL_REFILLS,
    GOAL_SPINS,
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_LENGTH,
    UNLIMITED_COMPLETIONS,
    XP_PER_LEVEL,
)
from reward_hub.db_models import Task, UserRecord
from reward_hub.time_utils import DEFAULT_TZ, local_date


@dataclass(frozen=True)
class SpinOutcome:
    label: str
    reward_coins: float
    reward_energy: int


# Upper bounds of disjoint [lower, upper) intervals over a uniform [0, 1) roll.
SPIN_TABLE: tuple[tuple[float, SpinOutcome], ...] = (
    (0.10, SpinOutcome("Jackpot! 0.05", 0.05, 0)),
    (0.30, SpinOutcome("50 Energy", 0.0, 50)),
    (0.60, SpinOutcome("0.005 Coins", 0.005, 0)),
    (1.00, SpinOutcome("0.001 Coins", 0.001, 0)),
)


@dataclass(frozen=True)
class ReferralTier:
    name: str
    multiplier: float


BRONZE = ReferralTier("Bronze", 1.0)
SILVER = ReferralTier("Silver", 1.5)
GOLD = ReferralTier("Gold", 2.0)


@dataclass(frozen=True)
class DailyGoalProgress:
    refills: int
    refills_target: int
    spins: int
    spins_target: int
    mining_actions: int
    claimed: bool

    @property
    def met(self) -> bool:
        return self.refills >= self.refills_target and self.spins >= self.spins_target


DAILY_COUNTER_FIELDS = (
    "daily_refill_count",
    "daily_spin_count",
    "daily_ads_watched",
    "daily_mining_count",
)


def daily_reset_patch(user: UserRecord, now: datetime, tz: str = DEFAULT_TZ) -> dict[str, Any]:
    """Fields needed to bring the per-day counters current.

    Empty when ``last_daily_goal_reset`` already falls on today's date in
    ``tz``. The patch is never written on its own: callers merge it into
    their own update so the reset and the new activity land together.
    """
    last = user.last_daily_goal_reset
    if last is not None and local_date(last, tz) == local_date(now, tz):
        return {}
    patch: dict[str, Any] = {name: 0 for name in DAILY_COUNTER_FIELDS}
    patch["daily_goal_claimed"] = False
    patch["last_daily_goal_reset"] = now
    return patch


def level_from_xp(xp: int) -> int:
    return 1 + max(0, xp) // XP_PER_LEVEL


def streak_after_claim(hours_since: float, previous_streak: int) -> int:
    if 24 <= hours_since < 48:
        return max(0, previous_streak) + 1
    return 1


def spin_outcome(roll: float) -> SpinOutcome:
    for upper, outcome in SPIN_TABLE:
        if roll < upper:
            return outcome
    return SPIN_TABLE[-1][1]


def referral_tier(referral_count: int) -> ReferralTier:
    if referral_count >= 20:
        return GOLD
    if referral_count >= 5:
        return SILVER
    return BRONZE


def is_ad_watch_task(task_id: str) -> bool:
    return task_id.startswith(AD_WATCH_PREFIX)


def completion_limit(task: Task | None) -> int:
    if task is None:
        return UNLIMITED_COMPLETIONS
    if task.max_completions is not None and task.max_completions > 1:
        return task.max_completions
    if task.is_multi_task:
        return UNLIMITED_COMPLETIONS
    return 1


def count_completions(completed_task_ids: tuple[str, ...] | list[str], task_id: str) -> int:
    return sum(1 for tid in completed_task_ids if tid == task_id)


def daily_goal_progress(user: UserRecord, now: datetime, tz: str = DEFAULT_TZ) -> DailyGoalProgress:
    stale = bool(daily_reset_patch(user, now, tz))
    return DailyGoalProgress(
        refills=0 if stale else user.daily_refill_count,
        refills_target=GOAL_REFILLS,
        spins=0 if stale else user.daily_spin_count,
        spins_target=GOAL_SPINS,
        mining_actions=0 if stale else user.daily_mining_count,
        claimed=False if stale else user.daily_goal_claimed,
    )


def _random_token(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_referral_code() -> str:
    return _random_token(REFERRAL_CODE_ALPHABET, REFERRAL_CODE_LENGTH)


def generate_document_id() -> str:
    return _random_token(DOCUMENT_ID_ALPHABET, DOCUMENT_ID_LENGTH)


def normalize_referral_code(code: str) -> str:
    return code.strip().upper()
