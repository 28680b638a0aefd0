from __future__ import annotations

from reward_hub.errors import (
    AlreadyClaimed,
    DailyLimitReached,
    PermissionDenied,
    RewardHubError,
)

GENERIC_FAILURE = "Request failed"

DAILY_LIMIT_TEXT = {
    "refill": "Daily refill limit reached (10/10)",
    "spin": "Daily spin limit reached (7/7)",
}

ALREADY_CLAIMED_TEXT = {
    "daily_bonus": "Come back tomorrow!",
    "daily_goal": "Daily goal reward already claimed",
}


def error_message(exc: BaseException) -> str:
    if isinstance(exc, DailyLimitReached):
        return DAILY_LIMIT_TEXT.get(exc.context, exc.message)
    if isinstance(exc, AlreadyClaimed):
        return ALREADY_CLAIMED_TEXT.get(exc.context, exc.message)
    if isinstance(exc, RewardHubError):
        return exc.message
    return GENERIC_FAILURE


def should_notify(exc: BaseException) -> bool:
    """Whether the error is worth surfacing to the user.

    Permission errors come from background listeners racing a logout and are
    only logged.
    """
    return not isinstance(exc, PermissionDenied)


def _coins(amount: float) -> str:
    return f"{amount:.4f}".rstrip("0").rstrip(".") or "0"


def mined_message(amount: float, xp: int) -> str:
    return f"+{_coins(amount)} coins, +{xp} XP"


def bonus_message(amount: float, streak: int) -> str:
    return f"Daily bonus: +{_coins(amount)} coins (streak {streak})"


def spin_message(label: str) -> str:
    return f"You won: {label}"


def credited_message(amount: float) -> str:
    return f"+{_coins(amount)} coins added to your balance"


def referral_message(amount: float) -> str:
    return f"Referral redeemed! +{_coins(amount)} coins"


def withdrawal_message(amount: float, method: str) -> str:
    return f"Withdrawal of {_coins(amount)} via {method} submitted for review"
