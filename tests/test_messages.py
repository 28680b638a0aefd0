from reward_hub.errors import (
    AlreadyClaimed,
    DailyLimitReached,
    InsufficientFunds,
    NotAuthenticated,
    PermissionDenied,
)
from reward_hub.messages import (
    GENERIC_FAILURE,
    bonus_message,
    error_message,
    mined_message,
    should_notify,
    withdrawal_message,
)


def test_context_specific_texts() -> None:
    assert error_message(DailyLimitReached("refill")) == "Daily refill limit reached (10/10)"
    assert error_message(DailyLimitReached("spin")) == "Daily spin limit reached (7/7)"
    assert error_message(AlreadyClaimed("daily_bonus")) == "Come back tomorrow!"
    assert error_message(DailyLimitReached("other")) == "Daily limit reached"


def test_error_codes_map_to_their_messages() -> None:
    assert error_message(InsufficientFunds()) == "Insufficient funds"
    assert error_message(NotAuthenticated("Session expired")) == "Session expired"


def test_unknown_errors_are_generic() -> None:
    assert error_message(RuntimeError("db exploded")) == GENERIC_FAILURE


def test_permission_errors_are_not_surfaced() -> None:
    assert should_notify(PermissionDenied()) is False
    assert should_notify(InsufficientFunds()) is True


def test_success_messages_trim_zeros() -> None:
    assert mined_message(0.0005, 10) == "+0.0005 coins, +10 XP"
    assert bonus_message(0.02, 2) == "Daily bonus: +0.02 coins (streak 2)"
    assert withdrawal_message(1.0, "PAYPAL") == "Withdrawal of 1 via PAYPAL submitted for review"
