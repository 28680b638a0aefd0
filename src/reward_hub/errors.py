from __future__ import annotations


class RewardHubError(Exception):
    code = "ERROR"
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class LedgerRejection(RewardHubError):
    """Expected business-rule outcome; nothing was written."""


class OutOfEnergy(LedgerRejection):
    code = "OUT_OF_ENERGY"
    default_message = "Not enough energy"


class DailyLimitReached(LedgerRejection):
    code = "DAILY_LIMIT_REACHED"
    default_message = "Daily limit reached"

    def __init__(self, context: str, message: str | None = None) -> None:
        self.context = context
        super().__init__(message)


class NoSpins(LedgerRejection):
    code = "NO_SPINS"
    default_message = "No spins available"


class AlreadyClaimed(LedgerRejection):
    code = "ALREADY_CLAIMED"
    default_message = "Already claimed"

    def __init__(self, context: str, message: str | None = None) -> None:
        self.context = context
        super().__init__(message)


class GoalsReset(LedgerRejection):
    code = "GOALS_RESET"
    default_message = "New day started, goals reset"


class AlreadyReferred(LedgerRejection):
    code = "ALREADY_REFERRED"
    default_message = "Referral already redeemed"


class SelfReferral(LedgerRejection):
    code = "SELF_REFERRAL"
    default_message = "Cannot redeem your own code"


class InvalidCode(LedgerRejection):
    code = "INVALID_CODE"
    default_message = "Invalid referral code"


class CompletionLimitReached(LedgerRejection):
    code = "COMPLETION_LIMIT_REACHED"
    default_message = "Task completion limit reached for this account."


class InsufficientFunds(LedgerRejection):
    code = "INSUFFICIENT_FUNDS"
    default_message = "Insufficient funds"


class AdsDisabled(LedgerRejection):
    code = "ADS_DISABLED"
    default_message = "Ads are currently disabled"


class EntityMissing(RewardHubError):
    """A document the operation depends on does not exist."""


class UserNotFound(EntityMissing):
    code = "USER_NOT_FOUND"
    default_message = "User does not exist"


class TaskNotFound(EntityMissing):
    code = "TASK_NOT_FOUND"
    default_message = "Task not found"


class WithdrawalNotFound(EntityMissing):
    code = "WITHDRAWAL_NOT_FOUND"
    default_message = "Request not found"


class AuthError(RewardHubError):
    code = "AUTH_ERROR"


class EmailAlreadyRegistered(AuthError):
    code = "EMAIL_IN_USE"
    default_message = "Email already in use"


class InvalidCredentials(AuthError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class NotAuthenticated(AuthError):
    code = "NOT_AUTHENTICATED"
    default_message = "Not logged in"


class PermissionDenied(AuthError):
    code = "PERMISSION_DENIED"
    default_message = "Missing or insufficient permissions"
