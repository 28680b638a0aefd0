from .base import BaseDatabase
from .auth import AuthMixin
from .users import UserMixin
from .tasks import TaskMixin
from .withdrawals import WithdrawalMixin
from .system import SystemMixin

__all__ = [
    "BaseDatabase",
    "AuthMixin",
    "UserMixin",
    "TaskMixin",
    "WithdrawalMixin",
    "SystemMixin",
]
