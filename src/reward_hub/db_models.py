from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from reward_hub.db_constants import ANNOUNCEMENT_TYPES, INITIAL_SETTINGS

TaskType = Literal["GAME", "SURVEY", "SIGNUP", "AD"]
WithdrawalStatus = Literal["PENDING", "APPROVED", "REJECTED"]
WithdrawalMethod = Literal["PAYPAL", "CRYPTO", "GIFTCARD"]

TASK_TYPES: tuple[str, ...] = ("GAME", "SURVEY", "SIGNUP", "AD")
WITHDRAWAL_METHODS: tuple[str, ...] = ("PAYPAL", "CRYPTO", "GIFTCARD")


@dataclass(frozen=True)
class UserRecord:
    uid: str
    email: str
    balance: float
    referral_code: str
    referred_by: str | None
    completed_task_ids: tuple[str, ...]
    is_admin: bool
    is_banned: bool
    joined_at: datetime
    referral_count: int
    energy: int
    max_energy: int
    xp: int
    level: int
    mining_power: int
    last_daily_bonus: datetime | None
    daily_streak: int
    spins_available: int
    daily_refill_count: int
    daily_spin_count: int
    daily_ads_watched: int
    daily_mining_count: int
    last_daily_goal_reset: datetime | None
    daily_goal_claimed: bool


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    description: str
    reward: float
    type: TaskType
    image_url: str = ""
    currency_val: float | None = None
    is_active: bool = False
    is_multi_task: bool = False
    max_completions: int | None = None
    url: str = ""


@dataclass(frozen=True)
class WithdrawalRequest:
    id: str
    user_id: str
    user_email: str
    amount: float
    method: WithdrawalMethod
    status: WithdrawalStatus
    date: datetime
    rejection_reason: str | None = None


@dataclass(frozen=True)
class AdminLogEntry:
    id: int
    admin_email: str
    admin_uid: str
    action: str
    details: str
    timestamp: datetime


@dataclass(frozen=True)
class Session:
    token: str
    uid: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class Announcement:
    enabled: bool = True
    message: str = ""
    type: str = "info"


@dataclass(frozen=True)
class GamificationTuning:
    daily_bonus_base: float = 0.01
    xp_per_click: int = 10
    energy_cost_per_click: int = 10
    click_reward: float = 0.0005


def _f(raw: dict[str, Any], key: str, default: float) -> float:
    try:
        value = raw.get(key, default)
        return default if value is None else float(value)
    except (TypeError, ValueError):
        return default


def _i(raw: dict[str, Any], key: str, default: int) -> int:
    try:
        value = raw.get(key, default)
        return default if value is None else int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class GlobalSettings:
    ads_enabled: bool = True
    coins_per_ad: float = 0.005
    referral_bonus: float = 0.10
    announcement: Announcement = field(default_factory=Announcement)
    gamification: GamificationTuning = field(default_factory=GamificationTuning)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> GlobalSettings:
        """Build a snapshot from a stored settings document.

        Missing or malformed keys fall back to ``INITIAL_SETTINGS``.
        """
        data = raw or {}
        defaults = INITIAL_SETTINGS
        ann_raw = data.get("announcement") if isinstance(data.get("announcement"), dict) else {}
        ann_default = defaults["announcement"]
        gam_raw = data.get("gamification") if isinstance(data.get("gamification"), dict) else {}
        gam_default = defaults["gamification"]

        ann_type = str(ann_raw.get("type", ann_default["type"]))
        if ann_type not in ANNOUNCEMENT_TYPES:
            ann_type = ann_default["type"]

        return cls(
            ads_enabled=bool(data.get("adsEnabled", defaults["adsEnabled"])),
            coins_per_ad=_f(data, "coinsPerAd", defaults["coinsPerAd"]),
            # a zero bonus is treated as unset
            referral_bonus=_f(data, "referralBonus", defaults["referralBonus"]) or defaults["referralBonus"],
            announcement=Announcement(
                enabled=bool(ann_raw.get("enabled", ann_default["enabled"])),
                message=str(ann_raw.get("message", ann_default["message"])),
                type=ann_type,
            ),
            gamification=GamificationTuning(
                daily_bonus_base=_f(gam_raw, "dailyBonusBase", gam_default["dailyBonusBase"]),
                xp_per_click=_i(gam_raw, "xpPerClick", gam_default["xpPerClick"]),
                energy_cost_per_click=_i(gam_raw, "energyCostPerClick", gam_default["energyCostPerClick"]),
                click_reward=_f(gam_raw, "clickReward", gam_default["clickReward"]),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "adsEnabled": self.ads_enabled,
            "coinsPerAd": self.coins_per_ad,
            "referralBonus": self.referral_bonus,
            "announcement": {
                "enabled": self.announcement.enabled,
                "message": self.announcement.message,
                "type": self.announcement.type,
            },
            "gamification": {
                "dailyBonusBase": self.gamification.daily_bonus_base,
                "xpPerClick": self.gamification.xp_per_click,
                "energyCostPerClick": self.gamification.energy_cost_per_click,
                "clickReward": self.gamification.click_reward,
            },
        }
