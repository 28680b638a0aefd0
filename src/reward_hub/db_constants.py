from __future__ import annotations

import string
from typing import Any

MAX_ENERGY = 100
DAILY_REFILL_LIMIT = 10
DAILY_SPIN_LIMIT = 7
DAILY_GOAL_REWARD = 0.05
GOAL_REFILLS = 10
GOAL_SPINS = 7
UNLIMITED_COMPLETIONS = 999999
AD_WATCH_PREFIX = "AD_WATCH"
XP_PER_LEVEL = 100

NEW_USER_ENERGY = 100
NEW_USER_SPINS = 1

REFERRAL_CODE_LENGTH = 6
REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
DOCUMENT_ID_LENGTH = 20
DOCUMENT_ID_ALPHABET = string.ascii_letters + string.digits

SETTINGS_KEY = "settings"

INITIAL_SETTINGS: dict[str, Any] = {
    "adsEnabled": True,
    "coinsPerAd": 0.005,
    "referralBonus": 0.10,
    "announcement": {
        "enabled": True,
        "message": "Welcome! Complete tasks to earn rewards.",
        "type": "info",
    },
    "gamification": {
        "dailyBonusBase": 0.01,
        "xpPerClick": 10,
        "energyCostPerClick": 10,
        "clickReward": 0.0005,
    },
}

ANNOUNCEMENT_TYPES = ("info", "warning", "success")

# Fields an admin may overwrite on a user record.
ADMIN_WRITABLE_USER_FIELDS: dict[str, type] = {
    "balance": float,
    "is_banned": bool,
    "energy": int,
    "spins_available": int,
}
