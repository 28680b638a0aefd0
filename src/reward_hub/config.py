from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    super_admin_email: str | None
    super_admin_uid: str | None
    api_host: str
    api_port: int
    seed_catalog_path: Path
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def load_settings() -> Settings:
    _load_env_file(Path(".env"))

    api_port_raw = os.getenv("API_PORT", "8000")
    try:
        api_port = int(api_port_raw)
    except ValueError:
        api_port = 8000

    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", "./data/reward_hub.db")),
        tz=os.getenv("TZ", "UTC"),
        super_admin_email=_optional(os.getenv("SUPER_ADMIN_EMAIL")),
        super_admin_uid=_optional(os.getenv("SUPER_ADMIN_UID")),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=api_port,
        seed_catalog_path=Path(os.getenv("SEED_CATALOG", "./seed_tasks.yaml")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def is_super_admin(settings: Settings, uid: str, email: str | None) -> bool:
    safe_email = (email or "").strip().lower()
    if settings.super_admin_email and safe_email == settings.super_admin_email.lower():
        return True
    return bool(settings.super_admin_uid) and uid == settings.super_admin_uid
