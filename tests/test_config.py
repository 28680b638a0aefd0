from __future__ import annotations

from pathlib import Path

from reward_hub.config import is_super_admin, load_settings

ENV_KEYS = (
    "DATABASE_PATH",
    "TZ",
    "SUPER_ADMIN_EMAIL",
    "SUPER_ADMIN_UID",
    "API_HOST",
    "API_PORT",
    "SEED_CATALOG",
    "LOG_LEVEL",
)


def _clear_env(monkeypatch) -> None:
    for key in ENV_KEYS:
        # setenv first so monkeypatch restores the original state afterwards
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_defaults(tmp_path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)

    settings = load_settings()
    assert settings.database_path == Path("./data/reward_hub.db")
    assert settings.tz == "UTC"
    assert settings.super_admin_email is None
    assert settings.super_admin_uid is None
    assert settings.api_port == 8000
    assert settings.log_level == "INFO"


def test_env_overrides_and_invalid_port(tmp_path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TZ", "Europe/Oslo")
    monkeypatch.setenv("API_PORT", "not-a-port")
    monkeypatch.setenv("SUPER_ADMIN_EMAIL", "  ")

    settings = load_settings()
    assert settings.tz == "Europe/Oslo"
    assert settings.api_port == 8000
    assert settings.super_admin_email is None


def test_env_file_fills_missing_values(tmp_path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("API_PORT", "9001")
    (tmp_path / ".env").write_text(
        "# local overrides\n"
        "SUPER_ADMIN_EMAIL='boss@example.com'\n"
        "API_PORT=7000\n"
        "LOG_LEVEL=DEBUG\n"
    )

    settings = load_settings()
    assert settings.super_admin_email == "boss@example.com"
    assert settings.api_port == 9001
    assert settings.log_level == "DEBUG"


def test_is_super_admin(tmp_path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SUPER_ADMIN_EMAIL", "Boss@Example.com")
    monkeypatch.setenv("SUPER_ADMIN_UID", "root-uid")
    settings = load_settings()

    assert is_super_admin(settings, "x", "boss@example.com") is True
    assert is_super_admin(settings, "root-uid", None) is True
    assert is_super_admin(settings, "x", "user@example.com") is False
    assert is_super_admin(settings, "x", None) is False
