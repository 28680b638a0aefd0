from __future__ import annotations

from datetime import datetime, timezone

import pytest

from reward_hub.db import Database
from reward_hub.db_repo.auth import hash_password, verify_password
from reward_hub.errors import AuthError, EmailAlreadyRegistered, InvalidCredentials

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_register_creates_account_user_and_session(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    session = db.register_account(" New.User@Example.com ", "secret1", NOW)

    assert session.email == "new.user@example.com"
    assert db.resolve_session(session.token).uid == session.uid

    user = db.get_user(session.uid)
    assert user is not None
    assert user.email == "new.user@example.com"
    assert user.energy == 100
    assert user.spins_available == 1
    assert len(user.referral_code) == 6
    assert user.last_daily_goal_reset == NOW


def test_register_rejects_duplicate_email(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    db.register_account("a@example.com", "secret1", NOW)
    with pytest.raises(EmailAlreadyRegistered):
        db.register_account("A@EXAMPLE.COM", "another1", NOW)
    assert len(db.list_users()) == 1


def test_register_validates_input(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    with pytest.raises(AuthError):
        db.register_account("not-an-email", "secret1", NOW)
    with pytest.raises(AuthError):
        db.register_account("a@example.com", "123", NOW)
    assert db.list_users() == []


def test_login_and_logout(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    registered = db.register_account("a@example.com", "secret1", NOW)

    session = db.login("a@example.com", "secret1", NOW)
    assert session.uid == registered.uid
    assert session.token != registered.token

    with pytest.raises(InvalidCredentials):
        db.login("a@example.com", "wrong-password", NOW)
    with pytest.raises(InvalidCredentials):
        db.login("nobody@example.com", "secret1", NOW)

    assert db.logout(session.token) is True
    assert db.resolve_session(session.token) is None
    assert db.logout(session.token) is False
    assert db.resolve_session(registered.token) is not None


def test_password_hashing() -> None:
    stored = hash_password("secret1")
    assert "secret1" not in stored
    assert hash_password("secret1") != stored
    assert verify_password("secret1", stored) is True
    assert verify_password("secret2", stored) is False
    assert verify_password("secret1", "garbage") is False


def test_ensure_referral_code_heals_missing_code(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    db.create_user_record("u1", "u1@example.com", NOW)
    with db.transaction() as conn:
        conn.execute("UPDATE users SET referral_code = NULL WHERE uid = 'u1'")
    assert db.get_user("u1").referral_code == ""

    healed = db.ensure_referral_code("u1")
    assert len(healed.referral_code) == 6
    assert db.get_user("u1").referral_code == healed.referral_code
    assert db.ensure_referral_code("ghost") is None
