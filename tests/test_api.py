from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from reward_hub.api_app import build_api_app
from reward_hub.config import Settings
from reward_hub.db import Database, GlobalSettings

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
REPO_CATALOG = Path(__file__).resolve().parents[1] / "seed_tasks.yaml"


def _client(tmp_path) -> tuple[TestClient, Database]:
    settings = Settings(
        database_path=tmp_path / "app.db",
        tz="UTC",
        super_admin_email="boss@example.com",
        super_admin_uid=None,
        api_host="127.0.0.1",
        api_port=8000,
        seed_catalog_path=REPO_CATALOG,
        log_level="INFO",
    )
    db = Database(settings.database_path)
    app = build_api_app(db, settings, clock=lambda: NOW)
    return TestClient(app), db


def _register(client: TestClient, email: str, **extra) -> dict[str, str]:
    resp = client.post("/api/auth/register", json={"email": email, "password": "secret1", **extra})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['session']['token']}"}


def test_requires_session(tmp_path) -> None:
    client, _ = _client(tmp_path)
    resp = client.post("/api/mine")
    assert resp.status_code == 401
    assert resp.json() == {"code": "NOT_AUTHENTICATED", "message": "Not logged in"}

    resp = client.get("/api/me", headers={"x-session-token": "bogus"})
    assert resp.status_code == 401


def test_register_login_and_profile(tmp_path) -> None:
    client, _ = _client(tmp_path)
    _register(client, "player@example.com")

    resp = client.post("/api/auth/register", json={"email": "player@example.com", "password": "secret1"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "EMAIL_IN_USE"

    resp = client.post("/api/auth/login", json={"email": "player@example.com", "password": "nope"})
    assert resp.status_code == 401

    resp = client.post("/api/auth/login", json={"email": "player@example.com", "password": "secret1"})
    token = resp.json()["session"]["token"]

    me = client.get("/api/me", headers={"x-session-token": token}).json()
    assert me["user"]["email"] == "player@example.com"
    assert len(me["user"]["referral_code"]) == 6
    assert me["is_admin"] is False
    assert me["tier"] == {"name": "Bronze", "multiplier": 1.0}

    assert client.post("/api/auth/logout", headers={"x-session-token": token}).json() == {"ok": True}
    assert client.get("/api/me", headers={"x-session-token": token}).status_code == 401


def test_register_with_referral_code(tmp_path) -> None:
    client, db = _client(tmp_path)
    referrer_headers = _register(client, "referrer@example.com")
    code = client.get("/api/me", headers=referrer_headers).json()["user"]["referral_code"]

    resp = client.post(
        "/api/auth/register",
        json={"email": "friend@example.com", "password": "secret1", "referral_code": code.lower()},
    )
    body = resp.json()
    assert body["referral"]["ok"] is True

    friend = db.get_user(body["session"]["uid"])
    assert friend.balance == pytest.approx(0.05)
    me = client.get("/api/me", headers=referrer_headers).json()
    assert me["user"]["balance"] == pytest.approx(0.10)
    assert me["user"]["referral_count"] == 1

    resp = client.post(
        "/api/auth/register",
        json={"email": "late@example.com", "password": "secret1", "referral_code": "NOPE00"},
    )
    assert resp.status_code == 200
    assert resp.json()["referral"] == {"ok": False, "code": "INVALID_CODE", "message": "Invalid referral code"}


def test_mine_and_rejection_mapping(tmp_path) -> None:
    client, db = _client(tmp_path)
    headers = _register(client, "player@example.com")

    resp = client.post("/api/mine", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["energy"] == 90
    assert resp.json()["message"] == "+0.0005 coins, +10 XP"

    uid = resp.json()["user"]["uid"]
    db.update_user_fields(uid, {"energy": 0})
    resp = client.post("/api/mine", headers=headers)
    assert resp.status_code == 409
    assert resp.json() == {"code": "OUT_OF_ENERGY", "message": "Not enough energy"}


def test_daily_endpoints(tmp_path) -> None:
    client, _ = _client(tmp_path)
    headers = _register(client, "player@example.com")

    assert client.post("/api/bonus/daily", headers=headers).json()["streak"] == 1
    resp = client.post("/api/bonus/daily", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["message"] == "Come back tomorrow!"

    assert client.post("/api/energy/refill", headers=headers).status_code == 200
    assert client.post("/api/spin/bonus", headers=headers).json()["user"]["spins_available"] == 2
    assert client.post("/api/spin", headers=headers).status_code == 200
    assert client.post("/api/ads/reward", headers=headers).status_code == 200

    goals = client.get("/api/me/goals", headers=headers).json()
    assert goals["refills"] == 1
    assert goals["spins"] == 1
    assert goals["met"] is False

    assert client.post("/api/goals/claim", headers=headers).status_code == 200
    resp = client.post("/api/goals/claim", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["message"] == "Daily goal reward already claimed"


def test_redeem_endpoint_rejects_own_code(tmp_path) -> None:
    client, _ = _client(tmp_path)
    headers = _register(client, "player@example.com")
    code = client.get("/api/me", headers=headers).json()["user"]["referral_code"]

    resp = client.post("/api/referral/redeem", headers=headers, json={"code": code})
    assert resp.status_code == 409
    assert resp.json()["code"] == "SELF_REFERRAL"


def test_task_completion_uses_catalog_reward(tmp_path) -> None:
    client, _ = _client(tmp_path)
    admin = _register(client, "boss@example.com")
    player = _register(client, "player@example.com")

    task = client.post(
        "/api/admin/tasks",
        headers=admin,
        json={"title": "Survey", "reward": 0.2, "type": "SURVEY"},
    ).json()["task"]
    assert [t["id"] for t in client.get("/api/tasks").json()["tasks"]] == [task["id"]]

    resp = client.post(f"/api/tasks/{task['id']}/complete", headers=player, json={"reward": 5})
    assert resp.status_code == 200
    assert resp.json()["user"]["balance"] == pytest.approx(0.2)

    resp = client.post(f"/api/tasks/{task['id']}/complete", headers=player, json={"reward": 5})
    assert resp.status_code == 409
    assert resp.json()["code"] == "COMPLETION_LIMIT_REACHED"

    resp = client.post("/api/tasks/AD_WATCH_1/complete", headers=player, json={"reward": 0.001})
    assert resp.json()["user"]["balance"] == pytest.approx(0.201)


def test_admin_routes_need_allow_listed_account(tmp_path) -> None:
    client, _ = _client(tmp_path)
    player = _register(client, "player@example.com")

    resp = client.get("/api/admin/stats", headers=player)
    assert resp.status_code == 403
    assert resp.json()["code"] == "PERMISSION_DENIED"

    admin = _register(client, "boss@example.com")
    stats = client.get("/api/admin/stats", headers=admin).json()
    assert stats["total_users"] == 2
    assert client.get("/api/me", headers=admin).json()["is_admin"] is True


def test_withdrawal_round_trip(tmp_path) -> None:
    client, _ = _client(tmp_path)
    admin = _register(client, "boss@example.com")
    player = _register(client, "player@example.com")
    uid = client.get("/api/me", headers=player).json()["user"]["uid"]

    resp = client.patch(f"/api/admin/users/{uid}", headers=admin, json={"updates": {"balance": 2, "xp": 5}})
    assert resp.json()["updated"] == {"balance": 2.0}

    resp = client.post("/api/withdrawals", headers=player, json={"amount": 5, "method": "PAYPAL"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "INSUFFICIENT_FUNDS"

    resp = client.post("/api/withdrawals", headers=player, json={"amount": 1.5, "method": "PAYPAL"})
    wid = resp.json()["withdrawal"]["id"]
    assert client.get("/api/withdrawals", headers=player).json()["withdrawals"][0]["status"] == "PENDING"

    resp = client.post(
        f"/api/admin/withdrawals/{wid}/process",
        headers=admin,
        json={"action": "REJECT", "reason": "Invalid address"},
    )
    assert resp.json() == {"ok": True, "changed": True}
    assert client.get("/api/me", headers=player).json()["user"]["balance"] == pytest.approx(2.0)

    resp = client.post(f"/api/admin/withdrawals/{wid}/process", headers=admin, json={"action": "APPROVE"})
    assert resp.json()["changed"] is False

    resp = client.post("/api/admin/withdrawals/missing/process", headers=admin, json={"action": "APPROVE"})
    assert resp.status_code == 404

    actions = [row["action"] for row in client.get("/api/admin/logs", headers=admin).json()["rows"]]
    assert actions.count("Process Withdrawal") == 1
    assert "Update User" in actions


def test_withdrawal_body_validation(tmp_path) -> None:
    client, _ = _client(tmp_path)
    player = _register(client, "player@example.com")
    assert client.post("/api/withdrawals", headers=player, json={"amount": 0, "method": "PAYPAL"}).status_code == 422
    assert client.post("/api/withdrawals", headers=player, json={"amount": 1, "method": "CHEQUE"}).status_code == 422


def test_admin_seed_settings_and_task_management(tmp_path) -> None:
    client, _ = _client(tmp_path)
    admin = _register(client, "boss@example.com")

    assert client.post("/api/admin/seed", headers=admin).json() == {"ok": True, "seeded": 5}
    assert len(client.get("/api/tasks").json()["tasks"]) == 5

    copy = client.post("/api/admin/tasks/signup-newsletter/duplicate", headers=admin).json()["task"]
    assert copy["title"] == "Join the Newsletter (Copy)"
    assert len(client.get("/api/admin/tasks", headers=admin).json()["tasks"]) == 6
    assert len(client.get("/api/tasks").json()["tasks"]) == 5

    assert client.delete(f"/api/admin/tasks/{copy['id']}", headers=admin).json() == {"ok": True}
    assert client.delete(f"/api/admin/tasks/{copy['id']}", headers=admin).status_code == 404

    resp = client.put("/api/admin/settings", headers=admin, json={"settings": {"adsEnabled": False}})
    assert resp.json()["settings"]["adsEnabled"] is False
    assert client.get("/api/settings").json()["adsEnabled"] is False

    player = _register(client, "player@example.com")
    resp = client.post("/api/ads/reward", headers=player)
    assert resp.status_code == 409
    assert resp.json()["code"] == "ADS_DISABLED"

    users = client.get("/api/admin/users", headers=admin).json()["users"]
    assert {u["email"] for u in users} == {"boss@example.com", "player@example.com"}


def test_partial_settings_put_keeps_other_tunables(tmp_path) -> None:
    client, db = _client(tmp_path)
    admin = _register(client, "boss@example.com")
    db.set_global_settings(GlobalSettings(referral_bonus=0.5, coins_per_ad=0.02), NOW)

    resp = client.put("/api/admin/settings", headers=admin, json={"settings": {"adsEnabled": False}})
    assert resp.status_code == 200

    stored = db.get_global_settings()
    assert stored.ads_enabled is False
    assert stored.referral_bonus == pytest.approx(0.5)
    assert stored.coins_per_ad == pytest.approx(0.02)
    assert resp.json()["settings"]["referralBonus"] == pytest.approx(0.5)
