from __future__ import annotations

from datetime import datetime, timezone

import pytest

from reward_hub.db import Database
from reward_hub.errors import OutOfEnergy
from reward_hub.events import ChangeFeed, document_topic
from reward_hub.ledger import mine, request_withdrawal

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_subscribe_delivers_current_snapshot_immediately() -> None:
    feed = ChangeFeed()
    seen: list[int] = []
    feed.subscribe("tasks", lambda: 42, seen.append)
    assert seen == [42]


def test_publish_only_reaches_matching_topics() -> None:
    feed = ChangeFeed()
    tasks: list[str] = []
    users: list[str] = []
    feed.subscribe("tasks", lambda: "tasks", tasks.append)
    feed.subscribe("users/u1", lambda: "u1", users.append)

    feed.publish({"tasks", "tasks/t1"})
    assert tasks == ["tasks", "tasks"]
    assert users == ["u1"]

    feed.publish([])
    assert len(tasks) == 2


def test_failing_callback_does_not_block_others() -> None:
    feed = ChangeFeed()
    seen: list[str] = []

    def broken(_: object) -> None:
        raise RuntimeError("listener crashed")

    feed.subscribe("tasks", lambda: "x", broken)
    feed.subscribe("tasks", lambda: "x", seen.append)
    feed.publish({"tasks"})
    assert seen == ["x", "x"]


def test_unsubscribe_stops_delivery() -> None:
    feed = ChangeFeed()
    seen: list[str] = []
    unsubscribe = feed.subscribe("tasks", lambda: "x", seen.append)
    assert feed.subscriber_count() == 1

    unsubscribe()
    unsubscribe()
    feed.publish({"tasks"})
    assert seen == ["x"]
    assert feed.subscriber_count() == 0


def test_committed_writes_notify_document_subscribers(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    db.create_user_record("u1", "u1@example.com", NOW)
    energies: list[int] = []
    unsubscribe = db.changes.subscribe(
        document_topic("users", "u1"),
        lambda: db.get_user("u1"),
        lambda user: energies.append(user.energy),
    )

    mine(db, "u1", NOW)
    assert energies == [100, 90]

    db.update_user_fields("u1", {"energy": 0})
    with pytest.raises(OutOfEnergy):
        mine(db, "u1", NOW)
    assert energies == [100, 90, 0]

    unsubscribe()
    db.update_user_fields("u1", {"energy": 50})
    assert energies == [100, 90, 0]


def test_collection_subscribers_see_new_withdrawals(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    db.create_user_record("u1", "u1@example.com", NOW)
    db.update_user_fields("u1", {"balance": 1.0})
    counts: list[int] = []
    db.changes.subscribe("withdrawals", lambda: len(db.list_withdrawals()), counts.append)

    request_withdrawal(db, "u1", 0.5, "GIFTCARD", NOW)
    assert counts == [0, 1]
