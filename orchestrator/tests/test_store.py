"""Tests for store queries and the notification inbox."""

import pytest

from orchestrator.src.config import Settings
from orchestrator.src.errors import NotFoundError

def test_stands_by_status(store, make_stand):
    make_stand(name="a", status="created")
    make_stand(name="b", status="pending")
    make_stand(name="c", status="created")

    assert [s.name for s in store.stands_by_status("created")] == ["a", "c"]
    assert [s.name for s in store.stands_by_status("running")] == []

def test_stand_products_and_status(store, make_stand):
    make_stand(name="demo", products=["A", "B"], status="pending")

    assert store.stand_products("demo") == ["A", "B"]
    assert store.stand_status("demo") == "pending"

def test_unknown_stand_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.stand_status("missing")

def test_notification_inbox(store, make_stand, seed_pipeline, rows):
    stand = make_stand(status="running")
    pipeline = seed_pipeline(stand)
    first, second, _ = rows.steps(pipeline.id)

    store.append_step_state(first.id, "success")
    store.append_step_state(second.id, "error")

    inbox = store.undelivered_notifications()
    assert [(n.step_name, n.status, n.step_order) for n in inbox] == [
        ("Creating vm", "success", 1),
        ("Executing automation", "error", 2),
    ]

    store.mark_notification_delivered(inbox[0].id)

    assert [n.id for n in store.undelivered_notifications()] == [inbox[1].id]

def test_mark_unknown_notification(store):
    with pytest.raises(NotFoundError):
        store.mark_notification_delivered(999)

def test_step_state_for_unknown_step(store):
    with pytest.raises(NotFoundError):
        store.append_step_state(999, "success")

def test_missing_gitlab_settings():
    settings = Settings(
        gitlab_api_url="https://gitlab.example.com/api/v4",
        gitlab_token="",
        gitlab_project_id=0,
        gitlab_trigger_token="t",
    )

    assert settings.missing_gitlab_settings() == ["gitlab_token", "gitlab_project_id"]
