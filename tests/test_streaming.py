import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from structlog.contextvars import bind_contextvars, clear_contextvars

import logic
import main
import models
import schemas
from main import ConnectionManager, publish_notifications, push_unread_count


def create_test_user(db: Session, email: str, role: str = "jobseeker") -> models.User:
    user = models.User(name="Streamer", email=email, password="secret", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        item = queue.get_nowait()
        events.append((item["event"], json.loads(item["data"])))
    return events


@pytest.mark.asyncio
async def test_send_to_disconnected_user_is_skipped():
    manager = ConnectionManager()

    delivered = await manager.send_personal_message({"hello": "world"}, 42, event="notification")

    assert delivered is False
    assert not manager.is_connected(42)


@pytest.mark.asyncio
async def test_connect_and_disconnect():
    manager = ConnectionManager()

    queue = await manager.connect(7)
    assert manager.is_connected(7)
    assert await manager.send_personal_message("plain text", 7) is True
    assert queue.get_nowait() == {"event": "message", "data": "plain text"}

    manager.disconnect(7, queue)
    manager.disconnect(7, queue)
    assert not manager.is_connected(7)
    assert manager.active_connections == {}


@pytest.mark.asyncio
async def test_second_stream_survives_first_disconnect():
    manager = ConnectionManager()
    first = await manager.connect(5)
    second = await manager.connect(5)

    assert await manager.send_personal_message({"count": 1}, 5, event="unread_count") is True
    assert drain(first) == [("unread_count", {"count": 1})]
    assert drain(second) == [("unread_count", {"count": 1})]

    manager.disconnect(5, first)

    assert manager.is_connected(5)
    assert await manager.send_personal_message({"count": 2}, 5, event="unread_count") is True
    assert drain(second) == [("unread_count", {"count": 2})]
    assert first.empty()

    manager.disconnect(5, second)
    assert not manager.is_connected(5)


@pytest.mark.asyncio
async def test_request_id_is_attached_to_events():
    manager = ConnectionManager()
    queue = await manager.connect(1)
    bind_contextvars(request_id="req-123")
    try:
        await manager.send_personal_message({"count": 3}, 1, event="unread_count")
    finally:
        clear_contextvars()

    assert drain(queue) == [("unread_count", {"count": 3, "request_id": "req-123"})]


@pytest.mark.asyncio
async def test_publish_only_reaches_connected_recipients(db_session: Session):
    listening = create_test_user(db_session, "listening@example.com")
    create_test_user(db_session, "offline@example.com")
    manager = ConnectionManager()
    queue = await manager.connect(listening.id)

    job, created = logic.create_job(
        db_session, schemas.JobCreate(title="Streaming Engineer", company="Acme", location="Remote")
    )
    delivered = await publish_notifications(db_session, created, manager_override=manager)

    assert len(created) == 2
    assert delivered == 1
    events = drain(queue)
    assert [name for name, _ in events] == ["notification", "unread_count"]
    payload = events[0][1]
    assert payload["userId"] == listening.id
    assert payload["jobId"] == job.id
    assert payload["type"] == "job_posted"
    assert payload["jobTitle"] == "Streaming Engineer"
    assert events[1][1] == {"count": 1}


@pytest.mark.asyncio
async def test_push_unread_count_skips_offline_users(db_session: Session):
    manager = ConnectionManager()

    await push_unread_count(db_session, 99, manager_override=manager)

    assert manager.active_connections == {}


def test_job_post_endpoint_streams_to_connected_user(test_client: TestClient, db_session: Session):
    seeker = create_test_user(db_session, "seeker@example.com")
    queue = asyncio.run(main.manager.connect(seeker.id))
    try:
        response = test_client.post("/jobs", json={"title": "Live", "company": "Acme", "location": "Remote"})
        assert response.status_code == 200

        events = drain(queue)
        assert [name for name, _ in events] == ["notification", "unread_count"]
        assert events[0][1]["jobTitle"] == "Live"

        notification_id = events[0][1]["id"]
        test_client.put(f"/notifications/{notification_id}/read")
        follow_up = drain(queue)
        assert len(follow_up) == 1
        name, payload = follow_up[0]
        assert name == "unread_count"
        assert payload["count"] == 0
        assert "request_id" in payload
    finally:
        main.manager.disconnect(seeker.id, queue)
