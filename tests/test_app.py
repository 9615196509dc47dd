import pytest
from fastapi.testclient import TestClient

from vsched.app import create_app
from vsched.runtime import RUNNING, TaskStatus


@pytest.fixture
def client(scheduler):
    with TestClient(create_app(scheduler)) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


def test_change_requirement_round_trip(client):
    r = client.post("/requirements", json={"target": "http://es1:9200", "delta": 2})
    assert r.status_code == 200
    assert r.json() == {"target": "http://es1:9200", "required": 2, "running": 0, "delta": 2}

    r = client.post("/requirements", json={"target": "http://es1:9200", "delta": -5})
    assert r.json()["required"] == 0

    assert client.get("/requirements").json() == []


@pytest.mark.parametrize(
    "payload",
    [
        {"target": "", "delta": 1},
        {"target": "   ", "delta": 1},
        {"target": "es1"},
        {"target": "es1", "delta": "many"},
    ],
)
def test_invalid_change_is_rejected(client, payload):
    assert client.post("/requirements", json=payload).status_code == 422


def test_tasks_and_history(client, scheduler, driver, make_offers):
    client.post("/requirements", json={"target": "es1", "delta": 1})
    scheduler.resource_offers(driver, make_offers(1))
    (handle,) = scheduler.tasks()
    scheduler.status_update(driver, TaskStatus(handle.task_id, RUNNING))

    (task,) = client.get("/tasks").json()
    assert task["task_id"] == handle.task_id
    assert task["target"] == "es1"
    assert task["state"] == RUNNING
    assert task["port"] == handle.port

    (row,) = client.get("/tasks/history", params={"target": "es1"}).json()
    assert row["task_id"] == handle.task_id
    assert row["state"] == RUNNING


def test_events_lists_latest_first(client):
    client.post("/requirements", json={"target": "es1", "delta": 1})
    client.post("/requirements", json={"target": "es1", "delta": -1})

    events = client.get("/events", params={"limit": 2}).json()
    assert [e["message"] for e in events] == ["No more instances are required", "Now requiring 1 instances"]
    assert client.get("/events", params={"limit": 0}).status_code == 422
