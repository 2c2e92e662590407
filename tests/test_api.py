"""Tests for API endpoints."""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from task_board.config import Config
from task_board.factory import create_app


def test_health_endpoint(test_client: TestClient) -> None:
    """Test GET /api/health liveness probe."""
    response = test_client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_and_list_projects(test_client: TestClient) -> None:
    """Test POST /api/projects sanitizes and creates on demand."""
    response = test_client.post("/api/projects", json={"name": "proj 1!"})

    assert response.status_code == 201
    assert response.json() == {"name": "proj1"}
    assert test_client.get("/api/projects").json() == ["clawkanban", "proj1"]


def test_create_project_invalid_name(test_client: TestClient) -> None:
    """Test POST /api/projects with nothing left after sanitization."""
    response = test_client.post("/api/projects", json={"name": "!!!"})

    assert response.status_code == 400


def test_create_task_defaults(test_client: TestClient, data_root: Path) -> None:
    """Test POST /api/projects/{project}/tasks fills in defaults and writes the file."""
    response = test_client.post("/api/projects/proj1/tasks", json={"title": "X"})

    assert response.status_code == 201
    task = response.json()
    assert task["title"] == "X"
    assert task["state"] == "toDo"
    assert task["priority"] == "Medium"
    assert task["project"] == "proj1"
    assert task["comments"] == []
    assert "cost" not in task
    assert len(task["id"]) == 12
    assert task["identifier"]
    assert (data_root / "proj1" / f"{task['id']}.json").exists()


def test_create_task_duplicate_identifier(test_client: TestClient, sample_task_file: Path) -> None:
    """Test identifiers stay unique across projects."""
    response = test_client.post(
        "/api/projects/other/tasks", json={"title": "Y", "identifier": "TealOtterLisbon"}
    )

    assert response.status_code == 409


def test_get_task(test_client: TestClient, sample_task_file: Path) -> None:
    """Test GET /api/projects/{project}/tasks/{id}."""
    response = test_client.get("/api/projects/clawkanban/tasks/a1b2c3d4e5f6")

    assert response.status_code == 200
    assert response.json()["title"] == "Write release notes"


def test_get_task_not_found(test_client: TestClient) -> None:
    """Test GET for a missing task."""
    response = test_client.get("/api/projects/clawkanban/tasks/ffffffffffff")

    assert response.status_code == 404


def test_update_task_merges_fields(test_client: TestClient, sample_task_file: Path) -> None:
    """Test PUT merges fields but never replaces cost."""
    response = test_client.put(
        "/api/projects/clawkanban/tasks/a1b2c3d4e5f6",
        json={"title": "Renamed", "cost": {"usd": 99}, "labels": ["docs"]},
    )

    assert response.status_code == 200
    task = response.json()
    assert task["title"] == "Renamed"
    assert task["description"] == "Summarize the changes since last release"
    assert task["labels"] == ["docs"]
    assert "cost" not in task
    assert task["updatedAt"]


def test_add_comment(test_client: TestClient, sample_task_file: Path) -> None:
    """Test POST comments appends in order."""
    response = test_client.post(
        "/api/projects/clawkanban/tasks/a1b2c3d4e5f6/comments",
        json={"author": "bob", "text": "Looks good"},
    )

    assert response.status_code == 201
    comment = response.json()
    assert comment["author"] == "bob"
    assert comment["createdAt"]

    task = test_client.get("/api/projects/clawkanban/tasks/a1b2c3d4e5f6").json()
    assert [c["text"] for c in task["comments"]] == ["Started", "Looks good"]


def test_add_comment_missing_task(test_client: TestClient) -> None:
    """Test commenting on a missing task."""
    response = test_client.post(
        "/api/projects/clawkanban/tasks/ffffffffffff/comments", json={"text": "hi"}
    )

    assert response.status_code == 404


def test_state_transition_end_to_end(test_client: TestClient) -> None:
    """Test cost is attached on the first move to done and then kept."""
    assert test_client.post("/api/projects", json={"name": "proj1"}).status_code == 201
    created = test_client.post("/api/projects/proj1/tasks", json={"title": "X"}).json()
    assert created["state"] == "toDo"
    assert "cost" not in created

    url = f"/api/projects/proj1/tasks/{created['id']}/state"
    done = test_client.put(url, json={"state": "done"}).json()
    assert done["state"] == "done"
    assert done["cost"]["usd"] >= 0

    again = test_client.put(url, json={"state": "done"}).json()
    assert again["cost"] == done["cost"]


def test_state_transition_uses_window(
    test_client: TestClient,
    sample_task_file: Path,
    message: Callable[..., dict[str, Any]],
    write_session: Callable[[str, list[Any]], Path],
) -> None:
    """Test done attaches usage from the task's comment window."""
    # Sample task comment at 2026-01-01T10:00:00Z
    write_session("s1", [message(1_767_261_610_000, model="gpt-4o", input=400_000)])

    response = test_client.put(
        "/api/projects/clawkanban/tasks/a1b2c3d4e5f6/state", json={"state": "done"}
    )

    assert response.status_code == 200
    assert response.json()["cost"] == {
        "usd": 1.0,
        "inputTokens": 400_000,
        "outputTokens": 0,
        "messages": 1,
    }


def test_unscoped_routes(test_client: TestClient, sample_task_file: Path) -> None:
    """Test /api/tasks routes use every project for reads and clawkanban for writes."""
    test_client.post("/api/projects/other/tasks", json={"id": "0123456789ab", "title": "Other"})

    created = test_client.post("/api/tasks", json={"title": "Default"})
    assert created.status_code == 201
    assert created.json()["project"] == "clawkanban"

    all_ids = {t["id"] for t in test_client.get("/api/tasks").json()}
    assert {"a1b2c3d4e5f6", "0123456789ab", created.json()["id"]} <= all_ids

    found = test_client.get("/api/tasks/0123456789ab")
    assert found.status_code == 200
    assert found.json()["project"] == "other"
    assert test_client.get("/api/tasks/ffffffffffff").status_code == 404


def test_task_costs_endpoints(
    test_client: TestClient,
    message: Callable[..., dict[str, Any]],
    write_session: Callable[[str, list[Any]], Path],
) -> None:
    """Test GET /api/task-costs uses tag-split attribution."""
    write_session(
        "s1",
        [
            {"text": "task id: aaaaaaaaaaaa and task id: bbbbbbbbbbbb"},
            message(0, model="gpt-4o", input=400_000),
        ],
    )

    costs = test_client.get("/api/task-costs").json()
    assert costs["aaaaaaaaaaaa"] == {
        "cost": 0.5,
        "inputTokens": 200_000,
        "outputTokens": 0,
        "sessions": 1,
    }

    single = test_client.get("/api/task-costs/bbbbbbbbbbbb").json()
    assert single["cost"] == 0.5
    missing = test_client.get("/api/task-costs/cccccccccccc").json()
    assert missing == {"cost": 0, "inputTokens": 0, "outputTokens": 0, "sessions": 0}


def test_task_costs_cached(
    test_client: TestClient,
    message: Callable[..., dict[str, Any]],
    write_session: Callable[[str, list[Any]], Path],
) -> None:
    """Test two calls within the TTL return identical bodies despite log changes."""
    write_session("s1", [{"text": "task id: aaaaaaaaaaaa"}, message(0, output=1000)])
    first = test_client.get("/api/task-costs")

    write_session("s1", [{"text": "task id: aaaaaaaaaaaa"}, message(0, output=9000)])
    second = test_client.get("/api/task-costs")

    assert second.content == first.content


def test_backfill_on_startup(config: Config, data_root: Path) -> None:
    """Test tasks written without identifier get one when the app starts."""
    path = data_root / "clawkanban" / "aaaaaaaaaaaa.json"
    path.write_text(json.dumps({"id": "aaaaaaaaaaaa", "title": "Legacy"}), encoding="utf-8")

    with TestClient(create_app(config)):
        pass

    assert json.loads(path.read_text(encoding="utf-8"))["identifier"]


def test_bulk_reads_run_off_the_event_loop(
    config: Config, sample_task_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test reads over every task file happen in a worker thread."""
    app = create_app(config)
    store = app.state.services.store
    seen: list[str] = []

    def recording(name: str) -> Callable[..., Any]:
        original = getattr(store, name)

        def call(*args: Any) -> Any:
            try:
                asyncio.get_running_loop()
                seen.append(f"{name}: loop")
            except RuntimeError:
                seen.append(f"{name}: thread")
            return original(*args)

        return call

    for name in ("list_all_tasks", "all_identifiers", "list_tasks", "find_task"):
        monkeypatch.setattr(store, name, recording(name))

    with TestClient(app) as client:
        client.get("/api/tasks")
        client.get("/api/tasks/a1b2c3d4e5f6")
        client.get("/api/projects/clawkanban/tasks")
        client.post("/api/tasks", json={"title": "New"})

    assert "list_all_tasks: thread" in seen
    assert "all_identifiers: thread" in seen
    assert "list_tasks: thread" in seen
    assert "find_task: thread" in seen
    assert not [entry for entry in seen if entry.endswith("loop")]


def test_websocket_init_snapshot(test_client: TestClient, sample_task_file: Path) -> None:
    """Test a new subscriber receives projects and default project tasks."""
    with test_client.websocket_connect("/ws") as websocket:
        message = websocket.receive_json()

    assert message["event"] == "init"
    assert message["data"]["projects"] == ["clawkanban"]
    assert [t["id"] for t in message["data"]["tasks"]] == ["a1b2c3d4e5f6"]


def test_websocket_receives_api_changes(test_client: TestClient, sample_task_file: Path) -> None:
    """Test API mutations are pushed to connected clients in order."""
    with test_client.websocket_connect("/ws") as websocket:
        assert websocket.receive_json()["event"] == "init"

        created = test_client.post("/api/projects/clawkanban/tasks", json={"title": "Live"}).json()
        test_client.post(
            f"/api/projects/clawkanban/tasks/{created['id']}/comments", json={"text": "hi"}
        )

        first = websocket.receive_json()
        second = websocket.receive_json()

    assert first["event"] == "taskCreated"
    assert first["data"]["id"] == created["id"]
    assert second["event"] == "taskUpdated"
    assert second["data"]["comments"][0]["text"] == "hi"


def test_websocket_ping(test_client: TestClient) -> None:
    """Test ping/pong keepalive."""
    with test_client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"
