"""Test fixtures for TaskBoard."""

import json
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from task_board.config import Config
from task_board.factory import create_app


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Create temporary data root with the default project."""
    root = tmp_path / "data"
    (root / "clawkanban").mkdir(parents=True)
    return root


@pytest.fixture
def sessions_dir(tmp_path: Path) -> Path:
    """Create temporary session log directory."""
    sessions = tmp_path / "sessions"
    sessions.mkdir()
    return sessions


@pytest.fixture
def iso() -> Callable[[int], str]:
    """Convert epoch milliseconds to the ISO format stored in task files."""

    def convert(epoch_ms: int) -> str:
        return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).isoformat()

    return convert


@pytest.fixture
def message() -> Callable[..., dict[str, Any]]:
    """Build one session log record carrying token usage."""

    def build(
        timestamp: int,
        role: str = "assistant",
        model: str = "claude-sonnet-4-6",
        **usage: int,
    ) -> dict[str, Any]:
        return {
            "type": "message",
            "message": {
                "role": role,
                "model": model,
                "timestamp": timestamp,
                "usage": {
                    "input": usage.get("input", 0),
                    "output": usage.get("output", 0),
                    "cacheRead": usage.get("cache_read", 0),
                    "cacheWrite": usage.get("cache_write", 0),
                },
            },
        }

    return build


@pytest.fixture
def write_session(sessions_dir: Path) -> Callable[[str, list[Any]], Path]:
    """Write a session log; dict records become JSON lines, strings are kept raw."""

    def write(name: str, records: list[Any]) -> Path:
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path = sessions_dir / f"{name}.jsonl"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return write


@pytest.fixture
def sample_task_file(data_root: Path) -> Path:
    """Create a task file as an external agent would."""
    task_file = data_root / "clawkanban" / "a1b2c3d4e5f6.json"
    task = {
        "id": "a1b2c3d4e5f6",
        "identifier": "TealOtterLisbon",
        "title": "Write release notes",
        "description": "Summarize the changes since last release",
        "priority": "High",
        "owner": "agent",
        "state": "inProgress",
        "comments": [
            {
                "id": "c00000000001",
                "author": "agent",
                "text": "Started",
                "createdAt": "2026-01-01T10:00:00+00:00",
            }
        ],
        "createdAt": "2026-01-01T09:59:00+00:00",
    }
    task_file.write_text(json.dumps(task, indent=2), encoding="utf-8")
    return task_file


@pytest.fixture
def config(data_root: Path, sessions_dir: Path) -> Config:
    """Test configuration without the file watcher."""
    return Config(
        data_root=data_root,
        sessions_dir=sessions_dir,
        watch_enabled=False,
    )


@pytest.fixture
def test_client(config: Config) -> Iterator[TestClient]:
    """Create test client; lifespan runs for the duration of the test."""
    app = create_app(config)
    with TestClient(app) as client:
        yield client
