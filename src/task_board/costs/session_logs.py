"""Reader for append-only agent session logs (``*.jsonl``)."""

import json
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TASK_TAG_PATTERN = re.compile(r"task id: ([0-9a-f]{12})")


@dataclass(frozen=True)
class UsageEvent:
    """One message record carrying token usage."""

    role: str | None
    model: str | None
    timestamp: int | float | None  # Epoch milliseconds
    usage: dict[str, Any]


def list_session_files(sessions_dir: Path) -> list[Path]:
    """Session log files, or an empty list when the directory is missing."""
    if not sessions_dir.is_dir():
        logger.debug(f"[SessionLogs] Sessions dir not found: {sessions_dir}")
        return []
    return sorted(sessions_dir.glob("*.jsonl"))


def read_session(file_path: Path) -> str | None:
    """Full text of a session file, ``None`` if it cannot be read."""
    try:
        return file_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"[SessionLogs] Failed to read {file_path.name}: {e}")
        return None


def parse_usage_events(content: str) -> Iterator[UsageEvent]:
    """Yield usage events from session text, skipping unparseable lines."""
    for line in content.splitlines():
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(record, dict) or record.get("type") != "message":
            continue
        message = record.get("message")
        if not isinstance(message, dict):
            continue
        usage = message.get("usage")
        if not isinstance(usage, dict):
            continue
        timestamp = message.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
            timestamp = None
        yield UsageEvent(
            role=message.get("role"),
            model=message.get("model"),
            timestamp=timestamp,
            usage=usage,
        )


def find_task_tags(content: str) -> set[str]:
    """Distinct task ids referenced as ``task id: <12 hex>`` in session text."""
    return set(TASK_TAG_PATTERN.findall(content))
