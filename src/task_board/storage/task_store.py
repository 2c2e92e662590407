"""Task store backed by one JSON file per task."""

import json
import logging
import re
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from task_board.api.models import Task
from task_board.errors import InvalidProjectNameError, MalformedTaskError, TaskNotFoundError
from task_board.identifiers import generate_identifier

logger = logging.getLogger(__name__)

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_project_name(name: str) -> str:
    """Strip everything outside ``[A-Za-z0-9_-]``.

    Raises:
        InvalidProjectNameError: If nothing is left
    """
    safe = _UNSAFE_SEGMENT.sub("", name or "")
    if not safe:
        raise InvalidProjectNameError(f"Invalid project name: {name!r}")
    return safe


def new_id() -> str:
    """Return a fresh 12-hex-char id for tasks and comments."""
    return secrets.token_hex(6)


def now_iso() -> str:
    """Current UTC time in the ISO format used by task files."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TaskStore(Protocol):
    """Protocol for task persistence."""

    def read_task(self, project: str, task_id: str) -> Task:
        """Read a specific task."""
        ...

    def write_task(self, task: Task) -> None:
        """Persist the full task record."""
        ...

    def list_tasks(self, project: str) -> list[Task]:
        """List all tasks of a project."""
        ...

    def list_projects(self) -> list[str]:
        """List project names."""
        ...


class JsonTaskStore:
    """Task store for ``<data_root>/<project>/<id>.json`` files."""

    def __init__(self, data_root: str | Path) -> None:
        """Initialize store and create the data root if needed."""
        self._data_root = Path(data_root)
        self._data_root.mkdir(parents=True, exist_ok=True)

    @property
    def data_root(self) -> Path:
        return self._data_root

    def project_dir(self, project: str) -> Path:
        """Directory holding the task files of ``project``."""
        return self._data_root / sanitize_project_name(project)

    def create_project(self, name: str) -> str:
        """Create the project directory on demand and return the sanitized name."""
        safe = sanitize_project_name(name)
        (self._data_root / safe).mkdir(parents=True, exist_ok=True)
        logger.info(f"[TaskStore] Project ready: {safe}")
        return safe

    def list_projects(self) -> list[str]:
        """List project directories under the data root."""
        if not self._data_root.exists():
            return []
        return sorted(p.name for p in self._data_root.iterdir() if p.is_dir())

    def task_path(self, project: str, task_id: str) -> Path:
        """Path of a task file; ids outside the safe alphabet never resolve."""
        if not task_id or _UNSAFE_SEGMENT.search(task_id):
            raise TaskNotFoundError(f"Task not found: {task_id}")
        return self.project_dir(project) / f"{task_id}.json"

    def read_task(self, project: str, task_id: str) -> Task:
        """Read a task by id.

        Malformed files are reported as missing, since external writers may
        leave a half-written file behind.

        Raises:
            TaskNotFoundError: If the file is absent or cannot be parsed
        """
        file_path = self.task_path(project, task_id)
        if not file_path.exists():
            raise TaskNotFoundError(f"Task not found: {task_id}")
        try:
            return self._parse_task(file_path, sanitize_project_name(project))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, MalformedTaskError) as e:
            logger.warning(f"[TaskStore] Failed to parse {file_path}: {e}")
            raise TaskNotFoundError(f"Task not found: {task_id}") from e

    def write_task(self, task: Task) -> None:
        """Overwrite the task file with the full record.

        The first write of a new record only sets ``created_at``; every later
        write refreshes ``updated_at``. Timestamps are stamped onto ``task``.
        """
        project = sanitize_project_name(task.project)
        task.project = project
        file_path = self.task_path(project, task.id)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        if file_path.exists():
            task.updated_at = now_iso()
        elif not task.created_at:
            task.created_at = now_iso()

        content = json.dumps(task.to_dict(), indent=2, ensure_ascii=False)
        file_path.write_text(content, encoding="utf-8")
        logger.debug(f"[TaskStore] Wrote {project}/{task.id}")

    def list_tasks(self, project: str) -> list[Task]:
        """List all parseable tasks of a project."""
        try:
            project_dir = self.project_dir(project)
        except InvalidProjectNameError:
            return []
        if not project_dir.is_dir():
            return []

        tasks: list[Task] = []
        for file_path in sorted(project_dir.glob("*.json")):
            try:
                tasks.append(self._parse_task(file_path, project_dir.name))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, MalformedTaskError) as e:
                logger.warning(f"[TaskStore] Failed to parse {file_path}: {e}")
                continue
        return tasks

    def list_all_tasks(self) -> list[Task]:
        """List tasks across every project."""
        tasks: list[Task] = []
        for project in self.list_projects():
            tasks.extend(self.list_tasks(project))
        return tasks

    def find_task(self, task_id: str) -> Task:
        """Search every project for a task id.

        Raises:
            TaskNotFoundError: If no project holds a readable task with that id
        """
        for project in self.list_projects():
            try:
                return self.read_task(project, task_id)
            except TaskNotFoundError:
                continue
        raise TaskNotFoundError(f"Task not found: {task_id}")

    def all_identifiers(self) -> set[str]:
        """Identifiers in use anywhere in the store."""
        return {t.identifier for t in self.list_all_tasks() if t.identifier}

    def backfill_identifiers(self) -> int:
        """Assign identifiers to tasks that have none.

        Returns:
            Number of tasks updated
        """
        existing = self.all_identifiers()
        updated = 0
        for task in self.list_all_tasks():
            if task.identifier:
                continue
            task.identifier = generate_identifier(existing)
            existing.add(task.identifier)
            self.write_task(task)
            updated += 1
        if updated:
            logger.info(f"[TaskStore] Backfilled identifiers for {updated} tasks")
        return updated

    def _parse_task(self, file_path: Path, project: str) -> Task:
        """Parse a task file into a Task."""
        data = json.loads(file_path.read_text(encoding="utf-8"))
        return Task.from_dict(data, project)
