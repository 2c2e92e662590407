"""Models for TaskBoard."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from task_board.costs.pricing import round_half_up
from task_board.errors import MalformedTaskError


class TaskState(str, Enum):
    """Lifecycle state of a task."""

    TODO = "toDo"
    IN_PROGRESS = "inProgress"
    DONE = "done"


class Priority(str, Enum):
    """Task priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass
class CostEstimate:
    """Windowed cost estimate attached to a finished task."""

    usd: float  # Rounded to cents
    input_tokens: int  # input + cacheRead
    output_tokens: int
    messages: int  # Matched assistant events

    def to_dict(self) -> dict[str, Any]:
        return {
            "usd": self.usd,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "messages": self.messages,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CostEstimate":
        return cls(
            usd=float(data.get("usd") or 0),
            input_tokens=int(data.get("inputTokens") or 0),
            output_tokens=int(data.get("outputTokens") or 0),
            messages=int(data.get("messages") or 0),
        )


@dataclass
class TaskCostSummary:
    """Tag-split cost accumulated for one task across session logs."""

    cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    sessions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cost": round_half_up(self.cost, 2),
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "sessions": self.sessions,
        }


@dataclass
class Comment:
    """Comment appended to a task."""

    id: str
    author: str
    text: str
    created_at: str | None  # ISO-8601
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown keys from external writers

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "author": self.author,
                "text": self.text,
                "createdAt": self.created_at,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Comment":
        if not isinstance(data, dict):
            raise MalformedTaskError(f"Comment is not an object: {data!r}")
        known = {"id", "author", "text", "createdAt"}
        return cls(
            id=str(data.get("id", "")),
            author=str(data.get("author") or "anonymous"),
            text=str(data.get("text", "")),
            # Agents writing files directly sometimes use "at"
            created_at=data.get("createdAt") or data.get("at"),
            extra={k: v for k, v in data.items() if k not in known},
        )


TASK_KEYS = {
    "id",
    "identifier",
    "project",
    "title",
    "description",
    "priority",
    "owner",
    "state",
    "comments",
    "cost",
    "createdAt",
    "updatedAt",
}


@dataclass
class Task:
    """Task persisted as ``<data_root>/<project>/<id>.json``."""

    id: str  # 12 hex chars, also the file stem
    identifier: str | None  # Three-word mnemonic, unique across all projects
    project: str
    title: str = "Untitled"
    description: str = ""
    priority: Priority = Priority.MEDIUM
    owner: str = ""
    state: TaskState = TaskState.TODO
    comments: list[Comment] = field(default_factory=list)
    cost: CostEstimate | None = None  # Attached at most once
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk / wire schema."""
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "identifier": self.identifier,
                "project": self.project,
                "title": self.title,
                "description": self.description,
                "priority": self.priority.value,
                "owner": self.owner,
                "state": self.state.value,
                "comments": [c.to_dict() for c in self.comments],
                "createdAt": self.created_at,
            }
        )
        if self.cost is not None:
            data["cost"] = self.cost.to_dict()
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Any, project: str) -> "Task":
        """Build a task from a decoded JSON record.

        Args:
            data: Decoded JSON content of a task file
            project: Project the file was found in (wins over the stored value)

        Raises:
            MalformedTaskError: If the record is not a usable task
        """
        if not isinstance(data, dict):
            raise MalformedTaskError("Task record is not an object")
        task_id = data.get("id")
        if not isinstance(task_id, str) or not task_id:
            raise MalformedTaskError("Task record has no id")

        try:
            priority = Priority(data.get("priority") or Priority.MEDIUM.value)
            state = TaskState(data.get("state") or TaskState.TODO.value)
        except ValueError as e:
            raise MalformedTaskError(f"Task {task_id}: {e}") from e

        comments_data = data.get("comments") or []
        if not isinstance(comments_data, list):
            raise MalformedTaskError(f"Task {task_id}: comments is not a list")

        cost_data = data.get("cost")
        cost = CostEstimate.from_dict(cost_data) if isinstance(cost_data, dict) else None

        return cls(
            id=task_id,
            identifier=data.get("identifier"),
            project=project,
            title=str(data.get("title") or "Untitled"),
            description=str(data.get("description") or ""),
            priority=priority,
            owner=str(data.get("owner") or ""),
            state=state,
            comments=[Comment.from_dict(c) for c in comments_data],
            cost=cost,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            extra={k: v for k, v in data.items() if k not in TASK_KEYS},
        )


class CreateProjectRequest(BaseModel):
    """Request model for creating a project."""

    name: str = ""


class CreateTaskRequest(BaseModel):
    """Request model for creating a task."""

    model_config = {"extra": "allow"}

    id: str | None = None
    identifier: str | None = None
    title: str = "Untitled"
    description: str = ""
    priority: Priority = Priority.MEDIUM
    owner: str = ""
    state: TaskState = TaskState.TODO


class UpdateTaskRequest(BaseModel):
    """Request model for merging fields into a task."""

    model_config = {"extra": "allow"}

    title: str | None = None
    description: str | None = None
    priority: Priority | None = None
    owner: str | None = None
    state: TaskState | None = None


class UpdateStateRequest(BaseModel):
    """Request model for a state transition."""

    state: TaskState | None = None


class AddCommentRequest(BaseModel):
    """Request model for adding a comment."""

    author: str = "anonymous"
    text: str = ""
