"""Project and task API endpoints."""

import asyncio
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from task_board.api.models import (
    TASK_KEYS,
    AddCommentRequest,
    Comment,
    CreateProjectRequest,
    CreateTaskRequest,
    Task,
    UpdateStateRequest,
    UpdateTaskRequest,
)
from task_board.errors import InvalidProjectNameError, TaskNotFoundError
from task_board.factory import Services, get_services
from task_board.identifiers import generate_identifier
from task_board.storage.task_store import new_id, now_iso

logger = logging.getLogger(__name__)

router = APIRouter()

ServicesDep = Annotated[Services, Depends(get_services)]


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe for process supervision."""
    return {"status": "ok"}


@router.get("/projects")
async def list_projects(services: ServicesDep) -> list[str]:
    """List all projects."""
    return services.store.list_projects()


@router.post("/projects", status_code=status.HTTP_201_CREATED)
async def create_project(request: CreateProjectRequest, services: ServicesDep) -> dict[str, str]:
    """Create a project directory on demand.

    Raises:
        HTTPException: If the name is empty after sanitization
    """
    try:
        name = services.store.create_project(request.name)
    except InvalidProjectNameError as e:
        raise HTTPException(status_code=400, detail="Invalid project name") from e
    # The watcher also picks the directory up; registering twice is a no-op
    if services.watcher is not None:
        services.watcher.watch_project(name)
    return {"name": name}


@router.get("/projects/{project}/tasks")
async def list_project_tasks(project: str, services: ServicesDep) -> list[dict[str, Any]]:
    """List tasks of one project."""
    tasks = await asyncio.to_thread(services.store.list_tasks, project)
    return [task.to_dict() for task in tasks]


@router.get("/projects/{project}/tasks/{task_id}")
async def get_task(project: str, task_id: str, services: ServicesDep) -> dict[str, Any]:
    """Read one task."""
    return _read_task(services, project, task_id).to_dict()


@router.post("/projects/{project}/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(
    project: str, request: CreateTaskRequest, services: ServicesDep
) -> dict[str, Any]:
    """Create a task in a project (the project directory is created on demand)."""
    return await _create_task(services, project, request)


@router.put("/projects/{project}/tasks/{task_id}")
async def update_task(
    project: str, task_id: str, request: UpdateTaskRequest, services: ServicesDep
) -> dict[str, Any]:
    """Merge fields into a task.

    ``id``, ``identifier``, ``comments`` and ``cost`` cannot be changed here.
    """
    task = _read_task(services, project, task_id)

    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    for name in ("title", "description", "priority", "owner", "state"):
        if name in fields:
            setattr(task, name, getattr(request, name))
    task.extra.update(_extra_fields(request.model_extra))

    await asyncio.to_thread(services.attributor.attach_cost_if_done, task)
    services.store.write_task(task)
    payload = task.to_dict()
    services.broadcaster.publish("taskUpdated", payload)
    return payload


@router.put("/projects/{project}/tasks/{task_id}/state")
async def update_task_state(
    project: str, task_id: str, request: UpdateStateRequest, services: ServicesDep
) -> dict[str, Any]:
    """Move a task to another state.

    Entering ``done`` without a cost attaches a windowed cost estimate; a cost
    that is already present is kept as is.
    """
    task = _read_task(services, project, task_id)
    if request.state is not None:
        task.state = request.state

    if await asyncio.to_thread(services.attributor.attach_cost_if_done, task):
        logger.info(f"Attached cost to task {task.id}: ${task.cost.usd if task.cost else 0}")

    services.store.write_task(task)
    payload = task.to_dict()
    services.broadcaster.publish("taskUpdated", payload)
    return payload


@router.post("/projects/{project}/tasks/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    project: str, task_id: str, request: AddCommentRequest, services: ServicesDep
) -> dict[str, Any]:
    """Append a comment to a task."""
    task = _read_task(services, project, task_id)
    comment = Comment(
        id=new_id(),
        author=request.author or "anonymous",
        text=request.text,
        created_at=now_iso(),
    )
    task.comments.append(comment)
    services.store.write_task(task)
    services.broadcaster.publish("taskUpdated", task.to_dict())
    return comment.to_dict()


# Unscoped routes kept for older clients; writes go to the default project


@router.get("/tasks")
async def list_all_tasks(services: ServicesDep) -> list[dict[str, Any]]:
    """List tasks across every project."""
    tasks = await asyncio.to_thread(services.store.list_all_tasks)
    return [task.to_dict() for task in tasks]


@router.get("/tasks/{task_id}")
async def find_task(task_id: str, services: ServicesDep) -> dict[str, Any]:
    """Find a task in any project."""
    try:
        task = await asyncio.to_thread(services.store.find_task, task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return task.to_dict()


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_default_task(request: CreateTaskRequest, services: ServicesDep) -> dict[str, Any]:
    """Create a task in the default project."""
    return await _create_task(services, services.config.default_project, request)


def _read_task(services: Services, project: str, task_id: str) -> Task:
    """Read a task or raise 404."""
    try:
        return services.store.read_task(project, task_id)
    except (TaskNotFoundError, InvalidProjectNameError) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


def _extra_fields(extra: dict[str, Any] | None) -> dict[str, Any]:
    """Client-supplied fields outside the task schema, kept verbatim."""
    return {k: v for k, v in (extra or {}).items() if k not in TASK_KEYS}


async def _create_task(
    services: Services, project: str, request: CreateTaskRequest
) -> dict[str, Any]:
    """Create, persist and broadcast a new task.

    Raises:
        HTTPException: 400 for a bad project name, 409 for a taken id or identifier
    """
    store = services.store
    try:
        project = store.create_project(project)
    except InvalidProjectNameError as e:
        raise HTTPException(status_code=400, detail="Invalid project name") from e

    async with services.create_lock:
        task_id = request.id or new_id()
        try:
            exists = store.task_path(project, task_id).exists()
        except TaskNotFoundError as e:
            raise HTTPException(status_code=400, detail=f"Invalid task id: {task_id}") from e
        if exists:
            raise HTTPException(status_code=409, detail=f"Task already exists: {task_id}")

        identifiers = await asyncio.to_thread(store.all_identifiers)
        if request.identifier and request.identifier in identifiers:
            raise HTTPException(
                status_code=409, detail=f"Identifier already in use: {request.identifier}"
            )
        identifier = request.identifier or generate_identifier(identifiers)

        task = Task(
            id=task_id,
            identifier=identifier,
            project=project,
            title=request.title or "Untitled",
            description=request.description,
            priority=request.priority,
            owner=request.owner,
            state=request.state,
            extra=_extra_fields(request.model_extra),
        )
        store.write_task(task)
    logger.info(f"Created task {task.id} ({task.identifier}) in {project}")

    payload = task.to_dict()
    services.broadcaster.publish("taskCreated", payload)
    return payload
