"""Cost API endpoints backed by tag-split session attribution."""

import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from task_board.factory import Services, get_services

router = APIRouter()

ServicesDep = Annotated[Services, Depends(get_services)]


@router.get("/task-costs")
async def list_task_costs(services: ServicesDep) -> dict[str, dict[str, Any]]:
    """Cost of every task referenced by ``task id:`` tags in session logs.

    Results may lag the logs by up to the cache TTL.
    """
    # Log scans can be large; keep them off the event loop
    costs = await asyncio.to_thread(services.attributor.scan_all_session_costs)
    return {task_id: summary.to_dict() for task_id, summary in costs.items()}


@router.get("/task-costs/{task_id}")
async def get_task_cost(task_id: str, services: ServicesDep) -> dict[str, Any]:
    """Cost of one task; zeros if no session references it."""
    summary = await asyncio.to_thread(services.attributor.cost_for_task, task_id)
    return summary.to_dict()
