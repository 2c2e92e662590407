"""Cost attribution of tasks against agent session logs."""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from task_board.api.models import CostEstimate, Task, TaskCostSummary, TaskState
from task_board.costs.pricing import cost_for_usage, round_half_up, token_count
from task_board.costs.session_logs import (
    find_task_tags,
    list_session_files,
    parse_usage_events,
    read_session,
)

logger = logging.getLogger(__name__)

WINDOW_LEAD_MS = 5_000
WINDOW_TAIL_MS = 60_000


def to_epoch_ms(value: str | None) -> float | None:
    """Convert an ISO-8601 timestamp to epoch milliseconds."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def task_window(task: Task) -> tuple[float, float] | None:
    """Time window ``[start - 5s, end + 60s]`` spanned by a task's activity.

    ``start`` is the first comment (falling back to creation), ``end`` the
    last comment (falling back to the last update, then creation).
    """
    first = task.comments[0].created_at if task.comments else None
    last = task.comments[-1].created_at if task.comments else None
    start = to_epoch_ms(first or task.created_at)
    end = to_epoch_ms(last or task.updated_at or task.created_at)
    if start is None or end is None:
        return None
    return start - WINDOW_LEAD_MS, end + WINDOW_TAIL_MS


class CostAttributor:
    """Estimates task costs from session logs.

    Two independent algorithms live here and are never reconciled:
    ``estimate_by_window`` (timestamps, assistant events only) and
    ``scan_all_session_costs`` (``task id:`` tags, whole sessions split evenly).
    """

    def __init__(
        self,
        sessions_dir: str | Path,
        cache_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize attributor.

        Args:
            sessions_dir: Directory of ``*.jsonl`` session logs
            cache_ttl: Seconds a non-empty tag-split scan stays cached
            clock: Monotonic clock in seconds (tests inject a fake one)
        """
        self.sessions_dir = Path(sessions_dir)
        self.cache_ttl = cache_ttl
        self._clock = clock
        # (scanned_at, mapping); replaced as a whole so readers never need a lock
        self._cache: tuple[float, dict[str, TaskCostSummary]] | None = None

    def estimate_by_window(self, task: Task) -> CostEstimate | None:
        """Sum assistant usage inside the task's time window.

        Returns:
            Cost estimate, or None if the sessions directory does not exist
        """
        if not self.sessions_dir.is_dir():
            logger.debug(f"[CostAttributor] No session logs at {self.sessions_dir}")
            return None

        window = task_window(task)
        total_cost = 0.0
        total_input = 0
        total_output = 0
        messages = 0

        if window is not None:
            start, end = window
            for file_path in list_session_files(self.sessions_dir):
                content = read_session(file_path)
                if content is None:
                    continue
                for event in parse_usage_events(content):
                    if event.role != "assistant" or event.timestamp is None:
                        continue
                    if not start <= event.timestamp <= end:
                        continue
                    total_cost += cost_for_usage(event.model, event.usage)
                    total_input += token_count(event.usage, "input") + token_count(
                        event.usage, "cacheRead"
                    )
                    total_output += token_count(event.usage, "output")
                    messages += 1
        else:
            logger.warning(f"[CostAttributor] Task {task.id} has no usable timestamps")

        estimate = CostEstimate(
            usd=round_half_up(total_cost, 2),
            input_tokens=total_input,
            output_tokens=total_output,
            messages=messages,
        )
        logger.info(
            f"[CostAttributor] Task {task.id}: ${estimate.usd} over {messages} messages"
        )
        return estimate

    def attach_cost_if_done(self, task: Task) -> bool:
        """Attach a windowed estimate the first time a task is seen in ``done``.

        An existing cost is never recomputed.

        Returns:
            True if ``task.cost`` was set
        """
        if task.state != TaskState.DONE or task.cost is not None:
            return False
        estimate = self.estimate_by_window(task)
        if estimate is None:
            return False
        task.cost = estimate
        return True

    def scan_all_session_costs(self) -> dict[str, TaskCostSummary]:
        """Map task id to its share of every session that tags it.

        Served from cache for ``cache_ttl`` seconds after a non-empty scan;
        log changes inside that window are not reflected.
        """
        now = self._clock()
        cached = self._cache
        if cached is not None and now - cached[0] < self.cache_ttl:
            return cached[1]

        task_costs = self._scan()
        if task_costs:
            self._cache = (now, task_costs)
        return task_costs

    def cost_for_task(self, task_id: str) -> TaskCostSummary:
        """Tag-split summary for one task (zeros when never tagged)."""
        return self.scan_all_session_costs().get(task_id) or TaskCostSummary()

    def invalidate(self) -> None:
        """Drop the cached tag-split mapping."""
        self._cache = None

    def _scan(self) -> dict[str, TaskCostSummary]:
        task_costs: dict[str, TaskCostSummary] = {}
        files = list_session_files(self.sessions_dir)

        for file_path in files:
            content = read_session(file_path)
            if content is None:
                continue

            task_ids = find_task_tags(content)
            if not task_ids:
                continue

            session_cost = 0.0
            session_input = 0
            session_output = 0
            for event in parse_usage_events(content):
                session_cost += cost_for_usage(event.model, event.usage)
                session_input += (
                    token_count(event.usage, "input")
                    + token_count(event.usage, "cacheRead")
                    + token_count(event.usage, "cacheWrite")
                )
                session_output += token_count(event.usage, "output")

            # Several tasks in one session share it evenly
            share = len(task_ids)
            for task_id in task_ids:
                summary = task_costs.setdefault(task_id, TaskCostSummary())
                summary.cost += session_cost / share
                summary.input_tokens += int(round_half_up(session_input / share))
                summary.output_tokens += int(round_half_up(session_output / share))
                summary.sessions += 1

        logger.info(
            f"[CostAttributor] Scanned {len(files)} session logs, {len(task_costs)} tasks tagged"
        )
        return task_costs
