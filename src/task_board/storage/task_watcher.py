"""File system watcher for task directories."""

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from task_board.costs.attributor import CostAttributor
from task_board.errors import InvalidProjectNameError, TaskNotFoundError
from task_board.storage.task_store import JsonTaskStore

logger = logging.getLogger(__name__)

SettleKey = tuple[str, str]  # (project, filename)
Publish = Callable[[str, Any], None]


class Debouncer:
    """Coalesces bursts of raw events into one settle per key.

    Each key is idle, or pending with exactly one armed timer. Touching a
    pending key cancels its timer and arms a new one; when a timer fires the
    key goes back to idle and ``on_settle(key)`` runs on the timer thread.
    """

    def __init__(self, delay: float, on_settle: Callable[[SettleKey], None]) -> None:
        """Initialize debouncer.

        Args:
            delay: Quiet period in seconds before a key settles
            on_settle: Called with the key once its events stop
        """
        self.delay = delay
        self._on_settle = on_settle
        self._timers: dict[SettleKey, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def pending(self) -> set[SettleKey]:
        with self._lock:
            return set(self._timers)

    def touch(self, key: SettleKey) -> None:
        """Record a raw event for ``key`` and (re)arm its timer."""
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            timer = threading.Timer(self.delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def cancel_all(self) -> None:
        """Disarm every pending timer."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

    def _fire(self, key: SettleKey) -> None:
        with self._lock:
            # A timer replaced while already running must not settle
            if self._timers.get(key) is not threading.current_thread():
                return
            del self._timers[key]
        try:
            self._on_settle(key)
        except Exception as e:
            logger.error(f"[Debouncer] Settle failed for {key}: {e}", exc_info=True)


class TaskWatcher:
    """Watches the data root for task files written outside the API.

    One recursive watch covers every project directory, including ones
    created later. Settled files are reloaded, get their cost attached on
    first sight in ``done``, and are republished as ``taskUpdated``.
    """

    def __init__(
        self,
        store: JsonTaskStore,
        attributor: CostAttributor,
        publish: Publish,
        debounce_seconds: float = 0.3,
    ) -> None:
        """Initialize watcher.

        Args:
            store: Task store whose data root is watched
            attributor: Used to attach cost to tasks finished externally
            publish: Thread-safe ``(event, payload)`` sink
            debounce_seconds: Quiet period per file before settling
        """
        self._store = store
        self._attributor = attributor
        self._publish = publish
        self._debouncer = Debouncer(debounce_seconds, self.settle)
        self._observer: BaseObserver | None = None
        self._projects: set[str] = set()
        self._lock = threading.Lock()

    @property
    def watched_projects(self) -> list[str]:
        with self._lock:
            return sorted(self._projects)

    def start(self) -> None:
        """Watch the data root recursively and register existing projects."""
        self._observer = Observer()
        root = self._store.data_root
        handler = _DataRootHandler(root, self.watch_project, self.forget_project, self.on_raw_event)
        self._observer.schedule(handler, str(root), recursive=True)
        self._observer.start()
        logger.info(f"[TaskWatcher] Watching {root}")

        for project in self._store.list_projects():
            self.watch_project(project)

    def watch_project(self, project: str) -> bool:
        """Register a project directory as live-synced; idempotent.

        Only records the name; the recursive root watch already delivers
        the project's events and the observer is never touched here. The
        observer silently skips directories it may not read, so those are
        refused here instead.

        Returns:
            True if the project was not registered yet
        """
        if self._observer is None:
            return False
        try:
            project_dir = self._store.project_dir(project)
        except InvalidProjectNameError as e:
            logger.error(f"[TaskWatcher] Failed to watch project {project}: {e}")
            return False
        if not os.access(project_dir, os.R_OK | os.X_OK):
            logger.error(f"[TaskWatcher] Failed to watch project {project}: permission denied")
            return False
        with self._lock:
            if project in self._projects:
                return False
            self._projects.add(project)
        logger.info(f"[TaskWatcher] Watching project {project}")
        return True

    def forget_project(self, project: str) -> None:
        """Drop a project whose directory went away."""
        with self._lock:
            if project not in self._projects:
                return
            self._projects.discard(project)
        logger.info(f"[TaskWatcher] Project {project} removed")

    def on_raw_event(self, project: str, filename: str) -> None:
        """Feed one raw file event into the debounce state machine."""
        self._debouncer.touch((project, filename))

    def settle(self, key: SettleKey) -> None:
        """Act on the latest state of a file once its events have settled."""
        project, filename = key
        task_id = Path(filename).stem
        try:
            task = self._store.read_task(project, task_id)
        except TaskNotFoundError:
            logger.debug(f"[TaskWatcher] {project}/{filename} gone or unreadable, skipping")
            return

        # Writes go to <id>.json, so a mismatched file would be duplicated
        if task.id != task_id:
            logger.warning(
                f"[TaskWatcher] {project}/{filename} holds task id {task.id}, skipping"
            )
            return

        if self._attributor.attach_cost_if_done(task):
            logger.info(f"[TaskWatcher] Attached cost to externally finished task {task.id}")
            self._store.write_task(task)

        self._publish("taskUpdated", task.to_dict())

    def stop(self) -> None:
        """Stop watching and clean up resources."""
        self._debouncer.cancel_all()
        if self._observer:
            logger.info("[TaskWatcher] Stopping watcher")
            self._observer.unschedule_all()
            self._observer.stop()
            self._observer.join(timeout=2)
            self._observer = None
        with self._lock:
            self._projects.clear()


class _DataRootHandler(FileSystemEventHandler):
    """Routes events under the data root.

    Directories directly below the root are projects; ``*.json`` files
    directly inside a project are tasks. Anything deeper is ignored.
    """

    def __init__(
        self,
        root: Path,
        on_project_added: Callable[[str], bool],
        on_project_removed: Callable[[str], None],
        on_task_event: Callable[[str, str], None],
    ) -> None:
        self.root = Path(root)
        self.on_project_added = on_project_added
        self.on_project_removed = on_project_removed
        self.on_task_event = on_task_event

    def _parts(self, path: str | bytes) -> tuple[str, ...]:
        try:
            return Path(_as_str(path)).relative_to(self.root).parts
        except ValueError:
            return ()

    def _handle_task(self, path: str | bytes) -> None:
        parts = self._parts(path)
        if len(parts) != 2 or not parts[1].endswith(".json"):
            return
        logger.debug(f"[DataRootHandler] {parts[0]}/{parts[1]}")
        self.on_task_event(parts[0], parts[1])

    def _handle_dir(self, path: str | bytes, added: bool) -> None:
        parts = self._parts(path)
        if len(parts) != 1:
            return
        if added:
            self.on_project_added(parts[0])
        else:
            self.on_project_removed(parts[0])

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._handle_dir(event.src_path, added=True)
        else:
            self._handle_task(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_task(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._handle_dir(event.src_path, added=False)
        else:
            self._handle_task(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._handle_dir(event.src_path, added=False)
            self._handle_dir(event.dest_path, added=True)
        else:
            # write-then-rename lands on the destination name
            self._handle_task(event.dest_path)


def _as_str(path: str | bytes) -> str:
    return path.decode("utf-8") if isinstance(path, bytes) else path
