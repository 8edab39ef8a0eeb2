"""
Background Dispatcher
Thread pool for fire-and-forget work (build dispatch, download tracking).

Callers get a BackgroundTask handle back immediately and never wait on it.
Every task reports its outcome to the central background logger, and recent
tasks stay inspectable through snapshot().
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional
from uuid import uuid4

from ..models.enums import BackgroundTaskState

logger = logging.getLogger("buildservice.background")


@dataclass
class BackgroundTask:
    """Handle for one submitted task"""

    name: str
    id: str = field(default_factory=lambda: str(uuid4())[:8])
    state: BackgroundTaskState = BackgroundTaskState.QUEUED
    error: Optional[str] = None
    submitted_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    future: Optional[Future] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.state in (BackgroundTaskState.COMPLETED, BackgroundTaskState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state.value,
            "error": self.error,
            "submitted_at": self.submitted_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class BackgroundDispatcher:
    """Runs detached tasks on a worker pool with visible lifecycle"""

    def __init__(self, max_workers: int = 4, history_size: int = 200):
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="buildservice-bg")
        self._lock = threading.Lock()
        self._active: Dict[str, BackgroundTask] = {}
        self._history: Deque[BackgroundTask] = deque(maxlen=history_size)
        self._counts = {state: 0 for state in BackgroundTaskState}
        self._idle = threading.Condition(self._lock)

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> BackgroundTask:
        """Schedule fn(*args, **kwargs) and return without waiting"""
        task = BackgroundTask(name=name)
        with self._lock:
            self._active[task.id] = task
            self._counts[BackgroundTaskState.QUEUED] += 1

        task.future = self.executor.submit(self._run, task, fn, args, kwargs)
        return task

    def _run(self, task: BackgroundTask, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        with self._lock:
            task.state = BackgroundTaskState.RUNNING
            task.started_at = datetime.utcnow()
            self._counts[BackgroundTaskState.QUEUED] -= 1
            self._counts[BackgroundTaskState.RUNNING] += 1

        try:
            fn(*args, **kwargs)
        except Exception as e:
            logger.error(f"Background task {task.name} ({task.id}) failed: {e}", exc_info=True)
            self._finish(task, BackgroundTaskState.FAILED, f"{type(e).__name__}: {e}")
        else:
            logger.debug(f"Background task {task.name} ({task.id}) completed")
            self._finish(task, BackgroundTaskState.COMPLETED)

    def _finish(self, task: BackgroundTask, state: BackgroundTaskState, error: Optional[str] = None) -> None:
        with self._lock:
            task.state = state
            task.error = error
            task.finished_at = datetime.utcnow()
            self._counts[BackgroundTaskState.RUNNING] -= 1
            self._counts[state] += 1
            self._active.pop(task.id, None)
            self._history.append(task)
            if not self._active:
                self._idle.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no task is queued or running. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while self._active:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def snapshot(self, recent: int = 20) -> Dict[str, Any]:
        """Counts per state plus the most recently finished tasks"""
        with self._lock:
            finished: List[BackgroundTask] = list(self._history)[-recent:] if recent > 0 else []
            return {
                "counts": {state.value: count for state, count in self._counts.items()},
                "active": [task.to_dict() for task in self._active.values()],
                "recent": [task.to_dict() for task in reversed(finished)],
            }

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down background dispatcher")
        self.executor.shutdown(wait=wait)
