"""Priority task queue for one workflow execution.

The queue releases a step only when every dependency has completed and fewer
than ``max_concurrency`` steps are running.
"""

import bisect
import itertools
from typing import Optional

from ..models import WorkflowStep
from ..utils import get_logger

logger = get_logger(__name__)


class TaskQueue:
    """Dependency-gated priority queue bounding concurrent steps.

    Entries are ordered by priority (highest first), then by enqueue order.
    The queue is scoped to a single execution and never shared.
    """

    def __init__(self, max_concurrency: int = 5) -> None:
        """Initialize the task queue.

        Args:
            max_concurrency: Maximum number of running steps
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._entries: list[tuple[int, int, WorkflowStep]] = []
        self._sequence = itertools.count()
        self._running: set[str] = set()
        self._completed: set[str] = set()
        self._failed: set[str] = set()

    def add_task(self, step: WorkflowStep, priority: int = 0) -> None:
        """Queue a step.

        Args:
            step: Step to queue
            priority: Higher runs first; ties keep enqueue order
        """
        entry = (-priority, next(self._sequence), step)
        bisect.insort(self._entries, entry, key=lambda e: (e[0], e[1]))

    def get_next_task(self) -> Optional[WorkflowStep]:
        """Release the first step whose dependencies are all completed.

        Returns:
            The released step (now running), or None if the running set is at
            capacity or nothing is releasable
        """
        if len(self._running) >= self.max_concurrency:
            return None

        for index, (_, _, step) in enumerate(self._entries):
            if all(dep in self._completed for dep in step.depends_on):
                del self._entries[index]
                self._running.add(step.id)
                logger.debug(f"Released step {step.id} ({len(self._running)}/{self.max_concurrency} running)")
                return step
        return None

    def complete_task(self, step_id: str) -> None:
        """Move a step from running to completed."""
        self._running.discard(step_id)
        self._completed.add(step_id)

    def fail_task(self, step_id: str) -> None:
        """Move a step from running to failed."""
        self._running.discard(step_id)
        self._failed.add(step_id)

    def drain(self) -> list[WorkflowStep]:
        """Remove and return every step still queued, in queue order."""
        steps = [step for _, _, step in self._entries]
        self._entries.clear()
        return steps

    def get_status(self) -> dict[str, int]:
        """Get queue counts."""
        return {
            "queued": len(self._entries),
            "running": len(self._running),
            "completed": len(self._completed),
            "failed": len(self._failed),
        }

    def is_empty(self) -> bool:
        """Check whether no steps are queued."""
        return not self._entries

    def has_failures(self) -> bool:
        """Check whether any step failed."""
        return bool(self._failed)

    @property
    def running_count(self) -> int:
        """Number of running steps."""
        return len(self._running)

    @property
    def completed(self) -> frozenset[str]:
        """Completed step ids."""
        return frozenset(self._completed)

    @property
    def failed(self) -> frozenset[str]:
        """Failed step ids."""
        return frozenset(self._failed)

    def __len__(self) -> int:
        return len(self._entries)
