"""ContinuationScheduler — resumes a workflow after a ``wait`` block.

Pending continuations live in process memory only: the remaining flow path,
the execution context captured when the wait block ran, the executor that
scheduled it and an asyncio timer. A restart drops them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from blockflow.config import config
from blockflow.exceptions import WorkflowNotFound
from blockflow.types import WorkflowExecutionContext

if TYPE_CHECKING:
    from blockflow.engine.executor import WorkflowExecutor

logger = logging.getLogger(__name__)


@dataclass
class PendingContinuation:
    workflow_id: str
    remaining_path: list[str]
    context: WorkflowExecutionContext
    executor: "WorkflowExecutor"
    scheduled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    timer: Optional[asyncio.Task] = None


class ContinuationScheduler:
    """One pending continuation per workflow, keyed by workflow id."""

    def __init__(self, repository, delay_seconds: float = None) -> None:
        self._repository = repository
        self.delay_seconds = config.continuation_delay_seconds if delay_seconds is None else delay_seconds
        self._pending: dict[str, PendingContinuation] = {}
        self._running = 0

    def __len__(self) -> int:
        """Parked continuations plus those whose remainder is running right now."""
        return len(self._pending) + self._running

    def pending(self, workflow_id: str) -> Optional[PendingContinuation]:
        return self._pending.get(workflow_id)

    def schedule(
        self,
        workflow_id: str,
        remaining_path: list[str],
        context: WorkflowExecutionContext,
        executor: "WorkflowExecutor",
    ) -> PendingContinuation:
        """Park *remaining_path* and arm a timer that runs it after ``delay_seconds``.

        A second wait in the same run (same context) appends to the parked
        path, so a branch remainder runs ahead of its parent's. A wait from a
        different run replaces whatever was parked.
        """
        previous = self._pending.pop(workflow_id, None)
        self._cancel_timer(previous)
        path = list(remaining_path)
        if previous is not None:
            if previous.context is context:
                path = previous.remaining_path + path
            else:
                logger.warning(
                    "[continuation] workflow=%s rescheduled; dropped %d parked block(s): %s",
                    workflow_id, len(previous.remaining_path), previous.remaining_path,
                )
        entry = PendingContinuation(
            workflow_id=workflow_id,
            remaining_path=path,
            context=context,
            executor=executor,
        )
        entry.timer = asyncio.create_task(
            self._fire_later(workflow_id), name=f"blockflow-continuation-{workflow_id}"
        )
        self._pending[workflow_id] = entry
        logger.info(
            "[continuation] scheduled workflow=%s remaining=%d next=%s delay=%.1fs",
            workflow_id, len(path), path[0] if path else None, self.delay_seconds,
        )
        return entry

    async def execute_continuation(
        self, workflow_id: str, executor: "WorkflowExecutor" = None,
    ) -> Optional[dict[str, Any]]:
        """Run the pending remainder for *workflow_id* now.

        Args:
            workflow_id: Workflow whose continuation should run.
            executor:    Executor to resume with; defaults to the one that scheduled it.

        Returns:
            The execution context's results after the remainder ran, or None
            when nothing was pending.

        Raises:
            WorkflowNotFound: workflow does not exist
        """
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(f"Workflow not found for continuation: {workflow_id}", workflow_id=workflow_id)

        entry = self._pending.pop(workflow_id, None)
        if entry is None:
            logger.info("[continuation] nothing pending for workflow=%s", workflow_id)
            return None
        if entry.timer is not asyncio.current_task():
            self._cancel_timer(entry)

        runner = executor or entry.executor
        logger.info("[continuation] resuming workflow=%s at %s", workflow_id, entry.remaining_path[0])
        self._running += 1
        try:
            await runner.resume(workflow, entry.remaining_path, entry.context)
        finally:
            self._running -= 1
        return entry.context.results

    async def shutdown(self) -> None:
        """Cancel every armed timer. Pending state is dropped."""
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            self._cancel_timer(entry)
        for entry in entries:
            if entry.timer is not None:
                try:
                    await entry.timer
                except asyncio.CancelledError:
                    pass
        if entries:
            logger.info("[continuation] dropped %d pending continuation(s) on shutdown", len(entries))

    async def _fire_later(self, workflow_id: str) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            await self.execute_continuation(workflow_id)
        except Exception:
            logger.exception("[continuation] workflow=%s failed", workflow_id)

    @staticmethod
    def _cancel_timer(entry: Optional[PendingContinuation]) -> None:
        if entry is not None and entry.timer is not None and not entry.timer.done():
            entry.timer.cancel()
