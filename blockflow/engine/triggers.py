"""TriggerDispatcher — fans a trigger event out to every listening workflow.

Each matching workflow runs with its owner's own credentials. Workflows run one
after another; one failing never stops the rest.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from blockflow.engine.continuation import ContinuationScheduler
from blockflow.engine.executor import WorkflowExecutor, build_executor
from blockflow.exceptions import ApiKeysNotConfigured
from blockflow.types import ExecutionMode, TriggerType

logger = logging.getLogger(__name__)


class TriggerDispatcher:
    """Finds workflows for a trigger type and executes the eligible ones."""

    def __init__(
        self,
        repository,
        continuations: Optional[ContinuationScheduler] = None,
        executor_factory: Callable[..., WorkflowExecutor] = None,
    ) -> None:
        self._repository = repository
        self._continuations = continuations
        self._executor_factory = executor_factory or build_executor

    async def dispatch(
        self,
        trigger_type: TriggerType | str,
        trigger_data: Optional[dict[str, Any]] = None,
        network_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Run every active, published workflow listening on *trigger_type*.

        Args:
            trigger_type: Trigger the event arrived on.
            trigger_data: Payload handed to each workflow as its trigger data.
            network_id:   Skip workflows whose network_ids exclude this network.
            user_id:      Limit to one owner's workflows.

        Returns:
            One summary per matching workflow: ``{"workflow_id", "status", ...}``
            where status is executed, skipped or failed.
        """
        trigger_value = TriggerType(trigger_type).value
        workflows = await self._repository.list_workflows_by_trigger(trigger_value, user_id)
        logger.info("[trigger] %s: %d candidate workflow(s)", trigger_value, len(workflows))

        summaries = []
        executors: dict[str, WorkflowExecutor] = {}
        for workflow in workflows:
            reason = self._skip_reason(workflow, network_id)
            if reason:
                summaries.append({"workflow_id": workflow.id, "status": "skipped", "reason": reason})
                continue

            executor = executors.get(workflow.user_id)
            if executor is None:
                owner = await self._repository.get_user(workflow.user_id)
                if owner is None:
                    summaries.append({"workflow_id": workflow.id, "status": "skipped", "reason": "owner not found"})
                    continue
                try:
                    executor = self._executor_factory(owner, self._repository, self._continuations)
                except ApiKeysNotConfigured:
                    logger.info("[trigger] skipping workflow=%s: owner has no API keys", workflow.id)
                    summaries.append({"workflow_id": workflow.id, "status": "skipped", "reason": "owner API keys missing"})
                    continue
                executors[workflow.user_id] = executor

            try:
                run = await executor.execute_workflow(workflow.id, trigger_data, ExecutionMode.PRODUCTION)
            except Exception as e:
                logger.error("[trigger] workflow=%s failed: %s", workflow.id, e)
                summaries.append({"workflow_id": workflow.id, "status": "failed", "error": str(e)})
                continue
            summaries.append({
                "workflow_id": workflow.id,
                "status": "executed",
                "duration_ms": run.duration_ms,
                "continuation_scheduled": run.continuation_scheduled,
            })
        return summaries

    @staticmethod
    def _skip_reason(workflow, network_id: Optional[str]) -> Optional[str]:
        if not workflow.is_active:
            return "inactive"
        if not workflow.publish:
            return "not published"
        if network_id and workflow.network_ids and network_id not in workflow.network_ids:
            return f"network {network_id} not enabled"
        return None
