"""WorkflowExecutor — walks a workflow's flow path block by block.

Each block ID is resolved by membership, in this order:

  1. nodit_blocks        → Nodit API call, logged to blockchain_events
  2. ai_blocks           → one LLM completion, logged to ai_execution_logs
  3. ai_decision_rules   → LLM yes/no; the chosen branch is walked recursively
  4. built-ins           → discord / slack / notion / wait

A failing block never aborts the run: its error is stored under its ID in the
results dict and the walk moves on. ``wait`` hands the rest of the path to the
ContinuationScheduler and ends the current walk.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from blockflow.config import config
from blockflow.engine.continuation import ContinuationScheduler
from blockflow.engine.template import MISSING, lookup_path, resolve_parameters
from blockflow.exceptions import (
    ApiKeysNotConfigured, InsufficientCredits, LLMError, NoditError, UserNotFound,
    WorkflowNotFound, WorkflowNotPublished,
)
from blockflow.llm.client import LLMClient
from blockflow.llm import operations as llm_operations
from blockflow.providers.nodit import NoditClient
from blockflow.tiers import is_unlimited
from blockflow.types import (
    AIBlockConfig, AIDecisionRule, BlockExecutionResult, ExecutionMode, NoditBlockConfig,
    WorkflowExecutionContext, WorkflowRunResult,
)

if TYPE_CHECKING:
    from blockflow.llm.operations import AIOperations

logger = logging.getLogger(__name__)

WAIT_BLOCK = "wait"
NOTIFICATION_BLOCKS = {
    "discord": {"sent": True, "platform": "discord"},
    "slack": {"sent": True, "platform": "slack"},
    "notion": {"created": True, "platform": "notion"},
}


def _find(configs: Optional[list], block_id: str) -> Optional[dict]:
    for item in configs or []:
        if isinstance(item, dict) and item.get("block_id") == block_id:
            return item
    return None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {"data": value}


def normalize_threshold(value: float) -> float:
    """Confidence thresholds above 1 are percentages."""
    return value / 100 if value > 1 else value


class WorkflowExecutor:
    """Executes one user's workflows with that user's provider credentials."""

    def __init__(
        self,
        repository,
        nodit: NoditClient,
        ai: AIOperations,
        continuations: Optional[ContinuationScheduler] = None,
        max_branch_depth: int = None,
    ) -> None:
        self.repository = repository
        self.nodit = nodit
        self.ai = ai
        self.continuations = continuations
        self.max_branch_depth = config.max_branch_depth if max_branch_depth is None else max_branch_depth

    # ── Entry points ────────────────────────────────────────────────────────

    async def execute_workflow(
        self,
        workflow_id: str,
        trigger_data: Optional[dict[str, Any]] = None,
        mode: ExecutionMode = ExecutionMode.PRODUCTION,
    ) -> WorkflowRunResult:
        """Run a workflow end to end.

        Raises:
            WorkflowNotFound:     no such workflow
            WorkflowNotPublished: production run of an unpublished workflow
            UserNotFound:         owner row missing
            InsufficientCredits:  owner is out of credits
        """
        mode = ExecutionMode(mode)
        start = time.monotonic()
        try:
            workflow = await self.repository.get_workflow(workflow_id)
            if workflow is None:
                raise WorkflowNotFound(f"Workflow not found: {workflow_id}", workflow_id=workflow_id)
            if mode == ExecutionMode.PRODUCTION and not workflow.publish:
                raise WorkflowNotPublished(
                    "Workflow must be published for execution", workflow_id=workflow_id,
                )

            user = await self.repository.get_user(workflow.user_id)
            if user is None:
                raise UserNotFound("User not found", user_id=workflow.user_id)
            if not is_unlimited(user.tier) and (user.credits or 0) <= 0:
                raise InsufficientCredits(
                    "Insufficient credits. Please upgrade your plan or purchase more credits.",
                    details={"credits": user.credits or 0},
                )

            trigger = dict(trigger_data or {})
            if mode == ExecutionMode.TEST:
                trigger["__test_mode"] = True
                trigger["__user_id"] = user.external_id

            context = WorkflowExecutionContext(
                trigger_data=trigger,
                user_preferences={"tier": user.tier, "credits": user.credits, "name": user.name},
            )
            scheduled = await self._walk(workflow, list(workflow.flow_path or []), context)

            credits_remaining = user.credits
            if mode == ExecutionMode.PRODUCTION and not is_unlimited(user.tier):
                credits_remaining = await self.repository.deduct_credit(user.id)
                if credits_remaining is None:
                    logger.warning("[executor] credit deduction lost a race for user=%s", user.id)
                    credits_remaining = 0
            await self.repository.record_workflow_execution(workflow.id)

            duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "[executor] workflow=%s mode=%s executed in %dms (%d blocks)",
                workflow_id, mode.value, duration_ms, len(context.results),
            )
            return WorkflowRunResult(
                workflow_id=workflow.id,
                mode=mode,
                results=context.results,
                duration_ms=duration_ms,
                credits_remaining=credits_remaining,
                continuation_scheduled=scheduled,
            )
        except Exception as e:
            logger.error("[executor] workflow=%s failed: %s", workflow_id, e)
            raise

    async def resume(self, workflow, remaining_path: list[str], context: WorkflowExecutionContext) -> bool:
        """Walk the remainder of a path parked by a ``wait`` block."""
        return await self._walk(workflow, remaining_path, context)

    # ── Walk ────────────────────────────────────────────────────────────────

    async def _walk(self, workflow, flow_path: list[str], context: WorkflowExecutionContext, depth: int = 0) -> bool:
        """Execute *flow_path* in order. Returns True if a continuation was scheduled."""
        scheduled = False
        for index, block_id in enumerate(flow_path):
            try:
                result = await self.execute_block(block_id, workflow, context)
            except Exception as e:
                logger.error("[executor] block %s raised: %s", block_id, e)
                context.results[block_id] = {"error": str(e)}
                continue

            if not result.success:
                logger.error("[executor] block %s failed: %s", block_id, result.error)
                context.results[block_id] = {"error": result.error or "Unknown error"}
                if result.should_stop:
                    break
                continue

            context.results[block_id] = result.data or {}

            if block_id == WAIT_BLOCK:
                remaining = flow_path[index + 1:]
                parked = bool(remaining) and self._schedule(workflow.id, remaining, context)
                context.results[block_id]["scheduled"] = parked
                scheduled = scheduled or parked
                break

            if result.next_blocks:
                if depth + 1 > self.max_branch_depth:
                    message = f"Maximum branch depth ({self.max_branch_depth}) exceeded"
                    logger.error("[executor] block %s: %s", block_id, message)
                    context.results[block_id] = {**context.results[block_id], "error": message}
                    continue
                scheduled = await self._walk(workflow, result.next_blocks, context, depth + 1) or scheduled
        return scheduled

    def _schedule(self, workflow_id: str, remaining: list[str], context: WorkflowExecutionContext) -> bool:
        if self.continuations is None:
            logger.warning(
                "[executor] workflow=%s hit wait with no scheduler; dropped %d block(s)",
                workflow_id, len(remaining),
            )
            return False
        self.continuations.schedule(workflow_id, remaining, context, self)
        return True

    # ── Dispatch ────────────────────────────────────────────────────────────

    async def execute_block(self, block_id: str, workflow, context: WorkflowExecutionContext) -> BlockExecutionResult:
        nodit_block = _find(workflow.nodit_blocks, block_id)
        if nodit_block is not None:
            return await self._run_nodit_block(nodit_block, workflow, context)
        ai_block = _find(workflow.ai_blocks, block_id)
        if ai_block is not None:
            return await self._run_ai_block(ai_block, workflow, context)
        rule = _find(workflow.ai_decision_rules, block_id)
        if rule is not None:
            return await self._run_decision(rule, workflow, context)
        return await self._run_builtin(block_id, workflow, context)

    async def _run_nodit_block(self, raw: dict, workflow, context: WorkflowExecutionContext) -> BlockExecutionResult:
        try:
            block = NoditBlockConfig.model_validate(raw)
        except ValidationError as e:
            return BlockExecutionResult(success=False, error=f"Invalid Nodit block config: {e}")

        params = resolve_parameters(block.parameters, context)
        try:
            response = await self.nodit.call_api(block.operation_id, params, block.network_id)
        except NoditError as e:
            return BlockExecutionResult(success=False, error=str(e))

        data = _as_dict(response)
        await self.repository.add_blockchain_event(
            workflow_id=workflow.id,
            event_type=block.operation_id,
            network_id=block.network_id,
            event_data=data,
            processed=True,
        )
        if block.output_mapping:
            mapped = {}
            for name, path in block.output_mapping.items():
                value = lookup_path(data, path)
                if value is not MISSING:
                    mapped[name] = value
            data = {**data, **mapped}
        context.network_data[block.network_id] = data
        return BlockExecutionResult(success=True, data=data)

    async def _run_ai_block(self, raw: dict, workflow, context: WorkflowExecutionContext) -> BlockExecutionResult:
        try:
            block = AIBlockConfig.model_validate(raw)
        except ValidationError as e:
            return BlockExecutionResult(success=False, error=f"Invalid AI block config: {e}")

        model = block.model or self.ai.llm.model
        inputs = resolve_parameters(block.inputs, context)
        start = time.monotonic()
        try:
            data = await self.ai.execute_ai_block(block, inputs, context.trigger_data)
        except LLMError as e:
            await self._log_ai(workflow, block.block_id, model, start, success=False, error_message=str(e))
            return BlockExecutionResult(success=False, error=str(e))

        await self._log_ai(workflow, block.block_id, model, start, success=True, result=data)
        return BlockExecutionResult(success=True, data=_as_dict(data))

    async def _run_decision(self, raw: dict, workflow, context: WorkflowExecutionContext) -> BlockExecutionResult:
        try:
            rule = AIDecisionRule.model_validate(raw)
        except ValidationError as e:
            return BlockExecutionResult(success=False, error=f"Invalid decision rule: {e}")

        start = time.monotonic()
        decision = await self.ai.make_decision(rule, context.trigger_data, context.results)
        threshold = normalize_threshold(rule.confidence_threshold)
        take_true = decision.decision and decision.confidence >= threshold
        next_blocks = rule.true_flow_path if take_true else rule.false_flow_path

        await self._log_ai(
            workflow, rule.block_id, rule.model or self.ai.llm.model, start, success=True,
            result={
                "decision": decision.decision,
                "confidence": decision.confidence,
                "reasoning": decision.reasoning,
                "branch": "true" if take_true else "false",
            },
        )
        data = decision.model_dump(mode="json")
        data["branch"] = "true" if take_true else "false"
        return BlockExecutionResult(success=True, data=data, next_blocks=list(next_blocks))

    async def _run_builtin(self, block_id: str, workflow, context: WorkflowExecutionContext) -> BlockExecutionResult:
        if block_id in NOTIFICATION_BLOCKS:
            logger.info(
                "[executor] %s block for workflow=%s name=%s results=%s",
                block_id, workflow.id, workflow.name, sorted(context.results),
            )
            return BlockExecutionResult(success=True, data=dict(NOTIFICATION_BLOCKS[block_id]))
        if block_id == WAIT_BLOCK:
            delay = self.continuations.delay_seconds if self.continuations else 0
            # the walk sets "scheduled" once it knows whether anything was parked
            return BlockExecutionResult(success=True, data={"scheduled": False, "delay_seconds": delay})
        logger.warning("[executor] unknown block type: %s", block_id)
        return BlockExecutionResult(success=False, error=f"Unknown block type: {block_id}")

    async def _log_ai(
        self, workflow, block_id: str, model: str, start: float, success: bool,
        result: Optional[dict] = None, error_message: Optional[str] = None,
    ) -> None:
        usage = self.ai.last_usage or {}
        await self.repository.add_ai_log(
            block_id,
            model,
            success,
            workflow_id=workflow.id,
            user_id=workflow.user_id,
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
            execution_time=int((time.monotonic() - start) * 1000),
            result=result if isinstance(result, dict) else ({"data": result} if result is not None else None),
            error_message=error_message,
            executed_at=datetime.now(timezone.utc),
        )


def build_executor(user, repository, continuations: Optional[ContinuationScheduler] = None) -> WorkflowExecutor:
    """Executor wired with *user*'s own Nodit and LLM keys.

    Raises:
        ApiKeysNotConfigured: either key is missing
    """
    missing = [name for name, key in (("nodit", user.nodit_api_key), ("openai", user.openai_api_key)) if not key]
    if missing:
        raise ApiKeysNotConfigured(
            "API keys not configured. Please configure Nodit and OpenAI API keys.", missing=missing,
        )
    return WorkflowExecutor(
        repository=repository,
        nodit=NoditClient(user.nodit_api_key),
        ai=llm_operations.AIOperations(LLMClient(api_key=user.openai_api_key)),
        continuations=continuations,
    )
