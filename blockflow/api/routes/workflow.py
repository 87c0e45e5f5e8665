"""Workflow execution routes: run, status, pre-flight validation, continuations, triggers."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from blockflow.api.deps import get_continuations, get_current_user, get_repository, get_session_repository
from blockflow.api.schemas import ExecuteWorkflowRequest, TriggerRequest
from blockflow.db.models import UserModel, WorkflowModel
from blockflow.db.repository import Repository
from blockflow.engine.continuation import ContinuationScheduler
from blockflow.engine.executor import NOTIFICATION_BLOCKS, WAIT_BLOCK, build_executor
from blockflow.engine.triggers import TriggerDispatcher
from blockflow.exceptions import InsufficientCredits
from blockflow.tiers import is_unlimited
from blockflow.types import ExecutionMode

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/workflow", tags=["execution"])

BUILTIN_BLOCKS = set(NOTIFICATION_BLOCKS) | {WAIT_BLOCK}


async def _owned_workflow(workflow_id: str, user: UserModel, repo: Repository) -> WorkflowModel:
    workflow = await repo.get_workflow(workflow_id, user.id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found or access denied")
    return workflow


def _configured_blocks(workflow: WorkflowModel) -> set[str]:
    ids = set(BUILTIN_BLOCKS)
    for configs in (workflow.nodit_blocks, workflow.ai_blocks, workflow.ai_decision_rules):
        ids.update(c.get("block_id") for c in configs or [] if isinstance(c, dict))
    return ids


@router.post("/execute")
async def execute_workflow(
    body: ExecuteWorkflowRequest,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
    session_repo=Depends(get_session_repository),
    continuations: ContinuationScheduler = Depends(get_continuations),
):
    """Run one of the caller's workflows now.

    Test mode skips the publish check and the credit charge.
    """
    workflow = await _owned_workflow(body.workflow_id, user, repo)
    executor = build_executor(user, session_repo, continuations)

    if body.execution_mode == ExecutionMode.PRODUCTION and not workflow.publish:
        raise HTTPException(status_code=400, detail="Workflow must be published for execution")
    if not is_unlimited(user.tier) and (user.credits or 0) <= 0:
        raise InsufficientCredits(
            "Insufficient credits. Please upgrade your plan or purchase more credits.",
            details={"credits": user.credits or 0},
        )

    start = time.monotonic()
    run = await executor.execute_workflow(workflow.id, body.trigger_data, body.execution_mode)
    execution_time = int((time.monotonic() - start) * 1000)
    return {
        "success": True,
        "workflow_id": workflow.id,
        "execution_time": execution_time,
        "mode": run.mode.value,
        "message": f"Workflow executed successfully in {run.mode.value} mode",
        "data": run.model_dump(mode="json"),
    }


@router.get("/{workflow_id}/status")
async def workflow_status(
    workflow_id: str,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
    continuations: ContinuationScheduler = Depends(get_continuations),
):
    workflow = await _owned_workflow(workflow_id, user, repo)
    pending = continuations.pending(workflow.id)
    return {
        "success": True,
        "data": {
            "id": workflow.id,
            "name": workflow.name,
            "is_active": workflow.is_active,
            "publish": workflow.publish,
            "trigger_type": workflow.trigger_type,
            "execution_count": workflow.execution_count or 0,
            "last_executed": workflow.last_executed.isoformat() if workflow.last_executed else None,
            "block_count": len(workflow.flow_path or []),
            "pending_continuation": (
                {"remaining_path": pending.remaining_path, "scheduled_at": pending.scheduled_at.isoformat()}
                if pending else None
            ),
        },
    }


@router.get("/{workflow_id}/validate")
async def validate_workflow(
    workflow_id: str,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Pre-flight checks: can this workflow run in production right now?"""
    workflow = await _owned_workflow(workflow_id, user, repo)
    errors = []
    warnings = []

    if not user.nodit_api_key or not user.openai_api_key:
        errors.append("API keys not configured")
    if not workflow.publish:
        errors.append("Workflow is not published")
    if not is_unlimited(user.tier) and (user.credits or 0) <= 0:
        errors.append("Insufficient credits")
    if not workflow.flow_path:
        errors.append("Workflow has no blocks in its flow path")
    if not workflow.is_active:
        warnings.append("Workflow is inactive and will not run on triggers")

    known = _configured_blocks(workflow)
    for block_id in workflow.flow_path or []:
        if block_id not in known:
            warnings.append(f"Block '{block_id}' has no configuration and will fail at runtime")

    return {
        "success": True,
        "data": {"can_execute": not errors, "errors": errors, "warnings": warnings},
    }


@router.post("/{workflow_id}/continuation")
async def run_continuation(
    workflow_id: str,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
    session_repo=Depends(get_session_repository),
    continuations: ContinuationScheduler = Depends(get_continuations),
):
    """Run a parked ``wait`` remainder immediately instead of waiting for its timer."""
    workflow = await _owned_workflow(workflow_id, user, repo)
    executor = build_executor(user, session_repo, continuations)
    results = await continuations.execute_continuation(workflow.id, executor)
    if results is None:
        return {"success": True, "message": "No pending continuation", "data": {"executed": False}}
    return {
        "success": True,
        "message": "Continuation executed successfully",
        "data": {"executed": True, "results": results},
    }


@router.post("/trigger")
async def fire_trigger(
    body: TriggerRequest,
    user: UserModel = Depends(get_current_user),
    session_repo=Depends(get_session_repository),
    continuations: ContinuationScheduler = Depends(get_continuations),
):
    """Fan a trigger event out to the caller's listening workflows."""
    dispatcher = TriggerDispatcher(session_repo, continuations)
    summaries = await dispatcher.dispatch(body.trigger_type, body.trigger_data, body.network_id, user_id=user.id)
    logger.info(f"[trigger] user={user.id} {body.trigger_type.value}: {len(summaries)} workflow(s)")
    return {"success": True, "data": summaries}
