"""Workflow CRUD routes, scoped to the calling user."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from blockflow.api.deps import get_current_user, get_repository
from blockflow.api.schemas import WorkflowCreateRequest, WorkflowResponse, WorkflowUpdateRequest
from blockflow.db.models import UserModel, WorkflowModel
from blockflow.db.repository import Repository
from blockflow.exceptions import TierLimitExceeded
from blockflow.tiers import limits_for

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/workflows", tags=["workflows"])


def workflow_to_response(workflow: WorkflowModel) -> WorkflowResponse:
    return WorkflowResponse(
        id=workflow.id,
        name=workflow.name,
        description=workflow.description,
        trigger_type=workflow.trigger_type,
        trigger_config=workflow.trigger_config,
        flow_path=list(workflow.flow_path or []),
        is_active=workflow.is_active,
        publish=workflow.publish,
        nodit_blocks=workflow.nodit_blocks,
        ai_blocks=workflow.ai_blocks,
        ai_decision_rules=workflow.ai_decision_rules,
        network_ids=workflow.network_ids,
        execution_count=workflow.execution_count or 0,
        last_executed=workflow.last_executed.isoformat() if workflow.last_executed else None,
        created_at=workflow.created_at.isoformat(),
        updated_at=workflow.updated_at.isoformat(),
    )


@router.get("", response_model=list[WorkflowResponse])
async def list_workflows(
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    return [workflow_to_response(w) for w in await repo.list_workflows(user.id)]


@router.post("", response_model=WorkflowResponse, status_code=201)
async def create_workflow(
    body: WorkflowCreateRequest,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    """Create a workflow. Rejected with 403 once the tier's workflow limit is reached."""
    max_workflows = limits_for(user.tier).max_workflows
    if await repo.count_workflows(user.id) >= max_workflows:
        raise TierLimitExceeded(
            f"Workflow limit reached for {user.tier} tier ({max_workflows})", limit="max_workflows",
        )

    data = body.model_dump(mode="json")
    if data["trigger_config"] is None:
        data["trigger_config"] = {"type": data["trigger_type"]}
    workflow = await repo.create_workflow(user.id, data)
    if data["ai_decision_rules"]:
        await repo.replace_decision_rules(workflow.id, data["ai_decision_rules"])
    logger.info(f"[workflows] user={user.id} created workflow={workflow.id}")
    return workflow_to_response(workflow)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    workflow = await repo.get_workflow(workflow_id, user.id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow_to_response(workflow)


@router.put("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    body: WorkflowUpdateRequest,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    updates = body.model_dump(mode="json", exclude_unset=True)
    workflow = await repo.update_workflow(workflow_id, user.id, updates)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    if "ai_decision_rules" in updates:
        await repo.replace_decision_rules(workflow.id, updates["ai_decision_rules"] or [])
    return workflow_to_response(workflow)


@router.delete("/{workflow_id}")
async def delete_workflow(
    workflow_id: str,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    if not await repo.delete_workflow(workflow_id, user.id):
        raise HTTPException(status_code=404, detail="Workflow not found")
    logger.info(f"[workflows] user={user.id} deleted workflow={workflow_id}")
    return {"success": True, "message": "Workflow deleted"}
