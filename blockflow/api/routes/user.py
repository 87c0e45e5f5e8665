"""User account routes: API key configuration, status, reset, deletion."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from blockflow.api.deps import Identity, get_current_user, get_identity, get_optional_user, get_repository
from blockflow.api.schemas import ConfigureUserRequest, UpdateUserRequest
from blockflow.db.models import UserModel
from blockflow.db.repository import Repository
from blockflow.tiers import limits_for
from blockflow.types import Tier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/user", tags=["user"])


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


@router.post("/configure")
async def configure_user(
    body: ConfigureUserRequest,
    identity: Identity = Depends(get_identity),
    repo: Repository = Depends(get_repository),
):
    """Store the caller's Nodit and OpenAI keys, creating the account on first use."""
    if not body.nodit_api_key or not body.openai_api_key:
        raise HTTPException(status_code=400, detail="Both Nodit and OpenAI API keys are required")

    user = await repo.get_user_by_external_id(identity.external_id)
    if user is None:
        tier = body.tier or Tier.FREE
        user = await repo.create_user(
            identity.external_id,
            email=identity.email,
            name=identity.name,
            tier=tier.value,
            credits=limits_for(tier).starting_credits,
            nodit_api_key=body.nodit_api_key,
            openai_api_key=body.openai_api_key,
        )
        logger.info(f"[user] created user={user.id} tier={user.tier}")
    else:
        updates = {"nodit_api_key": body.nodit_api_key, "openai_api_key": body.openai_api_key}
        if body.tier is not None:
            updates["tier"] = body.tier.value
        user = await repo.update_user(user.id, updates)
        logger.info(f"[user] updated API keys for user={user.id}")

    await repo.upsert_nodit_connection(
        user.id, body.nodit_api_key, limits_for(user.tier).supported_networks,
    )
    return {
        "success": True,
        "message": "API keys configured successfully",
        "data": {"tier": user.tier, "credits": user.credits},
    }


@router.put("/configure")
async def update_user(
    body: UpdateUserRequest,
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    updates = {}
    if body.credits is not None:
        updates["credits"] = body.credits
    if body.tier is not None:
        updates["tier"] = body.tier.value
    if updates:
        user = await repo.update_user(user.id, updates)
    return {
        "success": True,
        "message": "User configuration updated successfully",
        "data": {"tier": user.tier, "credits": user.credits},
    }


@router.get("/status")
async def user_status(
    user: Optional[UserModel] = Depends(get_optional_user),
    repo: Repository = Depends(get_repository),
):
    """Account summary. Callers who never configured keys get defaults."""
    if user is None:
        return {
            "success": True,
            "data": {
                "configured": False,
                "has_nodit_api_key": False,
                "has_openai_api_key": False,
                "tier": Tier.FREE.value,
                "credits": 0,
                "workflow_count": 0,
                "execution_count": 0,
                "last_activity": None,
            },
        }

    workflow_count = await repo.count_workflows(user.id)
    ai_count = await repo.count_ai_executions(user.id)
    event_count = await repo.count_blockchain_events(user.id)
    last_activity = await repo.last_activity(user.id)
    limits = limits_for(user.tier)

    return {
        "success": True,
        "data": {
            "configured": True,
            "has_nodit_api_key": bool(user.nodit_api_key),
            "has_openai_api_key": bool(user.openai_api_key),
            "tier": user.tier,
            "credits": user.credits,
            "email": user.email,
            "name": user.name,
            "created_at": _iso(user.created_at),
            "updated_at": _iso(user.updated_at),
            "workflow_count": workflow_count,
            "ai_execution_count": ai_count,
            "blockchain_event_count": event_count,
            "total_execution_count": ai_count + event_count,
            "last_activity": _iso(last_activity),
            "usage": {
                "workflows_created": workflow_count,
                "ai_operations_executed": ai_count,
                "blockchain_operations_executed": event_count,
                "credits_used": max(limits.starting_credits - (user.credits or 0), 0),
            },
            "limits": limits.model_dump(exclude={"starting_credits", "free_block_categories"}),
        },
    }


@router.post("/reset-api-keys")
async def reset_api_keys(
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    await repo.update_user(user.id, {"nodit_api_key": None, "openai_api_key": None})
    logger.info(f"[user] cleared API keys for user={user.id}")
    return {"success": True, "message": "API keys reset successfully"}


@router.delete("")
async def delete_user(
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    await repo.delete_user(user.id)
    logger.info(f"[user] deleted user={user.id}")
    return {"success": True, "message": "User account deleted successfully"}
