"""Block catalog routes. Read-only; only /available and /validate look at the caller."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from blockflow.api.deps import Identity, get_identity, get_optional_identity, get_repository
from blockflow.api.schemas import ValidateBlockRequest
from blockflow.blocks import catalog
from blockflow.blocks.validator import validate_block_configuration
from blockflow.db.repository import Repository
from blockflow.tiers import limits_for
from blockflow.types import BlockType, Tier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/blocks", tags=["blocks"])


def _dump(items) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


@router.get("/categories")
async def list_categories():
    return {"success": True, "data": catalog.categories()}


@router.get("/types/{block_type}")
async def blocks_by_type(block_type: str):
    if block_type not in {t.value for t in BlockType}:
        raise HTTPException(status_code=400, detail=f"Unknown block type: {block_type}")
    return {"success": True, "data": _dump(catalog.get_blocks_by_type(block_type))}


@router.get("/networks")
async def list_networks():
    return {"success": True, "data": _dump(catalog.networks())}


@router.get("/networks/{network_id}")
async def blocks_by_network(network_id: str):
    network = catalog.get_network(network_id)
    if network is None:
        raise HTTPException(status_code=404, detail=f"Network not found: {network_id}")
    return {
        "success": True,
        "data": {
            "network": network.model_dump(mode="json"),
            "blocks": _dump(catalog.get_blocks_by_network(network_id)),
        },
    }


@router.get("/templates")
async def list_templates():
    return {"success": True, "data": _dump(catalog.templates())}


@router.get("/available")
async def available_blocks(
    identity: Optional[Identity] = Depends(get_optional_identity),
    repo: Repository = Depends(get_repository),
):
    """Every block, annotated with what the caller can actually run."""
    data = catalog.categories()
    if identity is None:
        data["availability"] = {"nodit": False, "ai": False, "reason": "Authentication required"}
        return {"success": True, "data": data}

    user = await repo.get_user_by_external_id(identity.external_id)
    tier = user.tier if user is not None else Tier.FREE.value
    limits = limits_for(tier)
    data["availability"] = {
        "nodit": bool(user and user.nodit_api_key),
        "ai": bool(user and user.openai_api_key),
        "tier": tier,
        "credits": user.credits if user is not None else 0,
        "limitations": {
            "free_blocks": limits.free_block_categories,
            "ai_model_access": limits.ai_model_access,
            "supported_networks": limits.supported_networks,
        },
    }
    return {"success": True, "data": data}


@router.post("/validate")
async def validate_block(body: ValidateBlockRequest, identity: Identity = Depends(get_identity)):
    result = validate_block_configuration(body.block_id, body.parameters, body.network_id)
    return {"success": True, "data": result.model_dump()}


# Registered last: the catch-all path would shadow the routes above.
@router.get("/{block_id}")
async def get_block(block_id: str):
    block = catalog.get_block_by_id(block_id)
    if block is None:
        raise HTTPException(status_code=404, detail=f"Block not found: {block_id}")
    return {"success": True, "data": block.model_dump(mode="json")}
