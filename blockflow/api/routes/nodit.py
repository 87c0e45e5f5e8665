"""Nodit proxy routes: run an operation with the caller's key, and API discovery."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from blockflow.api.deps import get_current_user, get_repository
from blockflow.api.schemas import NoditOperationRequest
from blockflow.db.models import UserModel
from blockflow.db.repository import Repository
from blockflow.providers.nodit import NoditClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/nodit", tags=["nodit"])


def _get_client(user: UserModel = Depends(get_current_user)) -> NoditClient:
    if not user.nodit_api_key:
        raise HTTPException(status_code=400, detail="Nodit API key not configured")
    return NoditClient(user.nodit_api_key)


@router.post("/operations")
async def run_operation(
    body: NoditOperationRequest,
    user: UserModel = Depends(get_current_user),
    client: NoditClient = Depends(_get_client),
    repo: Repository = Depends(get_repository),
):
    """Call one Nodit operation. Provider failures surface as 502."""
    result = await client.call_api(body.operation_id, body.parameters, body.network_id)
    await repo.touch_nodit_connections(user.id)
    logger.info(f"[nodit] user={user.id} ran {body.operation_id} on {body.network_id}")
    return {
        "success": True,
        "data": result,
        "operation_id": body.operation_id,
        "network_id": body.network_id,
    }


@router.get("/categories")
async def api_categories(client: NoditClient = Depends(_get_client)):
    return {"success": True, "data": await client.list_api_categories()}


@router.get("/node-apis")
async def node_apis(client: NoditClient = Depends(_get_client)):
    return {"success": True, "data": await client.list_node_apis()}


@router.get("/data-apis")
async def data_apis(client: NoditClient = Depends(_get_client)):
    return {"success": True, "data": await client.list_data_apis()}


@router.get("/spec/{operation_id}")
async def api_spec(operation_id: str, client: NoditClient = Depends(_get_client)):
    return {"success": True, "data": await client.get_api_spec(operation_id)}
