"""AI routes: standalone AI operations, model list, execution logs."""

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError

from blockflow.api.deps import get_current_user, get_repository
from blockflow.api.schemas import AIOperationRequest
from blockflow.db.models import UserModel
from blockflow.db.repository import Repository
from blockflow.exceptions import LLMError
from blockflow.llm.client import LLMClient
from blockflow.llm.operations import AIOperations
from blockflow.tiers import limits_for
from blockflow.types import AIBlockConfig, AIDecisionRule, AIOperationType

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ai", tags=["ai"])


def _get_operations(user: UserModel = Depends(get_current_user)) -> AIOperations:
    if not user.openai_api_key:
        raise HTTPException(status_code=400, detail="OpenAI API key not configured")
    return AIOperations(LLMClient(api_key=user.openai_api_key))


def _input(data: dict, key: str, default: Any = None) -> Any:
    """Input fields arrive as snake_case or camelCase (portfolio_data / portfolioData)."""
    head, *rest = key.split("_")
    camel = head + "".join(part.title() for part in rest)
    for candidate in (key, camel):
        if data.get(candidate) is not None:
            return data[candidate]
    return default


def _parse(model: type[BaseModel], raw: Optional[dict], operation: str) -> BaseModel:
    if raw is None:
        raise HTTPException(status_code=400, detail=f"block_config is required for {operation}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid block_config: {e.errors()}")


def _jsonable(result: Any) -> Any:
    return result.model_dump(mode="json") if isinstance(result, BaseModel) else result


@router.post("/operations")
async def run_operation(
    body: AIOperationRequest,
    user: UserModel = Depends(get_current_user),
    ai: AIOperations = Depends(_get_operations),
    repo: Repository = Depends(get_repository),
):
    """Run one AI operation outside any workflow and log it against the caller."""
    try:
        operation = AIOperationType(body.operation_type)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid operation type")

    data = body.input_data
    block_config = body.block_config or {}
    block_id = block_config.get("block_id") or "api-call"
    model = block_config.get("model") or ai.llm.model

    workflow_id = _input(body.context_data, "workflow_id")
    if workflow_id is not None and await repo.get_workflow(workflow_id, user.id) is None:
        workflow_id = None

    start = time.monotonic()
    try:
        if operation == AIOperationType.EXECUTE_BLOCK:
            block = _parse(AIBlockConfig, body.block_config, operation.value)
            result = await ai.execute_ai_block(block, data, body.context_data)
        elif operation == AIOperationType.MAKE_DECISION:
            rule = _parse(AIDecisionRule, body.block_config, operation.value)
            result = await ai.make_decision(rule, body.context_data, _input(data, "blockchain_data"))
        elif operation == AIOperationType.ANALYZE_PORTFOLIO:
            result = await ai.analyze_portfolio(
                _input(data, "portfolio_data", {}),
                _input(data, "market_data"),
                _input(data, "user_preferences"),
            )
        elif operation == AIOperationType.GENERATE_TRADING_SIGNAL:
            result = await ai.generate_trading_signal(
                _input(data, "token_data", {}),
                _input(data, "market_data", {}),
                _input(data, "user_strategy"),
            )
        elif operation == AIOperationType.ASSESS_RISK:
            result = await ai.assess_risk(
                _input(data, "transaction_data", {}),
                _input(data, "wallet_data", {}),
                _input(data, "network_data"),
            )
        else:
            query = _input(data, "query")
            if not query:
                raise HTTPException(status_code=400, detail="input_data.query is required for process-query")
            result = await ai.process_query(
                query,
                _input(data, "available_data", {}),
                _input(data, "supported_operations"),
            )
    except LLMError as e:
        await _log(repo, ai, user, workflow_id, block_id, model, start, success=False, error_message=str(e))
        raise

    payload = _jsonable(result)
    execution_time = await _log(repo, ai, user, workflow_id, block_id, model, start, success=True, result=payload)
    return {
        "success": True,
        "data": payload,
        "operation_type": operation.value,
        "execution_time": execution_time,
    }


async def _log(
    repo: Repository, ai: AIOperations, user: UserModel, workflow_id: Optional[str],
    block_id: str, model: str, start: float, success: bool,
    result: Any = None, error_message: Optional[str] = None,
) -> int:
    execution_time = int((time.monotonic() - start) * 1000)
    usage = ai.last_usage or {}
    await repo.add_ai_log(
        block_id,
        model,
        success,
        workflow_id=workflow_id,
        user_id=user.id,
        input_tokens=usage.get("input_tokens"),
        output_tokens=usage.get("output_tokens"),
        execution_time=execution_time,
        result=result if isinstance(result, dict) else ({"data": result} if result is not None else None),
        error_message=error_message,
    )
    return execution_time


@router.get("/models")
async def list_models(
    user: UserModel = Depends(get_current_user),
    ai: AIOperations = Depends(_get_operations),
):
    """Models the caller's tier may use."""
    allowed = limits_for(user.tier).ai_model_access
    known = set(await ai.get_available_models())
    models = [m for m in allowed if m in known] or list(allowed)
    return {"success": True, "data": models}


@router.get("/logs")
async def list_logs(
    workflow_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    user: UserModel = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    logs = await repo.list_ai_logs(user.id, workflow_id=workflow_id, limit=limit)
    return {
        "success": True,
        "data": [
            {
                "id": log.id,
                "workflow_id": log.workflow_id,
                "block_id": log.block_id,
                "model_used": log.model_used,
                "input_tokens": log.input_tokens,
                "output_tokens": log.output_tokens,
                "execution_time": log.execution_time,
                "success": log.success,
                "result": log.result,
                "error_message": log.error_message,
                "executed_at": log.executed_at.isoformat() if log.executed_at else None,
            }
            for log in logs
        ],
    }
