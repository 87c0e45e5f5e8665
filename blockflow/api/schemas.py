"""Pydantic models for API request/response. Mirrors types.py for API I/O."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from blockflow.types import (
    AIBlockConfig, AIDecisionRule, ExecutionMode, NoditBlockConfig, Tier, TriggerType, WorkflowTriggerConfig,
)


# ── User ──

class ConfigureUserRequest(BaseModel):
    nodit_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    tier: Optional[Tier] = None


class UpdateUserRequest(BaseModel):
    credits: Optional[int] = Field(default=None, ge=0)
    tier: Optional[Tier] = None


# ── Blocks ──

class ValidateBlockRequest(BaseModel):
    block_id: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    network_id: Optional[str] = None


# ── Providers ──

class NoditOperationRequest(BaseModel):
    operation_id: str = Field(..., min_length=1)
    network_id: str = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)


class AIOperationRequest(BaseModel):
    operation_type: str
    block_config: Optional[dict[str, Any]] = None
    input_data: dict[str, Any] = Field(default_factory=dict)
    context_data: dict[str, Any] = Field(default_factory=dict)


# ── Workflows ──

class WorkflowCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    trigger_type: TriggerType = TriggerType.MANUAL
    trigger_config: Optional[WorkflowTriggerConfig] = None
    flow_path: list[str] = Field(default_factory=list)
    is_active: bool = True
    publish: bool = False
    nodit_blocks: list[NoditBlockConfig] = Field(default_factory=list)
    ai_blocks: list[AIBlockConfig] = Field(default_factory=list)
    ai_decision_rules: list[AIDecisionRule] = Field(default_factory=list)
    network_ids: list[str] = Field(default_factory=list)


class WorkflowUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    trigger_type: Optional[TriggerType] = None
    trigger_config: Optional[WorkflowTriggerConfig] = None
    flow_path: Optional[list[str]] = None
    is_active: Optional[bool] = None
    publish: Optional[bool] = None
    nodit_blocks: Optional[list[NoditBlockConfig]] = None
    ai_blocks: Optional[list[AIBlockConfig]] = None
    ai_decision_rules: Optional[list[AIDecisionRule]] = None
    network_ids: Optional[list[str]] = None


class WorkflowResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    trigger_type: str
    trigger_config: Optional[dict] = None
    flow_path: list[str]
    is_active: bool
    publish: bool
    nodit_blocks: Optional[list[dict]] = None
    ai_blocks: Optional[list[dict]] = None
    ai_decision_rules: Optional[list[dict]] = None
    network_ids: Optional[list[str]] = None
    execution_count: int
    last_executed: Optional[str] = None
    created_at: str
    updated_at: str


# ── Execution ──

class ExecuteWorkflowRequest(BaseModel):
    workflow_id: str = Field(..., min_length=1)
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    execution_mode: ExecutionMode = ExecutionMode.PRODUCTION


class TriggerRequest(BaseModel):
    trigger_type: TriggerType
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    network_id: Optional[str] = None


# ── Responses ──

class HealthResponse(BaseModel):
    status: str                           # "ok" | "degraded"
    version: str
    services: dict[str, bool]
