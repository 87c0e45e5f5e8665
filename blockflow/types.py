"""All shared types, enums, and type aliases. Everything imports from here."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────────────────

class Tier(str, Enum):
    FREE = "FREE"
    PRO = "PRO"
    UNLIMITED = "UNLIMITED"

class BlockType(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    LOGIC = "logic"
    TRANSFORM = "transform"
    STORAGE = "storage"
    AI = "ai"
    NOTIFICATION = "notification"

class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    STRUCTURED = "structured"

class TriggerType(str, Enum):
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"
    BLOCKCHAIN_EVENT = "blockchain_event"
    MANUAL = "manual"

class ExecutionMode(str, Enum):
    PRODUCTION = "production"
    TEST = "test"

class AIOperationType(str, Enum):
    EXECUTE_BLOCK = "execute-block"
    MAKE_DECISION = "make-decision"
    ANALYZE_PORTFOLIO = "analyze-portfolio"
    GENERATE_TRADING_SIGNAL = "generate-trading-signal"
    ASSESS_RISK = "assess-risk"
    PROCESS_QUERY = "process-query"


# ── Workflow block configuration (stored in workflow JSON columns) ─────

class WorkflowTriggerConfig(BaseModel):
    type: TriggerType = TriggerType.MANUAL
    schedule: Optional[str] = None          # cron expression
    webhook_url: Optional[str] = None
    event_filters: dict[str, Any] = Field(default_factory=dict)
    network_id: Optional[str] = None

class NoditBlockConfig(BaseModel):
    """A flow-path step executed against the Nodit API."""
    block_id: str
    operation_id: str
    network_id: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    output_mapping: Optional[dict[str, str]] = None

class AIBlockConfig(BaseModel):
    """A flow-path step executed as one LLM chat completion."""
    block_id: str = "api-call"
    model: Optional[str] = None
    system_prompt: str = ""
    user_prompt_template: str = ""
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    output_format: OutputFormat = OutputFormat.TEXT
    fallback_response: Optional[str] = None
    inputs: dict[str, Any] = Field(default_factory=dict)   # name -> "{{results.x.y}}"

class AIDecisionRule(BaseModel):
    """A flow-path step that asks the LLM a yes/no question and branches."""
    block_id: str
    condition: str
    confidence_threshold: float = 0.0       # 0-1, or 0-100 read as percent
    true_flow_path: list[str] = Field(default_factory=list)
    false_flow_path: list[str] = Field(default_factory=list)
    model: Optional[str] = None


# ── Execution ──────────────────────────────────────────────────────────

class WorkflowExecutionContext(BaseModel):
    """Mutable state threaded through one workflow run."""
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    results: dict[str, dict[str, Any]] = Field(default_factory=dict)
    user_preferences: dict[str, Any] = Field(default_factory=dict)
    network_data: dict[str, Any] = Field(default_factory=dict)

class BlockExecutionResult(BaseModel):
    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    next_blocks: Optional[list[str]] = None
    should_stop: bool = False

class WorkflowRunResult(BaseModel):
    """Summary returned by WorkflowExecutor.execute_workflow."""
    workflow_id: str
    mode: ExecutionMode
    results: dict[str, dict[str, Any]]
    duration_ms: int
    credits_remaining: Optional[int] = None
    continuation_scheduled: bool = False


# ── LLM analysis shapes ────────────────────────────────────────────────

class AIAnalysisResult(BaseModel):
    decision: bool
    confidence: float                       # clamped to 0-1
    reasoning: str
    suggested_action: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)

class AIPortfolioInsight(BaseModel):
    analysis: str
    recommendations: list[str]
    risk_level: str                         # low | medium | high
    diversification_score: float            # clamped to 0-100
    market_sentiment: Optional[str] = None

class AITradingSignal(BaseModel):
    action: str                             # buy | sell | hold
    confidence: float
    reasoning: str
    target_price: Optional[float] = None
    stop_loss: Optional[float] = None
    timeframe: str


# ── Block catalog ──────────────────────────────────────────────────────

class ParameterValidation(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None

class BlockParameter(BaseModel):
    type: str                               # string|number|boolean|array|object|enum
    required: bool = False
    description: str = ""
    default: Any = None
    options: Optional[list[str]] = None
    validation: Optional[ParameterValidation] = None

class BlockDefinition(BaseModel):
    """A catalog entry. Nodit blocks carry networks/nodit_operation, AI blocks the prompt fields."""
    id: str
    label: str
    icon: str = ""
    type: BlockType
    category: str
    description: str
    parameters: dict[str, BlockParameter] = Field(default_factory=dict)
    has_embedded_controls: bool = False
    control_type: Optional[str] = None
    # Nodit
    nodit_operation: Optional[str] = None
    networks: list[str] = Field(default_factory=list)
    # AI
    ai_model: Optional[str] = None
    system_prompt: Optional[str] = None
    user_prompt_template: Optional[str] = None
    output_format: Optional[OutputFormat] = None

class Network(BaseModel):
    id: str
    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_currency: str

class WorkflowTemplate(BaseModel):
    id: str
    name: str
    description: str
    category: str
    blocks: list[str]
    networks: list[str]
    difficulty: str

class BlockValidation(BaseModel):
    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

class TierLimits(BaseModel):
    starting_credits: int
    max_workflows: int
    max_executions_per_month: int
    ai_model_access: list[str]
    supported_networks: list[str]
    free_block_categories: Optional[list[str]] = None
