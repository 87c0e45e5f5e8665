"""BlockFlow — block-based workflow automation for blockchain data and AI.

Usage:
    from blockflow.engine import build_executor

    executor = build_executor(user, repository)
    run = await executor.execute_workflow(workflow_id, {"price": 3100}, ExecutionMode.TEST)
"""

from blockflow.types import (
    Tier, BlockType, TriggerType, ExecutionMode, AIOperationType,
    NoditBlockConfig, AIBlockConfig, AIDecisionRule, WorkflowExecutionContext,
    BlockExecutionResult, WorkflowRunResult, BlockDefinition, BlockValidation,
)
from blockflow.exceptions import (
    BlockflowError, UserNotFound, ApiKeysNotConfigured, InsufficientCredits,
    TierLimitExceeded, WorkflowNotFound, WorkflowNotPublished, BlockNotFound,
    ProviderError, NoditError, LLMError,
)
from blockflow.version import __version__

__all__ = [
    "Tier", "BlockType", "TriggerType", "ExecutionMode", "AIOperationType",
    "NoditBlockConfig", "AIBlockConfig", "AIDecisionRule", "WorkflowExecutionContext",
    "BlockExecutionResult", "WorkflowRunResult", "BlockDefinition", "BlockValidation",
    "BlockflowError", "UserNotFound", "ApiKeysNotConfigured", "InsufficientCredits",
    "TierLimitExceeded", "WorkflowNotFound", "WorkflowNotPublished", "BlockNotFound",
    "ProviderError", "NoditError", "LLMError",
    "__version__",
]
