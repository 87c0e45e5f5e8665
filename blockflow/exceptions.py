"""Typed exception hierarchy. Every error BlockFlow can raise."""


class BlockflowError(Exception):
    """Base exception for all BlockFlow errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Users & billing ─────────────────────────────────────────────────────────


class UserNotFound(BlockflowError):
    """No user row for the given id or external identity."""
    def __init__(self, message: str, user_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.user_id = user_id


class ApiKeysNotConfigured(BlockflowError):
    """The user has not stored the provider API key(s) an operation needs."""
    def __init__(self, message: str, missing: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing = missing or []


class InsufficientCredits(BlockflowError):
    """Non-UNLIMITED user has no credits left."""
    pass


class TierLimitExceeded(BlockflowError):
    """Request would exceed a limit of the user's tier."""
    def __init__(self, message: str, limit: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.limit = limit


# ── Workflows ───────────────────────────────────────────────────────────────


class WorkflowError(BlockflowError):
    """Base exception for all workflow-related errors."""
    pass


class WorkflowNotFound(WorkflowError):
    """Requested workflow does not exist or is not owned by the caller."""
    def __init__(self, message: str, workflow_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id


class WorkflowNotPublished(WorkflowError):
    """Production execution requested for a workflow that is not published."""
    def __init__(self, message: str, workflow_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id


class BlockNotFound(BlockflowError):
    """Block ID is not in the catalog."""
    def __init__(self, message: str, block_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.block_id = block_id


# ── External providers ──────────────────────────────────────────────────────


class ProviderError(BlockflowError):
    """An outbound call to an external provider failed."""
    def __init__(self, message: str, provider: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.provider = provider


class NoditError(ProviderError):
    """Nodit blockchain-data API call failed."""
    def __init__(self, message: str, operation_id: str = "", status_code: int = None, **kwargs):
        super().__init__(message, provider="nodit", **kwargs)
        self.operation_id = operation_id
        self.status_code = status_code


class LLMError(ProviderError):
    """LLM chat-completion call failed or returned nothing usable."""
    def __init__(self, message: str, model: str = "", **kwargs):
        super().__init__(message, provider="llm", **kwargs)
        self.model = model
