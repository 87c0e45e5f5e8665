"""Test fixtures: in-memory database, fake repository, litellm responses, sample workflows.

All tests should use these fixtures for consistency.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from blockflow.db.models import Base
from blockflow.db.repository import Repository
from blockflow.types import AIAnalysisResult


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with schema created. StaticPool shares one connection."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def repo(session):
    return Repository(session)


# ── Fake repository (executor / trigger / continuation tests) ─────────────────

class FakeRepository:
    """In-memory stand-in for SessionRepository. Records every write."""

    def __init__(self):
        self.users: dict[str, SimpleNamespace] = {}
        self.workflows: dict[str, SimpleNamespace] = {}
        self.events: list[dict] = []
        self.ai_logs: list[dict] = []
        self.executions: list[str] = []

    def add_user(self, id="user-1", **fields) -> SimpleNamespace:
        user = SimpleNamespace(
            id=id,
            external_id=fields.pop("external_id", f"ext-{id}"),
            name=fields.pop("name", "Test User"),
            tier=fields.pop("tier", "FREE"),
            credits=fields.pop("credits", 100),
            nodit_api_key=fields.pop("nodit_api_key", "nodit-key"),
            openai_api_key=fields.pop("openai_api_key", "sk-test"),
            **fields,
        )
        self.users[id] = user
        return user

    def add_workflow(self, id="wf-1", user_id="user-1", **fields) -> SimpleNamespace:
        workflow = SimpleNamespace(
            id=id,
            user_id=user_id,
            name=fields.pop("name", "Test Workflow"),
            trigger_type=fields.pop("trigger_type", "manual"),
            flow_path=fields.pop("flow_path", []),
            is_active=fields.pop("is_active", True),
            publish=fields.pop("publish", True),
            nodit_blocks=fields.pop("nodit_blocks", []),
            ai_blocks=fields.pop("ai_blocks", []),
            ai_decision_rules=fields.pop("ai_decision_rules", []),
            network_ids=fields.pop("network_ids", []),
            **fields,
        )
        self.workflows[id] = workflow
        return workflow

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_workflow(self, workflow_id, user_id=None):
        workflow = self.workflows.get(workflow_id)
        if workflow is None or (user_id is not None and workflow.user_id != user_id):
            return None
        return workflow

    async def list_workflows_by_trigger(self, trigger_type, user_id=None):
        return [
            w for w in self.workflows.values()
            if w.trigger_type == trigger_type and (user_id is None or w.user_id == user_id)
        ]

    async def deduct_credit(self, user_id, amount=1):
        user = self.users[user_id]
        if user.credits < amount:
            return None
        user.credits -= amount
        return user.credits

    async def record_workflow_execution(self, workflow_id):
        self.executions.append(workflow_id)

    async def add_blockchain_event(self, workflow_id, event_type, network_id, event_data, **kwargs):
        self.events.append({
            "workflow_id": workflow_id, "event_type": event_type,
            "network_id": network_id, "event_data": event_data, **kwargs,
        })

    async def add_ai_log(self, block_id, model_used, success, **kwargs):
        self.ai_logs.append({"block_id": block_id, "model_used": model_used, "success": success, **kwargs})


@pytest.fixture
def fake_repo():
    repo = FakeRepository()
    repo.add_user()
    return repo


# ── Provider mocks ────────────────────────────────────────────────────────────

@pytest.fixture
def mock_nodit():
    nodit = MagicMock()
    nodit.call_api = AsyncMock(return_value={"price": 3100.5, "symbol": "WETH"})
    return nodit


@pytest.fixture
def mock_ai():
    """AIOperations double: decision says yes with 0.9 confidence."""
    ai = MagicMock()
    ai.llm.model = "gpt-4"
    ai.last_usage = {"input_tokens": 20, "output_tokens": 10}
    ai.make_decision = AsyncMock(return_value=AIAnalysisResult(
        decision=True, confidence=0.9, reasoning="price above threshold",
    ))
    ai.execute_ai_block = AsyncMock(return_value={"response": "looks healthy", "model": "gpt-4", "tokens_used": 30})
    return ai


@pytest.fixture
def llm_response():
    """Factory for objects shaped like a litellm ModelResponse."""
    def _make(content: str, prompt_tokens: int = 12, completion_tokens: int = 8):
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.usage.prompt_tokens = prompt_tokens
        response.usage.completion_tokens = completion_tokens
        return response
    return _make


# ── Sample workflow pieces ────────────────────────────────────────────────────

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"


@pytest.fixture
def price_block():
    return {
        "block_id": "price-monitor",
        "operation_id": "getTokenPrice",
        "network_id": "ethereum",
        "parameters": {"tokenAddress": "{{trigger_data.token}}", "priceThreshold": 3000},
    }


@pytest.fixture
def decision_rule():
    return {
        "block_id": "ai-decision-maker",
        "condition": "Price is above 3000",
        "confidence_threshold": 0.8,
        "true_flow_path": ["discord"],
        "false_flow_path": ["slack"],
    }
