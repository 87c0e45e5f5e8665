"""Seed database with demo data.

Creates:
- 1 demo user (FREE tier, no API keys) keyed by config.demo_external_id
- 1 unpublished demo workflow built from the price-alert-basic template
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blockflow.db.models import UserModel, WorkflowModel
from blockflow.tiers import limits_for
from blockflow.types import Tier

DEMO_WORKFLOW = {
    "name": "Basic Price Alert",
    "description": "Monitor token price and notify Discord when the AI says the threshold is reached",
    "trigger_type": "manual",
    "trigger_config": {"type": "manual"},
    "flow_path": ["price-monitor", "ai-decision-maker"],
    "network_ids": ["ethereum"],
    "nodit_blocks": [
        {
            "block_id": "price-monitor",
            "operation_id": "getTokenPrice",
            "network_id": "ethereum",
            "parameters": {
                # WETH
                "tokenAddress": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
                "priceThreshold": 3000,
                "condition": "above",
            },
        },
    ],
    "ai_decision_rules": [
        {
            "block_id": "ai-decision-maker",
            "condition": "The token price is above the configured threshold",
            "confidence_threshold": 0.8,
            "true_flow_path": ["discord"],
            "false_flow_path": [],
        },
    ],
}


async def seed_database(session: AsyncSession, external_id: str = "demo-user") -> UserModel:
    """Create the demo user and workflow. Idempotent.

    Args:
        session:     Async database session
        external_id: Identity the demo user is addressed by (X-User-Id)
    """
    result = await session.execute(
        select(UserModel).where(UserModel.external_id == external_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        user = UserModel(
            external_id=external_id,
            email="demo@blockflow.local",
            name="Demo User",
            tier=Tier.FREE.value,
            credits=limits_for(Tier.FREE).starting_credits,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)

    result = await session.execute(
        select(WorkflowModel).where(
            WorkflowModel.user_id == user.id,
            WorkflowModel.name == DEMO_WORKFLOW["name"],
        )
    )
    if result.scalar_one_or_none() is None:
        session.add(WorkflowModel(user_id=user.id, **DEMO_WORKFLOW))
        await session.commit()

    return user
