"""Data access layer. Every user-facing query is owner-scoped.

This is the ONLY layer that talks to the database.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from blockflow.db.models import (
    AIDecisionRuleModel, AIExecutionLogModel, BlockchainEventModel,
    NoditConnectionModel, UserModel, WorkflowModel,
)

_WORKFLOW_FIELDS = {
    "name", "description", "trigger_type", "trigger_config", "flow_path", "is_active",
    "publish", "nodit_blocks", "ai_blocks", "ai_decision_rules", "network_ids",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()


class Repository:
    """All database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Users ──
    async def get_user(self, user_id: str) -> Optional[UserModel]:
        """Get user by primary key."""
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_external_id(self, external_id: str) -> Optional[UserModel]:
        """Get user by the identity the auth proxy hands us."""
        result = await self.session.execute(
            select(UserModel).where(UserModel.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def create_user(self, external_id: str, **fields: Any) -> UserModel:
        """Create a new user."""
        user = UserModel(external_id=external_id, **fields)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_user(self, user_id: str, updates: dict) -> Optional[UserModel]:
        """Apply field updates. Keys that are not columns are ignored."""
        user = await self.get_user(user_id)
        if user is None:
            return None
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)
        user.updated_at = _now()
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def deduct_credit(self, user_id: str, amount: int = 1) -> Optional[int]:
        """Atomically take *amount* credits. Returns the new balance, None if the user has none left."""
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id, UserModel.credits >= amount)
            .values(credits=UserModel.credits - amount, updated_at=_now())
        )
        await self.session.commit()
        if result.rowcount == 0:
            return None
        balance = await self.session.execute(select(UserModel.credits).where(UserModel.id == user_id))
        return balance.scalar()

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user and every row they own.

        Child rows are removed explicitly so the result does not depend on the
        backend enforcing ON DELETE CASCADE.
        """
        user = await self.get_user(user_id)
        if user is None:
            return False
        owned = select(WorkflowModel.id).where(WorkflowModel.user_id == user_id)
        await self.session.execute(
            delete(AIExecutionLogModel).where(
                (AIExecutionLogModel.user_id == user_id) | AIExecutionLogModel.workflow_id.in_(owned)
            )
        )
        await self.session.execute(delete(BlockchainEventModel).where(BlockchainEventModel.workflow_id.in_(owned)))
        await self.session.execute(delete(AIDecisionRuleModel).where(AIDecisionRuleModel.workflow_id.in_(owned)))
        await self.session.execute(delete(WorkflowModel).where(WorkflowModel.user_id == user_id))
        await self.session.execute(delete(NoditConnectionModel).where(NoditConnectionModel.user_id == user_id))
        await self.session.execute(delete(UserModel).where(UserModel.id == user_id))
        await self.session.commit()
        return True

    # ── Nodit connections ──
    async def upsert_nodit_connection(
        self, user_id: str, api_key: str, supported_networks: list[str], name: str = "default",
    ) -> NoditConnectionModel:
        """Record the user's Nodit key by hash. One connection per (user, name)."""
        result = await self.session.execute(
            select(NoditConnectionModel).where(
                NoditConnectionModel.user_id == user_id,
                NoditConnectionModel.connection_name == name,
            )
        )
        conn = result.scalar_one_or_none()
        if conn is None:
            conn = NoditConnectionModel(user_id=user_id, connection_name=name)
            self.session.add(conn)
        conn.api_key_hash = hash_api_key(api_key)
        conn.supported_networks = supported_networks
        conn.is_active = True
        await self.session.commit()
        await self.session.refresh(conn)
        return conn

    async def touch_nodit_connections(self, user_id: str) -> None:
        """Mark the user's active connections as just tested."""
        await self.session.execute(
            update(NoditConnectionModel)
            .where(NoditConnectionModel.user_id == user_id, NoditConnectionModel.is_active.is_(True))
            .values(last_tested=_now())
        )
        await self.session.commit()

    # ── Workflows ──
    async def list_workflows(self, user_id: str) -> list[WorkflowModel]:
        result = await self.session.execute(
            select(WorkflowModel)
            .where(WorkflowModel.user_id == user_id)
            .order_by(WorkflowModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_workflow(self, workflow_id: str, user_id: Optional[str] = None) -> Optional[WorkflowModel]:
        """Get a workflow. With *user_id*, only if that user owns it."""
        stmt = select(WorkflowModel).where(WorkflowModel.id == workflow_id)
        if user_id is not None:
            stmt = stmt.where(WorkflowModel.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_workflows(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(WorkflowModel).where(WorkflowModel.user_id == user_id)
        )
        return result.scalar() or 0

    async def create_workflow(self, user_id: str, data: dict) -> WorkflowModel:
        workflow = WorkflowModel(
            user_id=user_id,
            **{k: v for k, v in data.items() if k in _WORKFLOW_FIELDS},
        )
        self.session.add(workflow)
        await self.session.commit()
        await self.session.refresh(workflow)
        return workflow

    async def update_workflow(self, workflow_id: str, user_id: str, updates: dict) -> Optional[WorkflowModel]:
        workflow = await self.get_workflow(workflow_id, user_id)
        if workflow is None:
            return None
        for key, value in updates.items():
            if key in _WORKFLOW_FIELDS:
                setattr(workflow, key, value)
        workflow.updated_at = _now()
        await self.session.commit()
        await self.session.refresh(workflow)
        return workflow

    async def delete_workflow(self, workflow_id: str, user_id: str) -> bool:
        workflow = await self.get_workflow(workflow_id, user_id)
        if workflow is None:
            return False
        await self.session.execute(delete(AIExecutionLogModel).where(AIExecutionLogModel.workflow_id == workflow_id))
        await self.session.execute(delete(BlockchainEventModel).where(BlockchainEventModel.workflow_id == workflow_id))
        await self.session.execute(delete(AIDecisionRuleModel).where(AIDecisionRuleModel.workflow_id == workflow_id))
        await self.session.execute(delete(WorkflowModel).where(WorkflowModel.id == workflow_id))
        await self.session.commit()
        return True

    async def list_workflows_by_trigger(self, trigger_type: str, user_id: Optional[str] = None) -> list[WorkflowModel]:
        """Workflows listening on *trigger_type*, optionally limited to one owner."""
        stmt = select(WorkflowModel).where(WorkflowModel.trigger_type == trigger_type)
        if user_id is not None:
            stmt = stmt.where(WorkflowModel.user_id == user_id)
        result = await self.session.execute(stmt.order_by(WorkflowModel.created_at))
        return list(result.scalars().all())

    async def record_workflow_execution(self, workflow_id: str) -> None:
        """Bump execution_count and stamp last_executed."""
        await self.session.execute(
            update(WorkflowModel)
            .where(WorkflowModel.id == workflow_id)
            .values(
                execution_count=func.coalesce(WorkflowModel.execution_count, 0) + 1,
                last_executed=_now(),
            )
        )
        await self.session.commit()

    # ── Decision rules ──
    async def replace_decision_rules(self, workflow_id: str, rules: list[dict]) -> list[AIDecisionRuleModel]:
        """Mirror a workflow's ai_decision_rules JSON into the ai_decision_rules table."""
        await self.session.execute(delete(AIDecisionRuleModel).where(AIDecisionRuleModel.workflow_id == workflow_id))
        records = []
        for rule in rules:
            threshold = float(rule.get("confidence_threshold") or 0)
            records.append(AIDecisionRuleModel(
                workflow_id=workflow_id,
                rule_name=rule["block_id"],
                condition=rule["condition"],
                ai_model=rule.get("model") or "gpt-4",
                system_prompt=rule.get("system_prompt"),
                confidence_threshold=int(round(threshold * 100 if threshold <= 1 else threshold)),
                true_flow_path=rule.get("true_flow_path") or [],
                false_flow_path=rule.get("false_flow_path") or [],
            ))
        self.session.add_all(records)
        await self.session.commit()
        return records

    async def list_decision_rules(self, workflow_id: str) -> list[AIDecisionRuleModel]:
        result = await self.session.execute(
            select(AIDecisionRuleModel).where(AIDecisionRuleModel.workflow_id == workflow_id)
        )
        return list(result.scalars().all())

    # ── Blockchain events ──
    async def add_blockchain_event(
        self,
        workflow_id: str,
        event_type: str,
        network_id: str,
        event_data: dict,
        processed: bool = True,
        **fields: Any,
    ) -> BlockchainEventModel:
        record = BlockchainEventModel(
            workflow_id=workflow_id,
            event_type=event_type,
            network_id=network_id,
            event_data=event_data,
            processed=processed,
            **fields,
        )
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def count_blockchain_events(self, user_id: str) -> int:
        """Processed events on workflows owned by *user_id*."""
        result = await self.session.execute(
            select(func.count())
            .select_from(BlockchainEventModel)
            .join(WorkflowModel, BlockchainEventModel.workflow_id == WorkflowModel.id)
            .where(WorkflowModel.user_id == user_id, BlockchainEventModel.processed.is_(True))
        )
        return result.scalar() or 0

    # ── AI execution logs ──
    async def add_ai_log(
        self,
        block_id: str,
        model_used: str,
        success: bool,
        workflow_id: Optional[str] = None,
        user_id: Optional[str] = None,
        **fields: Any,
    ) -> AIExecutionLogModel:
        record = AIExecutionLogModel(
            workflow_id=workflow_id,
            user_id=user_id,
            block_id=block_id,
            model_used=model_used,
            success=success,
            **fields,
        )
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def list_ai_logs(
        self, user_id: str, workflow_id: Optional[str] = None, limit: int = 50,
    ) -> list[AIExecutionLogModel]:
        stmt = select(AIExecutionLogModel).where(AIExecutionLogModel.user_id == user_id)
        if workflow_id is not None:
            stmt = stmt.where(AIExecutionLogModel.workflow_id == workflow_id)
        result = await self.session.execute(
            stmt.order_by(AIExecutionLogModel.executed_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def count_ai_executions(self, user_id: str) -> int:
        """Successful AI executions attributed to *user_id*."""
        result = await self.session.execute(
            select(func.count())
            .select_from(AIExecutionLogModel)
            .where(AIExecutionLogModel.user_id == user_id, AIExecutionLogModel.success.is_(True))
        )
        return result.scalar() or 0

    async def last_activity(self, user_id: str) -> Optional[datetime]:
        """Latest of the user's AI executions and blockchain events."""
        ai_result = await self.session.execute(
            select(func.max(AIExecutionLogModel.executed_at)).where(AIExecutionLogModel.user_id == user_id)
        )
        event_result = await self.session.execute(
            select(func.max(BlockchainEventModel.created_at))
            .join(WorkflowModel, BlockchainEventModel.workflow_id == WorkflowModel.id)
            .where(WorkflowModel.user_id == user_id)
        )
        candidates = [ts for ts in (ai_result.scalar(), event_result.scalar()) if ts is not None]
        return max(candidates) if candidates else None


class SessionRepository:
    """Session-per-call proxy for work that outlives a request.

    Repository takes a single AsyncSession; a workflow continuation fires after
    the request that scheduled it has closed its session. This proxy opens a
    fresh session for every DB call instead.

    Only the methods the executor and trigger dispatcher use are forwarded.
    """

    def __init__(self, session_factory) -> None:
        self._sf = session_factory

    async def get_user(self, user_id: str):
        async with self._sf() as session:
            return await Repository(session).get_user(user_id)

    async def get_workflow(self, workflow_id: str, user_id: Optional[str] = None):
        async with self._sf() as session:
            return await Repository(session).get_workflow(workflow_id, user_id)

    async def list_workflows_by_trigger(self, trigger_type: str, user_id: Optional[str] = None):
        async with self._sf() as session:
            return await Repository(session).list_workflows_by_trigger(trigger_type, user_id)

    async def deduct_credit(self, user_id: str, amount: int = 1):
        async with self._sf() as session:
            return await Repository(session).deduct_credit(user_id, amount)

    async def record_workflow_execution(self, workflow_id: str):
        async with self._sf() as session:
            return await Repository(session).record_workflow_execution(workflow_id)

    async def add_blockchain_event(self, workflow_id: str, event_type: str, network_id: str, event_data: dict, **kwargs):
        async with self._sf() as session:
            return await Repository(session).add_blockchain_event(
                workflow_id, event_type, network_id, event_data, **kwargs
            )

    async def add_ai_log(self, block_id: str, model_used: str, success: bool, **kwargs):
        async with self._sf() as session:
            return await Repository(session).add_ai_log(block_id, model_used, success, **kwargs)
