"""All ORM models.

Tables: users, workflows, blockchain_events, ai_execution_logs,
nodit_connections, ai_decision_rules. Child rows cascade on delete of their
owning user or workflow.
"""

from sqlalchemy import Column, String, Integer, DateTime, JSON, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import DeclarativeBase, relationship
from datetime import datetime, timezone
import uuid


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=_uuid)
    external_id = Column(String, nullable=False, unique=True)   # identity from the auth proxy
    email = Column(String, nullable=False, default="")
    name = Column(String, nullable=True)
    tier = Column(String, nullable=False, default="FREE")
    credits = Column(Integer, default=100)
    nodit_api_key = Column(Text, nullable=True)
    openai_api_key = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)

    workflows = relationship("WorkflowModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    nodit_connections = relationship("NoditConnectionModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class WorkflowModel(Base):
    __tablename__ = "workflows"
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    trigger_type = Column(String, nullable=False)
    trigger_config = Column(JSON, nullable=True)
    flow_path = Column(JSON, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    publish = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)
    nodit_blocks = Column(JSON, nullable=True)
    ai_blocks = Column(JSON, nullable=True)
    ai_decision_rules = Column(JSON, nullable=True)
    network_ids = Column(JSON, nullable=True)
    execution_count = Column(Integer, default=0)
    last_executed = Column(DateTime, nullable=True)

    user = relationship("UserModel", back_populates="workflows")
    blockchain_events = relationship("BlockchainEventModel", cascade="all, delete-orphan", passive_deletes=True)
    ai_execution_logs = relationship("AIExecutionLogModel", cascade="all, delete-orphan", passive_deletes=True)
    decision_rules = relationship("AIDecisionRuleModel", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (Index("ix_workflow_trigger_type", "trigger_type"),)


class BlockchainEventModel(Base):
    __tablename__ = "blockchain_events"
    id = Column(String, primary_key=True, default=_uuid)
    workflow_id = Column(String, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    network_id = Column(String, nullable=False)
    block_number = Column(Integer, nullable=True)
    transaction_hash = Column(String, nullable=True)
    contract_address = Column(String, nullable=True)
    event_data = Column(JSON, nullable=True)
    processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=_now)


class AIExecutionLogModel(Base):
    __tablename__ = "ai_execution_logs"
    id = Column(String, primary_key=True, default=_uuid)
    # NULL for standalone calls made through /api/ai/operations
    workflow_id = Column(String, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    block_id = Column(String, nullable=False)
    model_used = Column(String, nullable=False)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    execution_time = Column(Integer, nullable=True)   # milliseconds
    success = Column(Boolean, nullable=False)
    result = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    executed_at = Column(DateTime, nullable=False, default=_now)

    __table_args__ = (Index("ix_ai_log_user_executed", "user_id", "executed_at"),)


class NoditConnectionModel(Base):
    __tablename__ = "nodit_connections"
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    connection_name = Column(String, nullable=False)
    api_key_hash = Column(String, nullable=False)
    supported_networks = Column(JSON, default=list)
    last_tested = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_now)

    user = relationship("UserModel", back_populates="nodit_connections")


class AIDecisionRuleModel(Base):
    __tablename__ = "ai_decision_rules"
    id = Column(String, primary_key=True, default=_uuid)
    workflow_id = Column(String, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_name = Column(String, nullable=False)
    condition = Column(Text, nullable=False)
    ai_model = Column(String, nullable=False, default="gpt-4")
    system_prompt = Column(Text, nullable=True)
    confidence_threshold = Column(Integer, default=80)    # percent
    true_flow_path = Column(JSON, default=list)
    false_flow_path = Column(JSON, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_now)
