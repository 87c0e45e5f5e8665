"""TriggerDispatcher — fan-out of one trigger event to eligible workflows."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from blockflow.engine.triggers import TriggerDispatcher
from blockflow.exceptions import ApiKeysNotConfigured
from blockflow.types import ExecutionMode, WorkflowRunResult


def _run(workflow_id: str) -> WorkflowRunResult:
    return WorkflowRunResult(workflow_id=workflow_id, mode=ExecutionMode.PRODUCTION, results={}, duration_ms=3)


@pytest.fixture
def executor():
    ex = MagicMock()
    ex.execute_workflow = AsyncMock(side_effect=lambda wf_id, data, mode: _run(wf_id))
    return ex


@pytest.fixture
def factory(executor):
    return MagicMock(return_value=executor)


def _statuses(summaries) -> dict:
    return {s["workflow_id"]: s["status"] for s in summaries}


async def test_runs_eligible_and_skips_the_rest(fake_repo, factory, executor):
    fake_repo.add_workflow("ok", trigger_type="schedule")
    fake_repo.add_workflow("inactive", trigger_type="schedule", is_active=False)
    fake_repo.add_workflow("draft", trigger_type="schedule", publish=False)
    fake_repo.add_workflow("other-trigger", trigger_type="webhook")

    summaries = await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("schedule", {"tick": 1})

    assert _statuses(summaries) == {"ok": "executed", "inactive": "skipped", "draft": "skipped"}
    reasons = {s["workflow_id"]: s.get("reason") for s in summaries}
    assert reasons["inactive"] == "inactive"
    assert reasons["draft"] == "not published"
    executor.execute_workflow.assert_awaited_once_with("ok", {"tick": 1}, ExecutionMode.PRODUCTION)


async def test_network_filter(fake_repo, factory):
    fake_repo.add_workflow("eth-only", trigger_type="blockchain_event", network_ids=["ethereum"])
    fake_repo.add_workflow("any-network", trigger_type="blockchain_event", network_ids=[])

    summaries = await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch(
        "blockchain_event", {}, network_id="base",
    )
    assert _statuses(summaries) == {"eth-only": "skipped", "any-network": "executed"}
    assert summaries[0]["reason"] == "network base not enabled"


async def test_executor_built_once_per_owner(fake_repo, factory):
    fake_repo.add_user("user-2")
    fake_repo.add_workflow("a1", trigger_type="manual")
    fake_repo.add_workflow("a2", trigger_type="manual")
    fake_repo.add_workflow("b1", user_id="user-2", trigger_type="manual")

    await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("manual")

    owners = [call.args[0].id for call in factory.call_args_list]
    assert owners == ["user-1", "user-2"]


async def test_user_filter(fake_repo, factory):
    fake_repo.add_user("user-2")
    fake_repo.add_workflow("mine", trigger_type="manual")
    fake_repo.add_workflow("theirs", user_id="user-2", trigger_type="manual")

    summaries = await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("manual", user_id="user-1")
    assert _statuses(summaries) == {"mine": "executed"}


async def test_owner_without_keys_is_skipped(fake_repo):
    fake_repo.add_workflow(trigger_type="webhook")
    factory = MagicMock(side_effect=ApiKeysNotConfigured("API keys not configured", missing=["nodit"]))

    summaries = await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("webhook")
    assert summaries == [{"workflow_id": "wf-1", "status": "skipped", "reason": "owner API keys missing"}]


async def test_one_failure_does_not_stop_others(fake_repo, executor, factory):
    fake_repo.add_workflow("bad", trigger_type="schedule")
    fake_repo.add_workflow("good", trigger_type="schedule")

    def run(wf_id, data, mode):
        if wf_id == "bad":
            raise RuntimeError("exploded")
        return _run(wf_id)

    executor.execute_workflow.side_effect = run
    summaries = await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("schedule")

    assert _statuses(summaries) == {"bad": "failed", "good": "executed"}
    assert summaries[0]["error"] == "exploded"


async def test_unknown_trigger_type_rejected(fake_repo, factory):
    with pytest.raises(ValueError):
        await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("earthquake")


async def test_missing_owner_is_skipped(fake_repo, factory):
    fake_repo.add_workflow("orphan", user_id="ghost", trigger_type="manual")
    summaries = await TriggerDispatcher(fake_repo, executor_factory=factory).dispatch("manual")
    assert summaries == [{"workflow_id": "orphan", "status": "skipped", "reason": "owner not found"}]
    factory.assert_not_called()
