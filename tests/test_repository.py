"""Persistence — Repository, SessionRepository and seed_database.

Uses an in-memory SQLite database (aiosqlite) so no Postgres required.
"""

from datetime import datetime, timedelta

from sqlalchemy import select

from blockflow.db.models import AIDecisionRuleModel, NoditConnectionModel, WorkflowModel
from blockflow.db.repository import SessionRepository, hash_api_key
from blockflow.db.seed import DEMO_WORKFLOW, seed_database


async def _user(repo, external_id="alice", **fields):
    fields.setdefault("credits", 100)
    return await repo.create_user(external_id, email=f"{external_id}@example.com", **fields)


def _workflow_data(**overrides):
    data = {
        "name": "Price alert",
        "trigger_type": "manual",
        "flow_path": ["price-monitor", "discord"],
        "publish": True,
    }
    data.update(overrides)
    return data


# ── Users ───────────────────────────────────────────────────────────────────

async def test_create_and_get_user(repo):
    user = await _user(repo, tier="PRO", credits=1000)
    assert user.id
    fetched = await repo.get_user_by_external_id("alice")
    assert fetched.id == user.id
    assert fetched.tier == "PRO"
    assert await repo.get_user_by_external_id("nobody") is None


async def test_update_user_ignores_unknown_fields(repo):
    user = await _user(repo)
    updated = await repo.update_user(user.id, {"credits": 7, "not_a_column": "x"})
    assert updated.credits == 7
    assert await repo.update_user("missing", {"credits": 1}) is None


async def test_deduct_credit(repo):
    user = await _user(repo, credits=2)
    assert await repo.deduct_credit(user.id) == 1
    assert await repo.deduct_credit(user.id) == 0
    assert await repo.deduct_credit(user.id) is None
    assert (await repo.get_user(user.id)).credits == 0


async def test_upsert_nodit_connection_hashes_key(repo, session):
    user = await _user(repo)
    first = await repo.upsert_nodit_connection(user.id, "key-1", ["ethereum"])
    second = await repo.upsert_nodit_connection(user.id, "key-2", ["ethereum", "base"])
    assert first.id == second.id
    assert second.api_key_hash == hash_api_key("key-2")
    assert second.supported_networks == ["ethereum", "base"]

    await repo.touch_nodit_connections(user.id)
    conn = (await session.execute(select(NoditConnectionModel))).scalar_one()
    assert conn.last_tested is not None


async def test_delete_user_removes_owned_rows(repo, session):
    user = await _user(repo)
    wf = await repo.create_workflow(user.id, _workflow_data())
    await repo.add_blockchain_event(wf.id, "getTokenPrice", "ethereum", {"price": 1})
    await repo.add_ai_log("ai-block", "gpt-4", True, workflow_id=wf.id, user_id=user.id)
    await repo.replace_decision_rules(wf.id, [{"block_id": "rule", "condition": "c"}])

    assert await repo.delete_user(user.id) is True
    assert await repo.get_user(user.id) is None
    assert (await session.execute(select(WorkflowModel))).scalars().all() == []
    assert await repo.delete_user(user.id) is False


# ── Workflows ───────────────────────────────────────────────────────────────

async def test_workflow_crud_scoped_to_owner(repo):
    alice = await _user(repo, "alice")
    bob = await _user(repo, "bob")
    wf = await repo.create_workflow(alice.id, _workflow_data(ignored_field=1))

    assert wf.flow_path == ["price-monitor", "discord"]
    assert wf.execution_count == 0
    assert await repo.get_workflow(wf.id, alice.id) is not None
    assert await repo.get_workflow(wf.id, bob.id) is None
    assert await repo.get_workflow(wf.id) is not None
    assert await repo.count_workflows(alice.id) == 1
    assert [w.id for w in await repo.list_workflows(alice.id)] == [wf.id]

    assert await repo.update_workflow(wf.id, bob.id, {"name": "stolen"}) is None
    updated = await repo.update_workflow(wf.id, alice.id, {"name": "Renamed", "publish": False})
    assert updated.name == "Renamed"
    assert updated.publish is False

    assert await repo.delete_workflow(wf.id, bob.id) is False
    assert await repo.delete_workflow(wf.id, alice.id) is True
    assert await repo.count_workflows(alice.id) == 0


async def test_list_workflows_by_trigger(repo):
    alice = await _user(repo, "alice")
    bob = await _user(repo, "bob")
    await repo.create_workflow(alice.id, _workflow_data(trigger_type="schedule"))
    await repo.create_workflow(bob.id, _workflow_data(trigger_type="schedule"))
    await repo.create_workflow(alice.id, _workflow_data(trigger_type="manual"))

    assert len(await repo.list_workflows_by_trigger("schedule")) == 2
    assert len(await repo.list_workflows_by_trigger("schedule", alice.id)) == 1
    assert await repo.list_workflows_by_trigger("webhook") == []


async def test_record_workflow_execution(repo):
    user = await _user(repo)
    wf = await repo.create_workflow(user.id, _workflow_data())
    await repo.record_workflow_execution(wf.id)
    await repo.record_workflow_execution(wf.id)
    refreshed = await repo.get_workflow(wf.id)
    await repo.session.refresh(refreshed)
    assert refreshed.execution_count == 2
    assert refreshed.last_executed is not None


async def test_replace_decision_rules_stores_percent(repo):
    user = await _user(repo)
    wf = await repo.create_workflow(user.id, _workflow_data())
    await repo.replace_decision_rules(wf.id, [
        {"block_id": "fraction", "condition": "a", "confidence_threshold": 0.8, "true_flow_path": ["discord"]},
        {"block_id": "percent", "condition": "b", "confidence_threshold": 75},
    ])
    rules = {r.rule_name: r for r in await repo.list_decision_rules(wf.id)}
    assert rules["fraction"].confidence_threshold == 80
    assert rules["fraction"].true_flow_path == ["discord"]
    assert rules["percent"].confidence_threshold == 75

    await repo.replace_decision_rules(wf.id, [{"block_id": "only", "condition": "c"}])
    assert [r.rule_name for r in await repo.list_decision_rules(wf.id)] == ["only"]


# ── Events, logs, activity ──────────────────────────────────────────────────

async def test_counts_only_include_owned_and_successful(repo):
    alice = await _user(repo, "alice")
    bob = await _user(repo, "bob")
    wf_a = await repo.create_workflow(alice.id, _workflow_data())
    wf_b = await repo.create_workflow(bob.id, _workflow_data())

    await repo.add_blockchain_event(wf_a.id, "getTokenPrice", "ethereum", {})
    await repo.add_blockchain_event(wf_a.id, "getTokenPrice", "ethereum", {}, processed=False)
    await repo.add_blockchain_event(wf_b.id, "getTokenPrice", "ethereum", {})
    await repo.add_ai_log("block", "gpt-4", True, user_id=alice.id)
    await repo.add_ai_log("block", "gpt-4", False, user_id=alice.id, error_message="boom")
    await repo.add_ai_log("block", "gpt-4", True, user_id=bob.id)

    assert await repo.count_blockchain_events(alice.id) == 1
    assert await repo.count_ai_executions(alice.id) == 1


async def test_list_ai_logs_newest_first(repo):
    user = await _user(repo)
    wf = await repo.create_workflow(user.id, _workflow_data())
    now = datetime(2026, 1, 1, 12, 0, 0)
    await repo.add_ai_log("old", "gpt-4", True, user_id=user.id, executed_at=now - timedelta(hours=1))
    await repo.add_ai_log("new", "gpt-4", True, user_id=user.id, workflow_id=wf.id, executed_at=now)

    assert [log.block_id for log in await repo.list_ai_logs(user.id)] == ["new", "old"]
    assert [log.block_id for log in await repo.list_ai_logs(user.id, workflow_id=wf.id)] == ["new"]
    assert len(await repo.list_ai_logs(user.id, limit=1)) == 1


async def test_last_activity(repo):
    user = await _user(repo)
    assert await repo.last_activity(user.id) is None

    wf = await repo.create_workflow(user.id, _workflow_data())
    ai_time = datetime(2026, 1, 1, 10, 0, 0)
    event_time = datetime(2026, 1, 1, 11, 0, 0)
    await repo.add_ai_log("block", "gpt-4", True, user_id=user.id, executed_at=ai_time)
    await repo.add_blockchain_event(wf.id, "getTokenPrice", "ethereum", {}, created_at=event_time)
    assert await repo.last_activity(user.id) == event_time


# ── SessionRepository ───────────────────────────────────────────────────────

async def test_session_repository_opens_session_per_call(repo, session_factory):
    user = await _user(repo, credits=3)
    wf = await repo.create_workflow(user.id, _workflow_data(trigger_type="webhook"))
    proxy = SessionRepository(session_factory)

    assert (await proxy.get_user(user.id)).external_id == "alice"
    assert (await proxy.get_workflow(wf.id)).name == "Price alert"
    assert [w.id for w in await proxy.list_workflows_by_trigger("webhook")] == [wf.id]
    assert await proxy.deduct_credit(user.id) == 2
    await proxy.add_blockchain_event(wf.id, "getTokenPrice", "ethereum", {"price": 1})
    await proxy.add_ai_log("block", "gpt-4", True, user_id=user.id)

    assert await repo.count_blockchain_events(user.id) == 1
    assert await repo.count_ai_executions(user.id) == 1


# ── Seed ────────────────────────────────────────────────────────────────────

async def test_seed_database_idempotent(session, repo):
    first = await seed_database(session, external_id="demo")
    second = await seed_database(session, external_id="demo")
    assert first.id == second.id
    assert first.credits == 100
    assert first.nodit_api_key is None

    workflows = await repo.list_workflows(first.id)
    assert [w.name for w in workflows] == [DEMO_WORKFLOW["name"]]
    assert workflows[0].publish is False


async def test_decision_rule_model_defaults(session, repo):
    user = await _user(repo)
    wf = await repo.create_workflow(user.id, _workflow_data())
    session.add(AIDecisionRuleModel(workflow_id=wf.id, rule_name="r", condition="c", ai_model="gpt-4"))
    await session.commit()
    rule = (await repo.list_decision_rules(wf.id))[0]
    assert rule.confidence_threshold == 80
