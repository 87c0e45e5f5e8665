"""CLI tests. No database: commands that need one are patched or fail fast."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from blockflow.cli.commands.trigger import _drain
from blockflow.cli.main import app
from blockflow.engine.continuation import ContinuationScheduler
from blockflow.types import WorkflowExecutionContext
from blockflow.version import __version__

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_blocks_no_match():
    result = runner.invoke(app, ["blocks", "--type", "teleport"])
    assert result.exit_code == 0
    assert "No blocks match." in result.output


def test_blocks_table():
    result = runner.invoke(app, ["blocks", "--network", "base"])
    assert result.exit_code == 0
    assert "Blocks" in result.output


def test_config_masks_password():
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "BlockFlow Configuration" in result.output
    assert ":blockflow@" not in result.output


def test_trigger_rejects_unknown_type():
    result = runner.invoke(app, ["trigger", "earthquake"])
    assert result.exit_code == 2


def test_trigger_rejects_bad_json():
    result = runner.invoke(app, ["trigger", "webhook", "--data", "{not json"])
    assert result.exit_code == 2


def test_trigger_exits_nonzero_on_failure():
    summaries = [
        {"workflow_id": "wf-1", "status": "executed", "duration_ms": 4},
        {"workflow_id": "wf-2", "status": "failed", "error": "boom"},
    ]
    with patch("blockflow.cli.commands.trigger._fire", new=AsyncMock(return_value=summaries)) as fire:
        result = runner.invoke(app, ["trigger", "webhook", "-d", '{"x": 1}', "--no-wait"])
    assert result.exit_code == 1
    fire.assert_awaited_once_with("webhook", {"x": 1}, None, False)


def test_trigger_nothing_listening():
    with patch("blockflow.cli.commands.trigger._fire", new=AsyncMock(return_value=[])):
        result = runner.invoke(app, ["trigger", "schedule"])
    assert result.exit_code == 0
    assert "No workflows listen on schedule." in result.output


async def test_drain_waits_for_a_slow_remainder(fake_repo):
    fake_repo.add_workflow()
    scheduler = ContinuationScheduler(fake_repo, delay_seconds=0.01)
    finished = []
    slow = MagicMock()

    async def resume(workflow, remaining_path, context):
        await asyncio.sleep(0.3)
        finished.extend(remaining_path)
        return False

    slow.resume = AsyncMock(side_effect=resume)
    scheduler.schedule("wf-1", ["discord"], WorkflowExecutionContext(), slow)

    await _drain(scheduler, timeout=5)
    assert finished == ["discord"]
