"""blockflow trigger — Fire a trigger event from the command line (cron, webhooks, ops)."""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich import box

console = Console()

STATUS_COLOR = {"executed": "green", "skipped": "yellow", "failed": "red"}


async def _drain(continuations, timeout: float) -> None:
    """Keep the loop alive until parked ``wait`` remainders have run."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(continuations) and loop.time() < deadline:
        await asyncio.sleep(0.1)
    await continuations.shutdown()


async def _fire(trigger_type: str, data: dict, network: Optional[str], wait: bool) -> list[dict]:
    from blockflow.db.database import async_session, init_db
    from blockflow.db.repository import SessionRepository
    from blockflow.engine.continuation import ContinuationScheduler
    from blockflow.engine.triggers import TriggerDispatcher

    await init_db()
    repository = SessionRepository(async_session)
    continuations = ContinuationScheduler(repository)
    summaries = await TriggerDispatcher(repository, continuations).dispatch(trigger_type, data, network)
    if wait:
        await _drain(continuations, timeout=continuations.delay_seconds * 10 + 5)
    else:
        await continuations.shutdown()
    return summaries


def fire_trigger(
    trigger_type: str = typer.Argument(..., help="webhook | schedule | blockchain_event | manual"),
    data: str = typer.Option("{}", "--data", "-d", help="Trigger payload as JSON"),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Network the event happened on"),
    wait: bool = typer.Option(True, help="Run pending wait-block continuations before exiting"),
):
    """Run every active, published workflow listening on TRIGGER_TYPE.

    Example:
        blockflow trigger schedule
        blockflow trigger blockchain_event -n ethereum -d '{"txHash": "0x..."}'
    """
    from blockflow.types import TriggerType

    try:
        TriggerType(trigger_type)
    except ValueError:
        console.print(f"[red]Unknown trigger type:[/red] {trigger_type}")
        raise typer.Exit(2)
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --data JSON:[/red] {exc}")
        raise typer.Exit(2)

    summaries = asyncio.run(_fire(trigger_type, payload, network, wait))
    if not summaries:
        console.print(f"[yellow]No workflows listen on {trigger_type}.[/yellow]")
        return

    table = Table(box=box.ROUNDED, header_style="bold dim", title=f"[bold]{trigger_type}[/bold]")
    table.add_column("Workflow", style="cyan", width=38)
    table.add_column("Status", width=10)
    table.add_column("Detail", width=40)
    for s in summaries:
        color = STATUS_COLOR.get(s["status"], "white")
        detail = s.get("reason") or s.get("error") or f"{s.get('duration_ms', 0)}ms"
        table.add_row(s["workflow_id"], f"[{color}]{s['status']}[/{color}]", f"[dim]{detail}[/dim]")
    console.print(table)
    if any(s["status"] == "failed" for s in summaries):
        raise typer.Exit(1)
