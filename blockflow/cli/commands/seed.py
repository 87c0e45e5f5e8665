"""blockflow setup-db / seed — Create tables and demo data."""

import asyncio

import typer
from rich.console import Console

console = Console()


async def _setup() -> None:
    from blockflow.db.database import init_db
    with console.status("[dim]Creating tables...[/dim]"):
        await init_db()


async def _seed(external_id: str) -> None:
    from blockflow.db.database import async_session, init_db
    from blockflow.db.repository import Repository
    from blockflow.db.seed import seed_database

    with console.status("[dim]Connecting to database...[/dim]"):
        await init_db()

    async with async_session() as session:
        with console.status("[dim]Seeding...[/dim]"):
            user = await seed_database(session, external_id=external_id)
        workflows = await Repository(session).list_workflows(user.id)

    console.print()
    console.print("[bold green]Database seeded successfully![/bold green]")
    console.print()
    console.print(f"[bold]User:[/bold]      {user.name} [dim](id: {user.id})[/dim]")
    console.print(f"[bold]X-User-Id:[/bold] [cyan]{user.external_id}[/cyan]")
    console.print(f"[bold]Credits:[/bold]   {user.credits} ({user.tier})")
    for wf in workflows:
        console.print(f"[bold]Workflow:[/bold]  {wf.name} [dim]({' → '.join(wf.flow_path or [])})[/dim]")
    console.print()
    console.print("[dim]Configure keys with POST /api/user/configure before executing.[/dim]")


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except Exception as exc:
        console.print(f"[red]Error:[/red] {exc}")
        console.print("[dim]Is the database running? Check BLOCKFLOW_DATABASE_URL.[/dim]")
        raise typer.Exit(1)


def setup_db():
    """Create every BlockFlow table. Safe to run repeatedly."""
    _run(_setup())
    console.print("[bold green]Database ready.[/bold green]")


def seed_db(
    external_id: str = typer.Option("demo-user", "--user", help="X-User-Id of the demo user"),
):
    """Seed the database with a demo user and a sample price-alert workflow.

    The demo user has no API keys; configure them through the API.
    """
    _run(_seed(external_id))
