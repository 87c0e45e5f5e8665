"""BlockFlow CLI — Typer application."""

import logging

import typer
from rich.console import Console

from blockflow.config import config
from blockflow.version import __version__

app = typer.Typer(
    name="blockflow",
    help="BlockFlow — visual workflow automation for blockchain data and AI agents.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level"),
):
    """BlockFlow CLI."""
    if version:
        console.print(f"BlockFlow v{__version__}")
        raise typer.Exit()
    logging.basicConfig(
        level="DEBUG" if verbose else config.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ── Server & database ──────────────────────────────────────────────────────────
from blockflow.cli.commands import dev, seed  # noqa: E402

app.command(name="dev")(dev.dev_server)
app.command(name="setup-db", help="Create all database tables")(seed.setup_db)
app.command(name="seed", help="Create the demo user and workflow")(seed.seed_db)

# ── Inspection & operations ────────────────────────────────────────────────────
from blockflow.cli.commands import blocks, config as config_cmd, trigger  # noqa: E402

app.command(name="config", help="Show resolved configuration")(config_cmd.config_show)
app.command(name="blocks", help="List catalog blocks")(blocks.blocks_list)
app.command(name="trigger", help="Fire a trigger event at every listening workflow")(trigger.fire_trigger)


if __name__ == "__main__":
    app()
