"""blockflow blocks — List the block catalog."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich import box

console = Console()


def blocks_list(
    block_type: Optional[str] = typer.Option(None, "--type", "-t", help="Only blocks of this type"),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Only Nodit blocks on this network"),
):
    """List catalog blocks with their type, category and networks.

    Example:
        blockflow blocks --type trigger
        blockflow blocks --network base
    """
    from blockflow.blocks import catalog

    blocks = [b for group in catalog.categories()["all"].values() for b in group]
    if block_type:
        wanted = {b.id for b in catalog.get_blocks_by_type(block_type)}
        blocks = [b for b in blocks if b["id"] in wanted]
    if network:
        wanted = {b.id for b in catalog.get_blocks_by_network(network)}
        blocks = [b for b in blocks if b["id"] in wanted]

    if not blocks:
        console.print("[yellow]No blocks match.[/yellow]")
        return

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        show_lines=False,
        title=f"[bold]{len(blocks)} Blocks[/bold]",
    )
    table.add_column("ID", style="cyan", width=24)
    table.add_column("Type", width=10)
    table.add_column("Category", width=10)
    table.add_column("Description", width=44)
    table.add_column("Networks", style="dim", width=30)

    for block in blocks:
        table.add_row(
            block["id"],
            block["type"],
            block["category"],
            f"[dim]{block['description']}[/dim]",
            ", ".join(block.get("networks") or []) or "-",
        )

    console.print()
    console.print(table)
    console.print()
