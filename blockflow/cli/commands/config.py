"""blockflow config — Show resolved BlockFlow configuration."""

from rich.console import Console
from rich.table import Table
from rich import box

console = Console()


def config_show():
    """Show the resolved BlockFlow configuration.

    Reads from environment variables and .env file. The database URL
    password is masked.

    Example:
        blockflow config
    """
    from sqlalchemy.engine import make_url
    from blockflow.config import BlockflowConfig
    cfg = BlockflowConfig()

    table = Table(
        box=box.ROUNDED,
        header_style="bold dim",
        show_lines=False,
        title="[bold]BlockFlow Configuration[/bold]",
    )
    table.add_column("Key", style="cyan", width=30)
    table.add_column("Value", width=55)
    table.add_column("Env Var", style="dim", width=38)

    sections = [
        ("App", ["debug", "log_level"]),
        ("Database", ["database_url"]),
        ("Nodit", ["nodit_base_url", "nodit_timeout_seconds"]),
        ("LLM", ["default_llm_model", "llm_max_tokens", "llm_temperature", "llm_timeout_seconds"]),
        ("Execution", ["continuation_delay_seconds", "max_branch_depth"]),
        ("Server", ["host", "port", "cors_origins", "user_header", "seed_demo_user", "demo_external_id"]),
    ]

    first = True
    for section_name, fields in sections:
        if not first:
            table.add_row("", "", "")
        first = False
        table.add_row(f"[bold dim]── {section_name} ──[/bold dim]", "", "")
        for attr in fields:
            val = getattr(cfg, attr, None)
            if val is None:
                display = "[dim](not set)[/dim]"
            elif attr == "database_url":
                display = make_url(val).render_as_string(hide_password=True)
            else:
                display = str(val)
            table.add_row(f"  {attr}", display, f"BLOCKFLOW_{attr.upper()}")

    console.print()
    console.print(table)
    console.print()
    console.print("[dim]Source: environment variables + .env file (prefix: BLOCKFLOW_)[/dim]")
