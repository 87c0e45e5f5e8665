"""blockflow dev — Start local development server."""

import typer
from rich.console import Console

from blockflow.config import config

console = Console()


def dev_server(
    host: str = typer.Option(config.host, help="Host to bind to"),
    port: int = typer.Option(config.port, help="Port to listen on"),
    reload: bool = typer.Option(True, help="Restart on code changes"),
):
    """Start the BlockFlow API server in development mode with hot reload."""
    import uvicorn
    console.print(f"[green]Starting BlockFlow dev server on {host}:{port}[/green]")
    uvicorn.run("blockflow.api.main:app", host=host, port=port, reload=reload)
