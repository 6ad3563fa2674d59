"""CLI commands for ownerstore."""

import sys
import time
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from ownerstore import __logo__, __version__

app = typer.Typer(
    name="ownerstore",
    help=f"{__logo__} ownerstore - single-owner secret store",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

IDENTITY_ENV = "OWNERSTORE_IDENTITY"


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} ownerstore v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """ownerstore - single-owner secret store."""
    ctx.obj = {"config_path": config_path, "verbose": verbose}


def _load(ctx: typer.Context):
    from ownerstore.config.loader import load_config
    from ownerstore.errors import OwnerStoreError
    from ownerstore.store import OwnerGuardedStore

    obj = ctx.obj or {}
    config = load_config(obj.get("config_path"))
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if obj.get("verbose") else config.logging.level)
    try:
        store = OwnerGuardedStore.from_config(config)
    except OwnerStoreError as exc:
        _fail(f"Error: {exc}")
    return config, store


def _resolve_identity(identity: str | None) -> str:
    from ownerstore.identity.binder import normalize_identity

    resolved = normalize_identity(identity)
    if resolved:
        return resolved
    return normalize_identity(typer.prompt("Caller identity", hide_input=True))


def _fail(message: str) -> None:
    err_console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


_identity_option = typer.Option(
    None, "--identity", "-i", envvar=IDENTITY_ENV, help="Caller identity (prompted if omitted)"
)


@app.command()
def init(ctx: typer.Context, identity: str = _identity_option):
    """Bind the owner. Only the first call succeeds."""
    from ownerstore.errors import AlreadyInitialized

    _config, store = _load(ctx)
    try:
        store.initialize(_resolve_identity(identity))
    except AlreadyInitialized as exc:
        _fail(f"Error: {exc}")
    except ValueError as exc:
        _fail(f"Error: {exc}")
    console.print("[green]✓[/green] Owner bound")


@app.command("set")
def set_secret(
    ctx: typer.Context,
    value: str = typer.Option(None, "--value", help="Secret value (read from stdin if omitted)"),
    identity: str = _identity_option,
):
    """Set the secret as the owner."""
    from ownerstore.errors import OwnerStoreError

    _config, store = _load(ctx)
    caller = _resolve_identity(identity)
    payload = value.encode("utf-8") if value is not None else sys.stdin.buffer.read()
    try:
        result = store.set_secret(payload, caller)
    except OwnerStoreError as exc:
        _fail(f"Error: {exc}")
    for warning in result.warnings:
        err_console.print(f"[yellow]Warning: {warning.message}[/yellow]")
    seq = f" (event #{result.seq})" if result.seq is not None else ""
    console.print(f"[green]✓[/green] Secret set{seq}")


@app.command("get")
def get_secret(ctx: typer.Context, identity: str = _identity_option):
    """Print the secret as the owner."""
    from ownerstore.errors import OwnerStoreError

    _config, store = _load(ctx)
    try:
        value = store.get_secret(_resolve_identity(identity))
    except OwnerStoreError as exc:
        _fail(f"Error: {exc}")
    typer.echo(value, nl=False)


@app.command()
def events(
    ctx: typer.Context,
    since: int = typer.Option(0, "--since", help="Only events after this sequence number"),
):
    """List change events."""
    _config, store = _load(ctx)
    rows = store.events(since)
    if not rows:
        console.print("No change events.")
        return

    table = Table(title="Change Events")
    table.add_column("Seq", style="cyan")
    table.add_column("Event")
    table.add_column("First Write")
    table.add_column("Time")
    for row in rows:
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(row.ts))
        table.add_row(str(row.seq), row.event, "yes" if row.first_write else "no", when)
    console.print(table)


@app.command()
def status(ctx: typer.Context):
    """Show whether an owner is bound."""
    _config, store = _load(ctx)
    if store.initialized:
        console.print("[green]initialized[/green]")
    else:
        console.print("[dim]uninitialized[/dim]")


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option(None, "--host", help="Bind host (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default from config)"),
):
    """Serve the HTTP API."""
    import uvicorn

    from ownerstore.api.routes import create_app

    config, store = _load(ctx)
    bind_host = host or config.api.host
    bind_port = port or config.api.port
    console.print(f"{__logo__} Serving ownerstore on {bind_host}:{bind_port}...")
    uvicorn.run(
        create_app(store, mask_not_set=config.api.mask_not_set),
        host=bind_host,
        port=bind_port,
        log_level="info",
    )


if __name__ == "__main__":
    app()
