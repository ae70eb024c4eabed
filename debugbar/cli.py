"""Debugbar CLI - inspect stored snapshots.

Commands:
    list   - Stored requests, newest first
    show   - One stored snapshot (optionally a single panel)
    clear  - Remove every stored snapshot
    serve  - Serve the open handler with uvicorn
"""

import json
import sys
from typing import Optional, Sequence

import click

from . import __version__
from .config import ConfigLoader
from .faults import StorageFault
from .open_handler import OpenHandler
from .storage import StorageAdapter, create_storage


# ============================================================================
# Output helpers
# ============================================================================

def success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)


def table(headers: Sequence[str], rows: Sequence[Sequence[str]], *, indent: int = 2) -> None:
    """Print a minimal aligned table."""
    prefix = " " * indent
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))
    widths = [w + 2 for w in widths]

    click.echo(prefix + click.style("".join(h.ljust(widths[i]) for i, h in enumerate(headers)), fg="cyan", bold=True))
    click.echo(prefix + click.style("".join("─" * w for w in widths), dim=True))
    for row in rows:
        click.echo(prefix + "".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))


def _load_config(config_paths: Sequence[str], storage_path: Optional[str]) -> ConfigLoader:
    overrides = None
    if storage_path:
        overrides = {"storage": {"enabled": True, "path": storage_path}}
    return ConfigLoader.load(paths=list(config_paths) or None, overrides=overrides)


def _require_storage(ctx: click.Context) -> StorageAdapter:
    storage = ctx.obj["storage"]
    if storage is None:
        error("Snapshot storage is not enabled (set storage.enabled or pass --storage)")
        sys.exit(1)
    return storage


# ============================================================================
# Commands
# ============================================================================

@click.group()
@click.version_option(version=__version__, prog_name="debugbar")
@click.option("--config", "config_paths", multiple=True, help="Config file (JSON or YAML); repeatable")
@click.option("--storage", "storage_path", type=click.Path(), help="Snapshot storage path (enables storage)")
@click.pass_context
def cli(ctx, config_paths: tuple, storage_path: Optional[str]):
    """Inspect snapshots recorded by the debugbar."""
    ctx.ensure_object(dict)
    config = _load_config(config_paths, storage_path)
    ctx.obj["config"] = config
    ctx.obj["storage"] = create_storage(config)


@cli.command("list")
@click.option("--max", "max_results", type=int, default=20, show_default=True, help="Maximum rows")
@click.option("--offset", type=int, default=0, help="Rows to skip")
@click.option("--method", type=str, help="Only this HTTP method")
@click.option("--uri", type=str, help="Only this URI")
@click.option("--ip", type=str, help="Only this client IP")
@click.pass_context
def list_snapshots(ctx, max_results: int, offset: int, method: Optional[str], uri: Optional[str], ip: Optional[str]):
    """List stored requests, newest first."""
    storage = _require_storage(ctx)
    filters = {k: v for k, v in (("method", method), ("uri", uri), ("ip", ip)) if v}
    metas = storage.find(filters, max_results, offset)
    if not metas:
        click.echo("No snapshots stored.")
        return
    table(
        ["Id", "Date", "Method", "URI", "IP"],
        [[m.get("id", ""), m.get("datetime", ""), m.get("method", ""), m.get("uri") or "", m.get("ip") or ""] for m in metas],
    )


@cli.command("show")
@click.argument("request_id")
@click.option("--panel", type=str, help="Only this collector's payload")
@click.pass_context
def show(ctx, request_id: str, panel: Optional[str]):
    """Print a stored snapshot as JSON."""
    storage = _require_storage(ctx)
    try:
        data = storage.get(request_id)
    except StorageFault as e:
        error(str(e))
        sys.exit(1)

    if panel:
        if panel not in data:
            error(f"Snapshot {request_id} has no '{panel}' panel (available: {', '.join(data)})")
            sys.exit(1)
        data = data[panel]
    click.echo(json.dumps(data, indent=2, default=str))


@cli.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx, yes: bool):
    """Remove every stored snapshot."""
    storage = _require_storage(ctx)
    if not yes and not click.confirm("Remove all stored snapshots?"):
        click.echo("Aborted.")
        return
    storage.clear()
    success("Snapshot storage cleared.")


@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind host")
@click.option("--port", default=8010, type=int, show_default=True, help="Bind port")
@click.pass_context
def serve(ctx, host: str, port: int):
    """Serve stored snapshots and toolbar assets over HTTP."""
    import uvicorn

    storage = _require_storage(ctx)
    prefix = ctx.obj["config"].get("route_prefix", "_debugbar")
    app = OpenHandler(storage, route_prefix=prefix)
    click.echo(f"Serving snapshots on http://{host}:{port}/{prefix}/")
    uvicorn.run(app, host=host, port=port, log_level="info")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
