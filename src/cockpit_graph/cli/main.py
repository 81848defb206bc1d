"""Cockpit Graph CLI: synchronize Cockpit CMS content into a node graph."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from cockpit_graph import __version__
from cockpit_graph.errors import CockpitGraphError

console = Console()

STATE_DIR = ".cockpit-graph"

app = typer.Typer(
    name="cockpit-graph",
    help="Cockpit Graph — Cockpit CMS content synchronization engine.",
    no_args_is_help=True,
)

def _version_callback(value: bool) -> None:
    """Print the version and exit."""
    if value:
        console.print(f"Cockpit Graph v{__version__}")
        raise typer.Exit()

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )

def _fail(exc: Exception) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    return typer.Exit(code=1)

@app.callback()
def main(
    version: Optional[bool] = typer.Option(  # noqa: N803
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log every stage of a pass."),
) -> None:
    """Cockpit Graph — Cockpit CMS content synchronization engine."""
    _configure_logging(verbose)

@app.command()
def sync(
    config_path: Path = typer.Option(Path("cockpit.yaml"), "--config", "-c", help="YAML configuration file."),
    state_dir: Path = typer.Option(Path(STATE_DIR), "--state-dir", help="Directory holding the graph database."),
    fixture: Optional[Path] = typer.Option(None, "--from-dump", help="Replay a JSON dump instead of calling the API."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build the graph in memory without persisting it."),
) -> None:
    """Run a sync pass and persist the resulting content graph."""
    from cockpit_graph.client.cockpit import CockpitClient
    from cockpit_graph.client.static import StaticClient
    from cockpit_graph.config.settings import load_config
    from cockpit_graph.core.storage.kuzu_backend import KuzuStore
    from cockpit_graph.core.storage.memory import MemoryStore
    from cockpit_graph.core.sync.pipeline import SyncResult, run_sync

    try:
        config = load_config(config_path)
        config.validate()
        client = StaticClient.from_file(fixture) if fixture else CockpitClient.from_config(config)
    except CockpitGraphError as exc:
        raise _fail(exc) from exc

    state_dir = state_dir.resolve()
    if dry_run:
        store = MemoryStore(type_prefix=config.type_prefix)
    else:
        state_dir.mkdir(parents=True, exist_ok=True)
        store = KuzuStore(type_prefix=config.type_prefix)
        store.initialize(state_dir / "kuzu")

    console.print(f"[bold]Syncing[/bold] {config.host}")

    result: SyncResult | None = None
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Starting...", total=None)

            def on_progress(phase: str, pct: float) -> None:
                progress.update(task, description=f"{phase} ({pct:.0%})")

            _, result = run_sync(config, client, store, progress_callback=on_progress)
    except CockpitGraphError as exc:
        raise _fail(exc) from exc
    finally:
        store.close()
        if isinstance(client, CockpitClient):
            client.close()

    if not dry_run:
        meta = {
            "version": __version__,
            "host": config.host,
            "stats": {
                "types": result.types,
                "entries": result.entries,
                "cached_entries": result.cached_entries,
                "nodes": result.nodes,
                "assets": result.assets,
                "reverse_links": result.reverse_links,
                "pruned": result.pruned,
            },
            "last_synced_at": datetime.now(tz=timezone.utc).isoformat(),
        }
        meta_path = state_dir / "meta.json"
        meta_path.write_text(json.dumps(meta, indent=2) + "\n", encoding="utf-8")

    console.print()
    console.print("[bold green]Sync complete.[/bold green]")
    console.print(f"  Types:          {result.types}")
    console.print(f"  Entries:        {result.entries}")
    if result.cached_entries > 0:
        console.print(f"  Cached:         {result.cached_entries}")
    console.print(f"  Nodes:          {result.nodes}")
    if result.assets > 0:
        console.print(f"  Assets:         {result.assets}")
    if result.reverse_links > 0:
        console.print(f"  Reverse links:  {result.reverse_links}")
    if result.pruned > 0:
        console.print(f"  Pruned:         {result.pruned}")
    console.print(f"  Duration:       {result.duration_seconds:.2f}s")

@app.command()
def status(
    state_dir: Path = typer.Option(Path(STATE_DIR), "--state-dir", help="Directory holding the graph database."),
) -> None:
    """Show the outcome of the last sync pass."""
    meta_path = state_dir.resolve() / "meta.json"

    if not meta_path.exists():
        console.print(
            f"[red]Error:[/red] No graph found at {state_dir}. Run 'cockpit-graph sync' first."
        )
        raise typer.Exit(code=1)

    meta = json.loads(meta_path.read_text(encoding="utf-8"))
    stats = meta.get("stats", {})

    console.print(f"[bold]Graph status for[/bold] {meta.get('host', '?')}")
    console.print(f"  Version:        {meta.get('version', '?')}")
    console.print(f"  Last synced:    {meta.get('last_synced_at', '?')}")
    console.print(f"  Types:          {stats.get('types', '?')}")
    console.print(f"  Entries:        {stats.get('entries', '?')}")
    console.print(f"  Nodes:          {stats.get('nodes', '?')}")

    if stats.get("assets", 0) > 0:
        console.print(f"  Assets:         {stats['assets']}")
    if stats.get("cached_entries", 0) > 0:
        console.print(f"  Cached:         {stats['cached_entries']}")

    db_path = state_dir.resolve() / "kuzu"
    if db_path.exists():
        from cockpit_graph.core.storage.kuzu_backend import KuzuStore

        store = KuzuStore()
        store.initialize(db_path, read_only=True)
        try:
            counts = store.type_counts()
        finally:
            store.close()
        if counts:
            console.print("  Node types:")
            for type_name, count in counts.items():
                console.print(f"    {type_name:<28} {count}")

@app.command()
def show(
    node_id: str = typer.Argument(..., help="Id of the node to print."),
    state_dir: Path = typer.Option(Path(STATE_DIR), "--state-dir", help="Directory holding the graph database."),
) -> None:
    """Print a stored node record as JSON."""
    from cockpit_graph.core.storage.kuzu_backend import KuzuStore

    db_path = state_dir.resolve() / "kuzu"
    if not db_path.exists():
        console.print(
            f"[red]Error:[/red] No graph found at {state_dir}. Run 'cockpit-graph sync' first."
        )
        raise typer.Exit(code=1)

    store = KuzuStore()
    store.initialize(db_path, read_only=True)
    try:
        record = store.get_record(node_id)
    finally:
        store.close()

    if record is None:
        console.print(f"[red]Error:[/red] Node {node_id!r} not found.")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(record))

@app.command()
def dump(
    output: Path = typer.Argument(..., help="File to write the JSON dump to."),
    config_path: Path = typer.Option(Path("cockpit.yaml"), "--config", "-c", help="YAML configuration file."),
) -> None:
    """Fetch all remote content into a JSON dump usable with 'sync --from-dump'."""
    from cockpit_graph.client.cockpit import CockpitClient
    from cockpit_graph.client.static import dump_content
    from cockpit_graph.config.settings import load_config

    try:
        config = load_config(config_path)
        config.validate()
        with CockpitClient.from_config(config) as client:
            data = dump_content(client, config.host, config.upload_path)
    except CockpitGraphError as exc:
        raise _fail(exc) from exc

    output.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    console.print(f"[green]Wrote[/green] {output}")

@app.command()
def clean(
    state_dir: Path = typer.Option(Path(STATE_DIR), "--state-dir", help="Directory holding the graph database."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt."),
) -> None:
    """Delete the persisted graph and cache."""
    target = state_dir.resolve()

    if not target.exists():
        console.print(f"[red]Error:[/red] No graph found at {target}. Nothing to clean.")
        raise typer.Exit(code=1)

    if not force:
        confirm = typer.confirm(f"Delete graph at {target}?")
        if not confirm:
            console.print("Aborted.")
            raise typer.Exit()

    shutil.rmtree(target)
    console.print(f"[green]Deleted[/green] {target}")
