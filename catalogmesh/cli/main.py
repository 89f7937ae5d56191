"""catalogmesh command-line interface.

    catalogmesh sync                 # one directory sync cycle
    catalogmesh broadcast            # announce to every peer
    catalogmesh publications         # federated publication search
    catalogmesh peers list|add|remove
    catalogmesh serve                # HTTP API
    catalogmesh schedule             # periodic sync + broadcast
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from catalogmesh import __version__
from catalogmesh.cli import peers
from catalogmesh.cli.common import CLIState, console, fail, get_config, get_services
from catalogmesh.core.exceptions import CatalogMeshError
from catalogmesh.core.logging import configure_logging
from catalogmesh.core.models.reports import PeerOutcome

app = typer.Typer(
    name="catalogmesh",
    help="Federated catalog directory: discover peers, announce, aggregate.",
    no_args_is_help=True,
)
app.add_typer(peers.app, name="peers")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"catalogmesh {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True
    ),
) -> None:
    CLIState.config_path = config
    configure_logging(level="DEBUG" if verbose else "INFO")


def _outcome_table(title: str, outcomes: List[PeerOutcome]) -> Table:
    table = Table(title=title)
    table.add_column("Peer", style="cyan")
    table.add_column("Result")
    table.add_column("Status", style="yellow")
    table.add_column("Added", justify="right")
    table.add_column("Detail", style="dim")
    for outcome in outcomes:
        table.add_row(
            outcome.url,
            "[green]ok[/green]" if outcome.success else "[red]failed[/red]",
            str(outcome.status_code),
            str(outcome.added),
            outcome.message or outcome.error_type or "",
        )
    return table


@app.command()
def sync(
    url: Optional[str] = typer.Option(
        None, "--url", help="Sync only this directory URL (added if unknown)"
    ),
) -> None:
    """Run one directory sync cycle."""
    services = get_services()
    try:
        if url:
            report = asyncio.run(services.sync.sync_directory(url))
        else:
            report = asyncio.run(services.sync.run())
    except CatalogMeshError as e:
        fail(e)

    if report.skipped:
        console.print("[yellow]A sync is already running.[/yellow]")
        return
    console.print(_outcome_table("Directory Sync", report.outcomes))
    console.print(
        f"contacted={report.contacted} failed={report.failed} added={report.added} "
        f"rejected={report.rejected} announced={report.registered} "
        f"announce_failures={report.registration_failures}"
    )


@app.command()
def broadcast(
    target: Optional[str] = typer.Option(
        None, "--target", help="Announce only to this directory URL"
    ),
) -> None:
    """Announce this instance to peer directories."""
    services = get_services()
    try:
        report = asyncio.run(services.broadcast.broadcast(target))
    except CatalogMeshError as e:
        fail(e)

    console.print(_outcome_table("Broadcast", report.outcomes))
    console.print(f"succeeded={report.succeeded} failed={report.failed}")


@app.command()
def publications(
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-peer timeout"),
) -> None:
    """Aggregate publications from every default peer."""
    services = get_services()
    client_config = {"timeout": timeout} if timeout else None
    try:
        result = asyncio.run(services.aggregation.get_publications(client_config))
    except CatalogMeshError as e:
        fail(e)

    if as_json:
        console.print_json(json.dumps(result.model_dump(mode="json")))
        return

    table = Table(title=f"Federated Publications ({result.total})")
    table.add_column("Title", style="green")
    table.add_column("Source", style="cyan")
    for item in result.results:
        source = item.get("_source", {})
        table.add_row(
            str(item.get("title", item.get("id", ""))),
            source.get("listing_title") or source.get("endpoint", ""),
        )
    console.print(table)

    stats = result.statistics
    console.print(
        f"endpoints={stats.total_endpoints} ok={stats.successful_calls} "
        f"failed={stats.failed_calls}"
    )
    for error in result.errors:
        console.print(f"[red]{error.endpoint}[/red]: {error.error_type} {error.message}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    with_scheduler: bool = typer.Option(
        False, "--with-scheduler", help="Run sync/broadcast jobs in the server"
    ),
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from catalogmesh.api.main import create_app

    config = get_config()
    if with_scheduler:
        config.api.run_scheduler = True
    try:
        app_instance = create_app(config)
    except CatalogMeshError as e:
        fail(e)
    uvicorn.run(
        app_instance,
        host=host or config.api.host,
        port=port or config.api.port,
    )


@app.command()
def schedule() -> None:
    """Run sync hourly and broadcast every four hours until interrupted."""
    services = get_services()
    config = services.config
    console.print(
        f"\n[bold cyan]Starting federation scheduler[/bold cyan]\n"
        f"Sync: every {config.federation.sync_interval_seconds}s\n"
        f"Broadcast: every {config.federation.broadcast_interval_seconds}s\n"
        f"Press Ctrl+C to stop\n"
    )
    try:
        asyncio.run(services.build_scheduler().run_forever())
    except CatalogMeshError as e:
        fail(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped by user[/yellow]")


def cli_main() -> None:
    app()


if __name__ == "__main__":
    cli_main()
