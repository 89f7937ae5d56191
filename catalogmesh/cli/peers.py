"""Peer Management CLI.

Commands over the known peer directories.
"""

from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from catalogmesh.cli.common import console, fail, get_services
from catalogmesh.core.exceptions import CatalogMeshError

app = typer.Typer(help="Manage known peer directories.")


@app.command("list")
def list_peers(
    default_only: bool = typer.Option(
        False, "--default-only", help="Only peers used for federated search"
    ),
) -> None:
    """List all known peers."""
    services = get_services()
    try:
        filters = {"is_default": True} if default_only else None
        peers = services.store.find_all(filters)
    except CatalogMeshError as e:
        fail(e)

    table = Table(title="Known Peers")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Directory URL")
    table.add_column("Status", style="yellow")
    table.add_column("Available")
    table.add_column("Last Sync", style="dim")

    for peer in peers:
        table.add_row(
            peer.id or "",
            peer.title,
            peer.directory_url,
            str(peer.status_code),
            "yes" if peer.available else "no",
            "yes" if peer.is_default else "no",
            peer.last_sync.isoformat() if peer.last_sync else "-",
        )

    console.print(table)


@app.command("add")
def add_peer(
    directory_url: str = typer.Argument(..., help="Peer directory URL"),
    no_sync: bool = typer.Option(
        False, "--no-sync", help="Only record the peer, do not contact it"
    ),
) -> None:
    """Add a peer by directory URL and sync it."""
    services = get_services()
    try:
        if no_sync:
            result = services.directory.register({"directoryUrl": directory_url})
            state = "added" if result.created else "already known"
            console.print(f"[green]Peer {state}:[/green] {result.record.directory_url}")
            return
        report = asyncio.run(services.sync.sync_directory(directory_url))
    except CatalogMeshError as e:
        fail(e)

    console.print(
        f"[green]Synced[/green] {directory_url}: "
        f"{report.added} added, {report.failed} failed, {report.registered} announced"
    )


@app.command("default")
def set_default(
    peer_id: str = typer.Argument(..., help="Peer ID"),
    enabled: bool = typer.Option(
        True, "--on/--off", help="Include the peer in federated search or not"
    ),
) -> None:
    """Opt a peer in or out of federated publication search."""
    services = get_services()
    try:
        record = services.store.set_default(peer_id, enabled)
    except CatalogMeshError as e:
        fail(e)

    if record is None:
        console.print(f"[yellow]No peer with id {peer_id}.[/yellow]")
        raise typer.Exit(1)
    state = "included in" if enabled else "excluded from"
    console.print(f"[green]{record.directory_url}[/green] {state} federated search")


@app.command("remove")
def remove_peer(peer_id: str = typer.Argument(..., help="Peer ID")) -> None:
    """Delete a peer record."""
    services = get_services()
    try:
        removed = services.store.delete(peer_id)
    except CatalogMeshError as e:
        fail(e)

    if removed:
        console.print(f"[bold green]Peer {peer_id} removed.[/bold green]")
    else:
        console.print(f"[yellow]No peer with id {peer_id}.[/yellow]")
        raise typer.Exit(1)
