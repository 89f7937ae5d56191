"""Shared CLI helpers: config loading, service wiring and error display."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from catalogmesh.core.config import Config, load_config
from catalogmesh.core.exceptions import CatalogMeshError
from catalogmesh.core.federation.services import FederationServices

console = Console()


class CLIState:
    """Options given to the top-level callback."""

    config_path: Optional[Path] = None


def get_config() -> Config:
    return load_config(CLIState.config_path)


def get_services() -> FederationServices:
    return FederationServices.from_config(get_config())


def fail(exc: CatalogMeshError) -> None:
    """Print a CatalogMeshError with its fix hints and exit 1."""
    code = escape(f"[{exc.error_code}]")
    console.print(f"[bold red]Error[/bold red] {code}: {escape(str(exc))}")
    for hint in exc.how_to_fix:
        console.print(f"  [dim]- {escape(hint)}[/dim]")
    raise typer.Exit(1)
