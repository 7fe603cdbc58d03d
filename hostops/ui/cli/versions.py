"""
CLI commands for multi-version products (PHP, Node, Python, databases).
"""

from __future__ import annotations

import json

import click

from hostops.core.errors import HostOpsError
from hostops.ui.cli.context import fail, require_capability


def _versioned(ctx: click.Context, service: str):
    from hostops.core.services.facades.base import Versioned

    return require_capability(ctx, service, Versioned, "version management")


@click.group()
def versions() -> None:
    """Versions — list installed or available, switch the active one."""


@versions.command("list")
@click.argument("service")
@click.option("--available", is_flag=True, help="List versions offered by the catalog.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_versions(ctx: click.Context, service: str, available: bool, as_json: bool) -> None:
    """List versions of SERVICE."""
    try:
        facade = _versioned(ctx, service)
        if available:
            found = facade.list_available_versions()
            active = None
        else:
            found = facade.list_installed_versions()
            active = facade.get_active_version()
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps({"versions": found, "active": active}, indent=2))
        return

    if not found:
        click.secho("No versions found.", fg="yellow")
        return
    for version in found:
        # "8.3" is active when the binary reports "8.3.1"
        is_active = bool(active) and (version == active or active.startswith(f"{version}."))
        marker = " ← active" if is_active else ""
        click.echo(f"   {version}{marker}")


@versions.command()
@click.argument("service")
@click.argument("version")
@click.pass_context
def switch(ctx: click.Context, service: str, version: str) -> None:
    """Make VERSION the active version of SERVICE."""
    try:
        _versioned(ctx, service).switch_version(version)
    except HostOpsError as e:
        fail(str(e))
    click.secho(f"✅ {service} switched to {version}", fg="green")
