"""
hostops — CLI entrypoint.

Usage:
    hostops --help
    hostops --host web1 os
    hostops --host web1 status nginx mysql
    hostops --host web1 service nginx restart
    hostops --host web1 sites list
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from hostops import __version__
from hostops.core.errors import HostOpsError
from hostops.core.observability.logging_config import resolve_level, setup_logging
from hostops.ui.cli.context import fail, get_registry, require_capability

_ACTIONS = ("start", "stop", "restart", "reload", "enable", "disable")

_STATE_COLORS = {
    "running": "green",
    "installed": "green",
    "stopped": "yellow",
    "not_installed": "white",
    "error": "red",
    "unknown": "white",
}


@click.group()
@click.version_option(version=__version__, prog_name="hostops")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (logs every remote command).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to hostops.yml (default: auto-detect).",
)
@click.option("--host", "-H", default=None, help="Remote host (default: run locally).")
@click.option("--user", "-u", default=None, help="SSH user.")
@click.option("--port", "-p", type=int, default=None, help="SSH port.")
@click.option("--identity", "-i", type=click.Path(), default=None, help="SSH private key.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    host: str | None,
    user: str | None,
    port: int | None,
    identity: str | None,
) -> None:
    """hostops — detect, control and configure services on a Linux host."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["host"] = host
    ctx.obj["user"] = user
    ctx.obj["port"] = port
    ctx.obj["identity"] = identity

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(verbose=verbose, quiet=quiet, debug=debug),
        quiet_third_party=not debug,
    )


# ── Host ────────────────────────────────────────────────────────


@cli.command("os")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def os_info(ctx: click.Context, as_json: bool) -> None:
    """Show the host's distribution family and package manager."""
    try:
        classification = get_registry(ctx).session.classification
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(classification.to_dict(), indent=2))
        return

    click.secho(f"🖥️  {classification.os_id or 'unknown OS'}", fg="cyan", bold=True)
    click.echo(f"   Family:          {classification.family.value}")
    click.echo(f"   Package manager: {classification.package_manager.value}")
    if not classification.recognized:
        click.secho("   ⚠️  OS not recognized, assuming Debian/apt", fg="yellow")


@cli.command()
@click.argument("services", nargs=-1)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, services: tuple[str, ...], as_json: bool) -> None:
    """Show installed/running state of SERVICES (default: all)."""
    try:
        statuses = get_registry(ctx).statuses(list(services) or None)
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps({k: v.to_dict() for k, v in statuses.items()}, indent=2))
        return

    for service_id, software in statuses.items():
        color = _STATE_COLORS.get(software.state.value, "white")
        click.echo(f"   {service_id:<12} ", nl=False)
        click.secho(software.display_text, fg=color)


@cli.command()
@click.argument("service_name")
@click.argument("action", type=click.Choice(_ACTIONS))
@click.pass_context
def service(ctx: click.Context, service_name: str, action: str) -> None:
    """Run a systemd ACTION on SERVICE_NAME."""
    from hostops.core.services.facades.base import Controllable

    try:
        facade = require_capability(ctx, service_name, Controllable, "service control")
        ok = getattr(facade, action)()
    except HostOpsError as e:
        fail(str(e))

    if not ok:
        fail(f"{action} {service_name} failed")
    click.secho(f"✅ {service_name}: {action} ok", fg="green")


@cli.command()
@click.argument("services", nargs=-1)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def lifecycle(ctx: click.Context, services: tuple[str, ...], as_json: bool) -> None:
    """Summarize the lifecycle state of SERVICES (default: all)."""
    from hostops.core.services.lifecycle import LifecycleTracker

    tracker = LifecycleTracker()
    try:
        registry = get_registry(ctx)
        for name in services or registry.list_services():
            tracker.refresh(registry.require(name))
    except HostOpsError as e:
        fail(str(e))

    states = tracker.snapshot()
    if as_json:
        click.echo(json.dumps({k: v.to_dict() for k, v in states.items()}, indent=2))
        return
    for service_id, state in states.items():
        click.echo(f"   {service_id:<12} {state.display_text}")


@cli.command()
@click.argument("slug")
@click.argument("version")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, slug: str, version: str, as_json: bool) -> None:
    """Install VERSION of SLUG from the capability catalog."""

    def _show(progress) -> None:
        if not as_json:
            click.echo(f"   [{progress.percentage:>3}%] {progress.message}")

    try:
        flow = get_registry(ctx).install_flow(on_progress=_show)
    except HostOpsError as e:
        fail(str(e))

    try:
        events = flow.install(slug, version)
    except HostOpsError as e:
        if as_json:
            click.echo(json.dumps({
                "ok": False,
                "error": str(e),
                "events": [ev.model_dump(mode="json") for ev in flow.events],
            }, indent=2))
            sys.exit(1)
        fail(str(e))

    if as_json:
        click.echo(json.dumps({
            "ok": True,
            "events": [ev.model_dump(mode="json") for ev in events],
        }, indent=2))
        return
    click.secho(f"✅ {slug} {version} installed", fg="green", bold=True)


# ── Sub-groups ──────────────────────────────────────────────────

from hostops.ui.cli.databases import databases  # noqa: E402
from hostops.ui.cli.sites import sites  # noqa: E402
from hostops.ui.cli.versions import versions  # noqa: E402

cli.add_command(sites)
cli.add_command(databases)
cli.add_command(versions)


if __name__ == "__main__":
    cli()
