"""
CLI commands for web sites (virtual hosts).

Thin wrappers over the WebServer facades (nginx, Apache).
"""

from __future__ import annotations

import json
import sys

import click

from hostops.core.errors import HostOpsError
from hostops.ui.cli.context import fail, require_capability

_SERVER_OPTION = click.option(
    "--server", "-s", default="nginx", show_default=True, help="Web server (nginx or apache).",
)


def _web_server(ctx: click.Context, server: str):
    from hostops.core.services.facades.webserver import WebServerFacade

    return require_capability(ctx, server, WebServerFacade, "web sites")


@click.group()
def sites() -> None:
    """Web sites — list, create, enable, disable, validate."""


# ── Observe ─────────────────────────────────────────────────────


@sites.command("list")
@_SERVER_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_sites(ctx: click.Context, server: str, as_json: bool) -> None:
    """List sites configured on the web server."""
    try:
        found = _web_server(ctx, server).fetch_sites()
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps([s.to_dict() for s in found], indent=2))
        return

    if not found:
        click.secho("No sites found.", fg="yellow")
        return

    click.secho(f"🌐 Sites ({len(found)}):", fg="cyan", bold=True)
    for site in found:
        icon = "🟢" if site.status.value == "running" else "⚪"
        ssl = " 🔒" if site.has_ssl else ""
        click.echo(f"   {icon} {site.domain}:{site.port}{ssl}  {site.framework}")
        if site.document_root:
            click.echo(f"      {site.document_root}")


@sites.command()
@_SERVER_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, server: str, as_json: bool) -> None:
    """Run the web server's configuration test."""
    try:
        result = _web_server(ctx, server).validate_config()
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.is_valid:
        click.secho(f"✅ {result.message}", fg="green")
    else:
        click.secho(f"❌ {result.message}", fg="red")
    if not result.is_valid:
        sys.exit(1)


@sites.command()
@_SERVER_OPTION
@click.option("--lines", "-n", type=int, default=100, show_default=True)
@click.option("--kind", type=click.Choice(["error", "access"]), default="error", show_default=True)
@click.pass_context
def logs(ctx: click.Context, server: str, lines: int, kind: str) -> None:
    """Tail the web server's error or access log."""
    try:
        text = _web_server(ctx, server).read_logs(lines=lines, kind=kind)
    except HostOpsError as e:
        fail(str(e))
    click.echo(text or "(empty)")


# ── Act ─────────────────────────────────────────────────────────


@sites.command()
@click.argument("domain")
@_SERVER_OPTION
@click.option("--root", "document_root", default="", help="Document root (default: per-OS web root).")
@click.option("--port", type=int, default=80, show_default=True)
@click.option("--php", "php_version", default=None, help="PHP version to route .php requests to.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def create(
    ctx: click.Context,
    domain: str,
    server: str,
    document_root: str,
    port: int,
    php_version: str | None,
    as_json: bool,
) -> None:
    """Create (or update) a site for DOMAIN."""
    from hostops.core.models.site import SiteRequest

    request = SiteRequest(domain=domain, document_root=document_root, port=port, php_version=php_version)
    try:
        site = _web_server(ctx, server).create_site(request)
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(site.to_dict(), indent=2))
        return
    click.secho(f"✅ Site {site.domain} is live", fg="green", bold=True)
    click.echo(f"   Root:   {site.document_root}")
    click.echo(f"   Config: {site.config_path}")


@sites.command()
@click.argument("domain")
@_SERVER_OPTION
@click.option("--delete-files", is_flag=True, help="Also remove the document root.")
@click.confirmation_option(prompt="Delete this site?")
@click.pass_context
def delete(ctx: click.Context, domain: str, server: str, delete_files: bool) -> None:
    """Remove the site for DOMAIN."""
    try:
        _web_server(ctx, server).delete_site(domain, delete_files=delete_files)
    except HostOpsError as e:
        fail(str(e))
    click.secho(f"🗑️  Site {domain} deleted", fg="green")


@sites.command()
@click.argument("domain")
@_SERVER_OPTION
@click.pass_context
def enable(ctx: click.Context, domain: str, server: str) -> None:
    """Enable the site for DOMAIN and reload."""
    try:
        ok = _web_server(ctx, server).enable_site(domain)
    except HostOpsError as e:
        fail(str(e))
    if not ok:
        fail(f"Could not enable {domain}")
    click.secho(f"✅ Site {domain} enabled", fg="green")


@sites.command()
@click.argument("domain")
@_SERVER_OPTION
@click.pass_context
def disable(ctx: click.Context, domain: str, server: str) -> None:
    """Disable the site for DOMAIN and reload."""
    try:
        ok = _web_server(ctx, server).disable_site(domain)
    except HostOpsError as e:
        fail(str(e))
    if not ok:
        fail(f"Could not disable {domain}")
    click.secho(f"⏸️  Site {domain} disabled", fg="yellow")
