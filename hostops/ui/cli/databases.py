"""
CLI commands for database servers (MySQL/MariaDB, PostgreSQL, MongoDB, Redis).
"""

from __future__ import annotations

import json

import click

from hostops.core.errors import HostOpsError
from hostops.ui.cli.context import fail, require_capability

_SERVER_OPTION = click.option(
    "--server", "-s", default="mysql", show_default=True,
    help="Database server (mysql, postgresql, mongodb or redis).",
)


def _database_server(ctx: click.Context, server: str):
    from hostops.core.services.facades.base import DatabaseServer

    return require_capability(ctx, server, DatabaseServer, "databases")


@click.group()
def databases() -> None:
    """Databases — list, create, delete, back up."""


@databases.command("list")
@_SERVER_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_databases(ctx: click.Context, server: str, as_json: bool) -> None:
    """List user databases with their sizes."""
    try:
        found = _database_server(ctx, server).fetch_databases()
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps([d.to_dict() for d in found], indent=2))
        return

    if not found:
        click.secho("No databases found.", fg="yellow")
        return
    click.secho(f"🗄️  Databases ({len(found)}):", fg="cyan", bold=True)
    for db in found:
        size = f"  ({db.size})" if db.size else ""
        click.echo(f"   {db.name}{size}")


@databases.command()
@_SERVER_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def users(ctx: click.Context, server: str, as_json: bool) -> None:
    """List database users."""
    try:
        found = _database_server(ctx, server).fetch_users()
    except HostOpsError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps([u.to_dict() for u in found], indent=2))
        return
    for user in found:
        click.echo(f"   👤 {user.name}@{user.host}")


@databases.command()
@click.argument("name")
@_SERVER_OPTION
@click.option("--user", "db_user", default=None, help="Create this user and grant it the database.")
@click.option("--password", default=None, help="Password for --user.")
@click.pass_context
def create(
    ctx: click.Context, name: str, server: str, db_user: str | None, password: str | None,
) -> None:
    """Create database NAME."""
    if db_user and not password:
        fail("--password is required with --user")
    try:
        _database_server(ctx, server).create_database(name, db_user, password)
    except HostOpsError as e:
        fail(str(e))
    click.secho(f"✅ Database {name} created", fg="green")
    if db_user:
        click.echo(f"   Owner: {db_user}")


@databases.command()
@click.argument("name")
@_SERVER_OPTION
@click.confirmation_option(prompt="Drop this database?")
@click.pass_context
def delete(ctx: click.Context, name: str, server: str) -> None:
    """Drop database NAME."""
    try:
        _database_server(ctx, server).delete_database(name)
    except HostOpsError as e:
        fail(str(e))
    click.secho(f"🗑️  Database {name} dropped", fg="green")


@databases.command()
@click.argument("name")
@_SERVER_OPTION
@click.pass_context
def backup(ctx: click.Context, name: str, server: str) -> None:
    """Dump database NAME to a file on the host."""
    try:
        path = _database_server(ctx, server).backup(name)
    except HostOpsError as e:
        fail(str(e))
    click.secho(f"💾 {name} → {path}", fg="green")
