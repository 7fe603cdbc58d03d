"""
Shared CLI plumbing: build the host registry from the click context.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn, TypeVar

import click

from hostops.adapters.base import CommandChannel
from hostops.adapters.shell.command import LocalShellChannel, SSHChannel
from hostops.core.config.loader import HostOpsConfig, load_config
from hostops.core.services.registry import ServiceRegistry

T = TypeVar("T")


def get_config(ctx: click.Context) -> HostOpsConfig:
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        config_path: Path | None = obj.get("config_path")
        obj["config"] = load_config(config_path)
    return obj["config"]


def build_channel(ctx: click.Context, config: HostOpsConfig) -> CommandChannel:
    """SSH when a host is given (flag or config), else the local shell."""
    obj = ctx.ensure_object(dict)
    host = obj.get("host") or config.ssh.host
    if not host:
        return LocalShellChannel()
    return SSHChannel(
        host=host,
        user=obj.get("user") or config.ssh.user,
        port=obj.get("port") or config.ssh.port,
        identity_file=obj.get("identity") or config.ssh.identity_file,
    )


def get_registry(ctx: click.Context) -> ServiceRegistry:
    """The registry for this invocation (built once, or injected by tests)."""
    obj = ctx.ensure_object(dict)
    if "registry" not in obj:
        config = get_config(ctx)
        obj["registry"] = ServiceRegistry(build_channel(ctx, config), config)
    return obj["registry"]


def require_capability(ctx: click.Context, name: str, capability: type[T], label: str) -> T:
    """Facade ``name`` as ``capability``, or exit with a message."""
    facade = get_registry(ctx).require(name)
    if not isinstance(facade, capability):
        fail(f"{facade.display_name} does not support {label}")
    return facade


def fail(message: str) -> NoReturn:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(1)