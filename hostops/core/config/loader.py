"""
Configuration loader: reads hostops.yml into a validated model.

The file is optional. Without one, every setting has a working
default and hostops talks to the public capability catalog.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from hostops.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "hostops.yml"

DEFAULT_CATALOG_URL = "https://velo.3zozz.com/api/v1"

ENV_CATALOG_URL = "HOSTOPS_CATALOG_URL"


# ── Schema ──────────────────────────────────────────────────────


class CatalogSettings(BaseModel):
    base_url: str = DEFAULT_CATALOG_URL
    timeout: float = 15.0
    # Tried, in order, when the host's own OS id has no install command
    os_aliases: list[str] = Field(default_factory=lambda: ["ubuntu", "debian"])


class TimeoutSettings(BaseModel):
    """Per-category remote command timeouts, in seconds."""

    query: float = 15.0
    control: float = 30.0
    install: float = 600.0
    dump: float = 120.0


class SiteSettings(BaseModel):
    # Extra site directories scanned after the resolved ones; earlier wins on duplicates
    path_priority: list[str] = Field(default_factory=list)


class SSHSettings(BaseModel):
    host: str | None = None
    user: str | None = None
    port: int = 22
    identity_file: str | None = None


class HostOpsConfig(BaseModel):
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    sites: SiteSettings = Field(default_factory=SiteSettings)
    ssh: SSHSettings = Field(default_factory=SSHSettings)


# ── Loading ─────────────────────────────────────────────────────


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for hostops.yml from ``start_dir`` (default: cwd) upward."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path | None = None, *, search: bool = True) -> HostOpsConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config path. Must exist if given.
        search: When no path is given, look for hostops.yml upward.

    Returns:
        Validated HostOpsConfig with environment overrides applied.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    if path is None and search:
        path = find_config_file()

    data: dict = {}
    if path is not None:
        data = _read_yaml(path)

    try:
        config = HostOpsConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid hostops configuration: {e}") from e

    env_url = os.environ.get(ENV_CATALOG_URL)
    if env_url:
        config.catalog.base_url = env_url

    return config


def _read_yaml(path: Path) -> dict:
    logger.debug("Loading hostops config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Settings may sit under a top-level "hostops" key
    return data.get("hostops", data) if isinstance(data.get("hostops"), dict) else data
