"""
Web site models: parsed virtual hosts and web-server path layouts.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class SiteStatus(StrEnum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class Website(BaseModel):
    """A site parsed from a remote virtual-host config file.

    ``domain`` is the natural key.
    """

    domain: str
    document_root: str = ""
    port: int = 80
    framework: str = "Static HTML"
    has_ssl: bool = False
    status: SiteStatus = SiteStatus.STOPPED
    config_path: str = ""

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class SiteRequest(BaseModel):
    """Input to a site create/update."""

    domain: str
    document_root: str = ""
    port: int = 80
    php_version: str | None = None


class Layout(StrEnum):
    """Config layout style of a web server install."""

    DEBIAN = "debian"
    RHEL = "rhel"


class WebServerPaths(BaseModel):
    """OS-dependent file layout of one web server."""

    layout: Layout
    config_file: str
    sites_available: str
    sites_enabled: str
    log_dir: str
    pid_file: str
    extra_dirs: dict[str, str] = Field(default_factory=dict)

    @property
    def separate_enabled_dir(self) -> bool:
        """Whether enabling a site is a distinct step from writing it."""
        return self.sites_available != self.sites_enabled

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
