"""
Site enable/disable mechanisms.

    SymlinkToggle   sites-enabled symlink (nginx on Debian-style layouts)
    CommandToggle   a2ensite / a2dissite (Apache on Debian-style layouts)
    InPlaceToggle   rename to ``.disabled`` (conf.d layouts, where the
                    available and enabled directories are the same)
"""

from __future__ import annotations

import logging
import shlex
from abc import ABC, abstractmethod

from hostops.core.services.remote_files import RemoteFiles

logger = logging.getLogger(__name__)

DISABLED_SUFFIX = ".disabled"


class SiteToggle(ABC):
    """Enables and disables one site config."""

    def __init__(self, files: RemoteFiles):
        self.files = files

    @abstractmethod
    def is_enabled(self) -> bool: ...

    @abstractmethod
    def enable(self) -> bool: ...

    @abstractmethod
    def disable(self) -> bool: ...

    def leftovers(self) -> list[str]:
        """Paths that remain after ``disable`` and must go on delete."""
        return []


class SymlinkToggle(SiteToggle):
    def __init__(self, files: RemoteFiles, available_path: str, enabled_path: str):
        super().__init__(files)
        self.available_path = available_path
        self.enabled_path = enabled_path

    def is_enabled(self) -> bool:
        return self.files.exists(self.enabled_path)

    def enable(self) -> bool:
        return self.files.symlink(self.available_path, self.enabled_path)

    def disable(self) -> bool:
        return self.files.remove(self.enabled_path)


class CommandToggle(SiteToggle):
    """Toggle through a distro helper such as a2ensite/a2dissite."""

    def __init__(
        self,
        files: RemoteFiles,
        site_file: str,
        enabled_path: str,
        enable_tool: str = "a2ensite",
        disable_tool: str = "a2dissite",
    ):
        super().__init__(files)
        self.site_file = site_file
        self.enabled_path = enabled_path
        self.enable_tool = enable_tool
        self.disable_tool = disable_tool

    def is_enabled(self) -> bool:
        return self.files.exists(self.enabled_path)

    def _run_tool(self, tool: str, already: str) -> bool:
        result = self.files.session.run(f"sudo {tool} {shlex.quote(self.site_file)} 2>&1")
        if result.ok or already in result.output.lower():
            return True
        logger.info("%s %s failed: %s", tool, self.site_file, result.text or result.exit_code)
        return False

    def enable(self) -> bool:
        return self._run_tool(self.enable_tool, "already enabled")

    def disable(self) -> bool:
        return self._run_tool(self.disable_tool, "already disabled")


class InPlaceToggle(SiteToggle):
    def __init__(self, files: RemoteFiles, path: str):
        super().__init__(files)
        self.path = path
        self.disabled_path = f"{path}{DISABLED_SUFFIX}"

    def is_enabled(self) -> bool:
        return self.files.exists(self.path)

    def enable(self) -> bool:
        if self.files.exists(self.path):
            return True
        if self.files.exists(self.disabled_path):
            return self.files.move(self.disabled_path, self.path)
        return False

    def disable(self) -> bool:
        if not self.files.exists(self.path):
            return True
        return self.files.move(self.path, self.disabled_path)

    def leftovers(self) -> list[str]:
        return [self.disabled_path]
