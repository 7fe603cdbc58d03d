"""
Multi-version manager: list and switch installed versions of a runtime.

Each product declares ordered detection strategies (the first one that
yields versions wins) and ordered switch strategies (tried until one
succeeds). A ``NoSwitch`` strategy fails fast with a typed error before
any remote command is issued.
"""

from __future__ import annotations

import logging
import re
import shlex

from hostops.core.errors import CatalogError, InstallationError
from hostops.core.models.versions import (
    VERSION_TOKEN,
    AlternativesSwitch,
    BinaryGlob,
    DirectoryBased,
    NoSwitch,
    PackageManagerQuery,
    SymlinkSwitch,
    UpdateAlternatives,
    VersionDetectionStrategy,
    VersionManagerSwitch,
    VersionManagerTool,
    VersionSwitchStrategy,
)
from hostops.core.services.package_commands import list_package_versions_command
from hostops.core.services.session import HostSession
from hostops.core.services.version_resolver import VersionResolver, sort_versions
from hostops.core.services.versions.catalog import CatalogClient

logger = logging.getLogger(__name__)

_MAJOR_MINOR = re.compile(r"(\d+\.\d+)")
_VERSION_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z.+-]*$")


# ── Detection commands ──────────────────────────────────────────


def detection_command(strategy: VersionDetectionStrategy, session: HostSession) -> str:
    """The listing command for a detection strategy."""
    if isinstance(strategy, DirectoryBased):
        return (
            f"ls -1 {shlex.quote(strategy.path)} 2>/dev/null"
            f" | grep -E {shlex.quote(strategy.pattern)} | sort -V -r"
        )
    if isinstance(strategy, UpdateAlternatives):
        return (
            f"update-alternatives --list {shlex.quote(strategy.name)} 2>/dev/null"
            " | grep -oE '[0-9]+\\.[0-9]+' | sort -V -r | uniq"
        )
    if isinstance(strategy, VersionManagerTool):
        return strategy.list_command
    if isinstance(strategy, PackageManagerQuery):
        manager = session.classification.package_manager
        return (
            f"{list_package_versions_command(strategy.pattern, manager)}"
            " | grep -oE '[0-9]+\\.[0-9]+' | sort -V -r | uniq"
        )
    if isinstance(strategy, BinaryGlob):
        return (
            f"ls -1 {strategy.directory.rstrip('/')}/{strategy.pattern} 2>/dev/null"
            " | grep -oE '[0-9]+\\.[0-9]+' | sort -V -r | uniq"
        )
    raise TypeError(f"Unknown detection strategy: {strategy!r}")


def parse_versions(output: str, strategy: VersionDetectionStrategy) -> list[str]:
    """Version strings from a listing command's output, newest first."""
    lines = [ln.strip() for ln in output.splitlines() if ln.strip()]
    if isinstance(strategy, DirectoryBased):
        found = [ln.rstrip("/") for ln in lines]
    else:
        pattern = (
            re.compile(strategy.pattern) if isinstance(strategy, VersionManagerTool) else _MAJOR_MINOR
        )
        found = []
        for line in lines:
            match = pattern.search(line)
            if match:
                found.append(match.group(1).lstrip("v"))
    return sort_versions(found)


def switch_command(strategy: VersionSwitchStrategy, version: str) -> str:
    """The mutating command for a switch strategy."""
    if isinstance(strategy, AlternativesSwitch):
        if strategy.target:
            target = strategy.target.replace(VERSION_TOKEN, version)
        else:
            target = f"{strategy.path.rstrip('/')}/{strategy.binary}{version}"
        return (
            f"sudo update-alternatives --set {shlex.quote(strategy.binary)} {shlex.quote(target)}"
        )
    if isinstance(strategy, SymlinkSwitch):
        target = strategy.to_path.replace(VERSION_TOKEN, version)
        return f"sudo ln -sf {shlex.quote(target)} {shlex.quote(strategy.from_path)}"
    if isinstance(strategy, VersionManagerSwitch):
        return strategy.switch_command.replace(VERSION_TOKEN, shlex.quote(version))
    raise TypeError(f"No command for switch strategy: {strategy!r}")


# ── Manager ─────────────────────────────────────────────────────


class MultiVersionManager:
    """Version listing and switching for one product.

    Args:
        session: Host session.
        slug: Catalog slug of the product.
        detection: Ordered detection strategies.
        switching: Ordered switch strategies.
        active: Resolver for the currently active version.
        catalog: Catalog client for ``list_available``.
    """

    def __init__(
        self,
        session: HostSession,
        slug: str,
        detection: tuple[VersionDetectionStrategy, ...],
        switching: tuple[VersionSwitchStrategy, ...],
        active: VersionResolver,
        catalog: CatalogClient | None = None,
    ):
        self.session = session
        self.slug = slug
        self.detection = detection
        self.switching = switching
        self.active = active
        self.catalog = catalog

    def _tool_present(self, strategy: VersionManagerTool | VersionManagerSwitch) -> bool:
        check = strategy.check_command or f"command -v {shlex.quote(strategy.tool)} >/dev/null 2>&1"
        return self.session.run(check, timeout=10).ok

    def list_installed(self) -> list[str]:
        """Installed versions, newest first (empty when nothing is found)."""
        for strategy in self.detection:
            if isinstance(strategy, VersionManagerTool) and not self._tool_present(strategy):
                logger.debug("%s: %s not present, skipping", self.slug, strategy.tool)
                continue
            result = self.session.run(detection_command(strategy, self.session))
            versions = parse_versions(result.output, strategy)
            if versions:
                logger.debug("%s versions via %s: %s", self.slug, type(strategy).__name__, versions)
                return versions
        return []

    def list_available(self) -> list[str]:
        """Versions the catalog offers (empty when the catalog is unavailable)."""
        if self.catalog is None:
            return []
        try:
            capability = self.catalog.fetch_capability_details(self.slug)
        except CatalogError as e:
            logger.warning("Cannot list available %s versions: %s", self.slug, e)
            return []
        return sort_versions(capability.version_names)

    def get_active(self) -> str | None:
        return self.active.get_version()

    def switch_active(self, version: str) -> bool:
        """Make ``version`` the active one.

        Returns:
            True on success.

        Raises:
            InstallationError: ``switch_failed`` when unsupported or every
                strategy failed; ``version_not_available`` when the version
                is not installed.
        """
        for strategy in self.switching:
            if isinstance(strategy, NoSwitch):
                raise InstallationError.switch_failed(strategy.reason)
        if not self.switching:
            raise InstallationError.switch_failed(f"{self.slug} has no version switch strategy")

        if not _VERSION_RE.match(version):
            raise InstallationError.version_not_available(f"Invalid version string: {version!r}")

        installed = self.list_installed()
        if installed and version not in installed:
            raise InstallationError.version_not_available(
                f"{self.slug} {version} is not installed (installed: {', '.join(installed)})"
            )

        last_error = ""
        for strategy in self.switching:
            if isinstance(strategy, VersionManagerSwitch) and not self._tool_present(strategy):
                continue
            result = self.session.run(switch_command(strategy, version), timeout=60)
            if result.ok:
                logger.info("Switched %s to %s via %s", self.slug, version, type(strategy).__name__)
                return True
            last_error = result.text or f"exit code {result.exit_code}"
            logger.info("%s switch via %s failed: %s", self.slug, type(strategy).__name__, last_error)

        raise InstallationError.switch_failed(
            f"Could not switch {self.slug} to {version}: {last_error or 'no applicable strategy'}"
        )

