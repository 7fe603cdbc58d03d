"""
Install flow: Queued -> Downloading -> Installing -> Configuring -> Registered.

Each phase is reported before its remote work starts. Phases are
advisory; the remote exit status is what decides success. On failure
the flow stops where it is and raises; a half-installed package is
left for the user to remove explicitly.
"""

from __future__ import annotations

import logging
import re
import shlex
from collections.abc import Callable

from hostops.core.errors import CatalogError, InstallationError
from hostops.core.models.host import PackageManager
from hostops.core.models.versions import CapabilityVersion, InstallPhase, InstallProgress
from hostops.core.services.session import HostSession
from hostops.core.services.versions.catalog import CatalogClient, install_command_for

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[InstallProgress], None]

_PIN_MARKERS = (
    "not found",
    "has no installation candidate",
    "no match",
    "unable to locate",
    "e: version",
)

_PERMISSION_MARKERS = (
    "permission denied",
    "are you root",
    "a password is required",
    "not in the sudoers",
)

# Catalog slug -> systemd unit started after install
SERVICE_FOR_SLUG: dict[str, str] = {
    "nginx": "nginx",
    "apache": "apache2",
    "apache2": "apache2",
    "httpd": "httpd",
    "mysql": "mysql",
    "mariadb": "mariadb",
    "postgresql": "postgresql",
    "redis": "redis-server",
    "mongodb": "mongod",
    "php-fpm": "php-fpm",
}


# ── Command preparation ─────────────────────────────────────────


def prepare_install_command(command: str, manager: PackageManager) -> str:
    """Make a catalog command safe to run unattended."""
    prepared = command.strip()
    if manager == PackageManager.APT and re.search(r"\bapt(-get)?\b", prepared):
        prepared = re.sub(r"\b(apt(?:-get)? install)\b(?!\s+-y)", r"\1 -y", prepared)
        if "DEBIAN_FRONTEND" not in prepared:
            prepared = f"export DEBIAN_FRONTEND=noninteractive; {prepared}"
    if "composer" in prepared and "COMPOSER_ALLOW_SUPERUSER" not in prepared:
        prepared = f"export COMPOSER_ALLOW_SUPERUSER=1; {prepared}"
    return prepared


def is_version_pin_failure(output: str) -> bool:
    lowered = output.lower()
    return "version" in lowered and any(m in lowered for m in _PIN_MARKERS)


def strip_version_pins(command: str) -> str:
    """Drop ``pkg=1.2.3`` and ``pkg-1.2*`` style pins from package names."""
    unpinned = re.sub(r"(?<=[A-Za-z0-9])=[0-9][^\s;&|]*", "", command)
    unpinned = re.sub(r"(?<=[A-Za-z])-\d+(\.\d+)*\*?(?=\s|$)", "", unpinned)
    return unpinned


def is_permission_failure(output: str) -> bool:
    lowered = output.lower()
    return any(m in lowered for m in _PERMISSION_MARKERS)


def _tail(output: str, lines: int = 5) -> str:
    kept = [ln.strip() for ln in output.strip().splitlines() if ln.strip()]
    return " | ".join(kept[-lines:]) if kept else "no output"


# ── Flow ────────────────────────────────────────────────────────


class InstallFlow:
    """Installs one catalog version of one product on a host.

    Args:
        session: Host session.
        catalog: Capability catalog client.
        on_progress: Called with every phase transition.
        service_for_slug: Unit to enable/start after install, per slug.
    """

    def __init__(
        self,
        session: HostSession,
        catalog: CatalogClient,
        on_progress: ProgressCallback | None = None,
        service_for_slug: dict[str, str] | None = None,
    ):
        self.session = session
        self.catalog = catalog
        self.on_progress = on_progress
        self.service_for_slug = service_for_slug if service_for_slug is not None else SERVICE_FOR_SLUG
        self.events: list[InstallProgress] = []

    def _emit(self, phase: InstallPhase, message: str) -> None:
        event = InstallProgress.at(phase, message)
        self.events.append(event)
        logger.info("[install %d%%] %s: %s", event.percentage, phase.value, message)
        if self.on_progress is not None:
            self.on_progress(event)

    def resolve_command(self, slug: str, version: str) -> str:
        """Install command for ``slug`` ``version`` on this host's OS."""
        try:
            capability = self.catalog.fetch_capability_details(slug)
            entry: CapabilityVersion | None = capability.version(version)
            if entry is None:
                entry = self.catalog.fetch_version_details(slug, version)
        except CatalogError as e:
            raise InstallationError.version_not_available(
                f"{slug} {version} is not available: {e}"
            ) from e

        os_id = self.session.classification.os_id
        command = install_command_for(
            entry, os_id, self.session.config.catalog.os_aliases,
        )
        if command is None:
            raise InstallationError.version_not_available(
                f"No install command for {slug} {version} on {os_id or 'this OS'}"
            )
        return command

    def install(self, slug: str, version: str) -> list[InstallProgress]:
        """Run the flow to Registered.

        Returns:
            Every progress event emitted.

        Raises:
            InstallationError: at the phase where the flow stopped.
        """
        self.events = []
        slug = slug.strip().lower()
        self._emit(InstallPhase.QUEUED, f"Queued {slug} {version}")

        self._emit(InstallPhase.DOWNLOADING, f"Fetching install instructions for {slug} {version}")
        manager = self.session.classification.package_manager
        command = prepare_install_command(self.resolve_command(slug, version), manager)

        self._emit(InstallPhase.INSTALLING, f"Installing {slug} {version}")
        self._run_install(command)

        service = self.service_for_slug.get(slug)
        if service:
            self._emit(InstallPhase.CONFIGURING, f"Enabling and starting {service}")
            unit = shlex.quote(service)
            result = self.session.run(
                f"sudo systemctl enable {unit} && sudo systemctl start {unit}",
                timeout=self.session.timeouts.control,
            )
            if not result.ok:
                raise InstallationError.installation_failed(
                    f"{slug} installed but {service} failed to start: {_tail(result.output)}"
                )
        else:
            self._emit(InstallPhase.CONFIGURING, f"No service to configure for {slug}")

        self._emit(InstallPhase.REGISTERED, f"{slug} {version} installed")
        return list(self.events)

    def _run_install(self, command: str) -> None:
        timeout = self.session.timeouts.install
        result = self.session.run(command, timeout=timeout)
        if result.ok:
            return

        if is_version_pin_failure(result.output):
            unpinned = strip_version_pins(command)
            if unpinned != command:
                logger.info("Pinned version unavailable, retrying without pins")
                result = self.session.run(unpinned, timeout=timeout)
                if result.ok:
                    return

        if is_permission_failure(result.output):
            raise InstallationError.insufficient_permissions(_tail(result.output, 2))
        if result.timed_out:
            raise InstallationError.installation_failed(f"Install timed out after {timeout:.0f}s")
        raise InstallationError.installation_failed(
            f"exit code {result.exit_code}: {_tail(result.output)}"
        )
