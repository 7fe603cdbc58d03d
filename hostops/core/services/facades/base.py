"""
Facade base classes and capability interfaces.

A facade is one product on one host. ``ServiceFacade`` gives every
product detection, version and status from its descriptor. Capabilities
are mixed in per product:

    Controllable    start/stop/restart/reload/enable/disable
    WebServer       sites and config validation
    DatabaseServer  databases and backups
    Versioned       installed versions and switching
    Runtime         Versioned plus package-manager status

A database facade never implements WebServer; callers check with
``isinstance(facade, WebServer)``.

Mutating operations take the facade's mutation lock, so two mutations
on the same facade never interleave even if callers race.
"""

from __future__ import annotations

import logging
import re
import shlex
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import cached_property

from hostops.core.models.database import Database
from hostops.core.models.site import SiteRequest, Website
from hostops.core.models.status import SoftwareStatus
from hostops.core.models.service import ServiceDescriptor
from hostops.core.models.versions import VersionDetectionStrategy, VersionSwitchStrategy
from hostops.core.services.config_validator import ValidationResult
from hostops.core.services.detector import DetectionResult, Detector
from hostops.core.services.package_commands import remove_command
from hostops.core.services.session import HostSession
from hostops.core.services.version_resolver import VersionResolver
from hostops.core.services.versions.catalog import CatalogClient
from hostops.core.services.versions.manager import MultiVersionManager

logger = logging.getLogger(__name__)


@dataclass
class FacadeCache:
    """Read-path memo. Refreshed by every detection pass."""

    service_name: str | None = None
    active_version: str | None = None


class ServiceFacade:
    """One product on one host, driven by its ServiceDescriptor."""

    descriptor: ServiceDescriptor

    def __init__(self, session: HostSession, catalog: CatalogClient | None = None):
        self.session = session
        self.catalog = catalog
        self.cache = FacadeCache()
        self._cache_lock = threading.Lock()
        self._mutation_lock = threading.RLock()
        self.detector = Detector(self.descriptor, session)
        self.version_resolver = VersionResolver.for_descriptor(self.descriptor, session)

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def display_name(self) -> str:
        return self.descriptor.display_name

    # ── Detection ───────────────────────────────────────────────

    def detect(self) -> DetectionResult:
        """Run the probe chain and revalidate the cached service name."""
        result = self.detector.detect()
        with self._cache_lock:
            self.cache.service_name = result.service_name if result.installed else None
        return result

    def is_installed(self) -> bool:
        return self.detect().installed

    def get_version(self) -> str | None:
        version = self.version_resolver.get_version()
        with self._cache_lock:
            self.cache.active_version = version
        return version

    def resolve_service_name(self, fresh: bool = False) -> str | None:
        """systemd unit of this product.

        Static names need no remote call. Discovered names come from the
        cache on read paths; mutations pass ``fresh=True``.
        """
        if not self.descriptor.has_dynamic_service_name:
            return self.descriptor.default_service_name
        if not fresh:
            with self._cache_lock:
                if self.cache.service_name:
                    return self.cache.service_name
        return self.detect().service_name or self.descriptor.default_service_name

    # ── Status ──────────────────────────────────────────────────

    def get_status(self) -> SoftwareStatus:
        """Installed/running state; the three read-only queries run concurrently."""
        try:
            with ThreadPoolExecutor(max_workers=3) as pool:
                detection_future = pool.submit(self.detect)
                version_future = pool.submit(self.get_version)
                running_future = pool.submit(self._running_probe)
                detection = detection_future.result()
                version = version_future.result()
                running = running_future.result()
        except Exception as e:
            logger.warning("Status query for %s failed: %s", self.id, e)
            return SoftwareStatus.error(str(e))

        if not detection.installed:
            return SoftwareStatus.not_installed()
        if running is None:
            return SoftwareStatus.installed(version)
        return SoftwareStatus.running(version) if running else SoftwareStatus.stopped(version)

    def _running_probe(self) -> bool | None:
        """Whether the product is running; None when that does not apply."""
        return None

    # ── Removal ─────────────────────────────────────────────────

    def uninstall(self, purge: bool = False) -> bool:
        """Remove the product's packages. Returns success."""
        classification = self.session.classification
        packages = self.descriptor.packages_for(classification.family)
        if not packages:
            return False
        with self._mutation_lock:
            command = remove_command(packages, classification.package_manager, purge=purge)
            result = self.session.run(command, timeout=self.session.timeouts.install)
        if not result.ok:
            logger.warning("Uninstall of %s failed: %s", self.id, result.text)
        return result.ok

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id!r} host={self.session.channel.name!r}>"


# ── Capabilities ────────────────────────────────────────────────


class Controllable:
    """systemd control. Mixed into ServiceFacade subclasses."""

    session: HostSession
    _mutation_lock: threading.RLock

    def _systemctl(self, verb: str) -> bool:
        unit = self.resolve_service_name(fresh=True)
        if not unit:
            return False
        result = self.session.run(
            f"sudo systemctl {verb} {shlex.quote(unit)}",
            timeout=self.session.timeouts.control,
        )
        if not result.ok:
            logger.info("systemctl %s %s failed: %s", verb, unit, result.text or result.exit_code)
        return result.ok

    def is_active(self) -> bool:
        unit = self.resolve_service_name()
        if not unit:
            return False
        result = self.session.run(f"systemctl is-active {shlex.quote(unit)} 2>/dev/null", timeout=10)
        return result.text == "active"

    def start(self) -> bool:
        with self._mutation_lock:
            return self._systemctl("start") and self.is_active()

    def stop(self) -> bool:
        with self._mutation_lock:
            return self._systemctl("stop") and not self.is_active()

    def restart(self) -> bool:
        with self._mutation_lock:
            return self._systemctl("restart") and self.is_active()

    def reload(self) -> bool:
        with self._mutation_lock:
            return self._systemctl("reload")

    def enable(self) -> bool:
        with self._mutation_lock:
            return self._systemctl("enable")

    def disable(self) -> bool:
        with self._mutation_lock:
            return self._systemctl("disable")

    def _running_probe(self) -> bool | None:
        return self.is_active()


class WebServer(ABC):
    """Site management capability."""

    @abstractmethod
    def fetch_sites(self) -> list[Website]: ...

    @abstractmethod
    def create_site(self, request: SiteRequest) -> Website: ...

    @abstractmethod
    def delete_site(self, domain: str, delete_files: bool = False) -> bool: ...

    @abstractmethod
    def enable_site(self, domain: str) -> bool: ...

    @abstractmethod
    def disable_site(self, domain: str) -> bool: ...

    @abstractmethod
    def validate_config(self) -> ValidationResult: ...


class DatabaseServer(ABC):
    """Database management capability."""

    @abstractmethod
    def fetch_databases(self) -> list[Database]: ...

    @abstractmethod
    def create_database(
        self, name: str, user: str | None = None, password: str | None = None,
    ) -> bool: ...

    @abstractmethod
    def delete_database(self, name: str) -> bool: ...

    @abstractmethod
    def backup(self, name: str) -> str: ...


class Versioned:
    """Installed-version listing and switching. Mixed into ServiceFacade subclasses."""

    session: HostSession
    version_resolver: VersionResolver
    catalog: CatalogClient | None
    _mutation_lock: threading.RLock
    version_detection: tuple[VersionDetectionStrategy, ...] = ()
    version_switching: tuple[VersionSwitchStrategy, ...] = ()

    @cached_property
    def versions(self) -> MultiVersionManager:
        return MultiVersionManager(
            self.session,
            self.id,
            self.version_detection,
            self.version_switching,
            self.version_resolver,
            self.catalog,
        )

    def list_installed_versions(self) -> list[str]:
        return self.versions.list_installed()

    def list_available_versions(self) -> list[str]:
        return self.versions.list_available()

    def get_active_version(self) -> str | None:
        return self.versions.get_active()

    def switch_version(self, version: str) -> bool:
        with self._mutation_lock:
            return self.versions.switch_active(version)


class Runtime(Versioned, ABC):
    """Language runtime capability."""

    @abstractmethod
    def package_manager_status(self) -> SoftwareStatus: ...

    def _tool_status(self, command: str, pattern: str) -> SoftwareStatus:
        """Status of a companion tool from its ``--version`` output."""
        result = self.session.run(command)
        if not result.ok or not result.text:
            return SoftwareStatus.not_installed()
        match = re.search(pattern, result.text)
        return SoftwareStatus.installed(match.group(1) if match else None)
