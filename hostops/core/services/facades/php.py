"""
PHP runtime facade and PHP-FPM manager.

The controllable service of PHP is its FPM unit. Debian-style hosts run
one unit per version (``php8.2-fpm``); RHEL-style hosts run a single
``php-fpm``.
"""

from __future__ import annotations

import logging
import re
import shlex

from hostops.core.models.host import DistroFamily
from hostops.core.models.service import ServiceDescriptor, VersionPattern, standard_probes
from hostops.core.models.status import SoftwareStatus
from hostops.core.models.versions import (
    AlternativesSwitch,
    BinaryGlob,
    DirectoryBased,
    SymlinkSwitch,
)
from hostops.core.services.detector import find_unit
from hostops.core.services.facades.base import Controllable, Runtime, ServiceFacade
from hostops.core.services.session import HostSession
from hostops.core.services.versions.catalog import CatalogClient

logger = logging.getLogger(__name__)

PHP_DESCRIPTOR = ServiceDescriptor(
    id="php",
    display_name="PHP",
    service_names=("php-fpm", "php*-fpm"),
    binary_names=("php",),
    probes=standard_probes(
        binaries=("php",),
        units=("php*-fpm", "php-fpm"),
        paths=("/usr/bin/php", "/usr/local/bin/php"),
        package_pattern=r"php[0-9.]*-cli|php-cli|php",
    ),
    version_command="php -v 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"PHP (\d+\.\d+\.\d+)", label="php"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
        VersionPattern(r"(\d+\.\d+)"),
    ),
    package_pattern=r"php[0-9.]*-cli|php-cli|php",
    packages={
        DistroFamily.DEBIAN: ("php", "php-fpm", "php-cli"),
        DistroFamily.RHEL: ("php", "php-fpm", "php-cli"),
        DistroFamily.ARCH: ("php", "php-fpm"),
        DistroFamily.SUSE: ("php8", "php8-fpm"),
    },
    aliases=("php-fpm", "php-cli"),
)

_MAJOR_MINOR = re.compile(r"^(\d+\.\d+)")
_FPM_UNIT = re.compile(r"php[0-9.]*-fpm")
_INI_KEY = re.compile(r"^[A-Za-z0-9_.]+$")
_LIST_FPM_UNITS = (
    "systemctl list-units --type=service --all --no-legend --plain 2>/dev/null"
    " | grep -oE 'php[0-9.]*-fpm' | sort -u"
)


def major_minor(version: str | None) -> str | None:
    match = _MAJOR_MINOR.match(version or "")
    return match.group(1) if match else None


class FpmManager:
    """PHP-FPM units on one host."""

    def __init__(self, session: HostSession):
        self.session = session

    def service_for(self, version: str) -> str:
        return f"php{version}-fpm"

    def installed_services(self) -> list[str]:
        return [u for u in self.session.run(_LIST_FPM_UNITS).lines() if _FPM_UNIT.fullmatch(u)]

    def active_service(self, php_version: str | None = None) -> str | None:
        """FPM unit matching the active PHP version, else any FPM unit."""
        version = major_minor(php_version)
        if version:
            unit = find_unit(self.session, (self.service_for(version),))
            if unit:
                return unit
        return find_unit(self.session, ("php-fpm", "php*-fpm"))

    def is_running(self, version: str) -> bool:
        unit = shlex.quote(self.service_for(version))
        return self.session.output(f"systemctl is-active {unit} 2>/dev/null", timeout=10) == "active"

    def is_any_running(self) -> bool:
        result = self.session.run(
            "systemctl list-units --type=service --state=running --no-legend --plain 2>/dev/null"
            " | grep -cE 'php.*fpm'",
            timeout=10,
        )
        try:
            return int(result.text or "0") > 0
        except ValueError:
            return False

    def status_all(self) -> dict[str, bool]:
        """Every FPM unit mapped to whether it is active."""
        result = self.session.run(
            f'for svc in $({_LIST_FPM_UNITS}); do echo "$svc:$(systemctl is-active $svc 2>/dev/null)"; done',
        )
        status: dict[str, bool] = {}
        for line in result.lines():
            unit, sep, state = line.partition(":")
            if sep and _FPM_UNIT.fullmatch(unit.strip()):
                status[unit.strip()] = state.strip() == "active"
        return status

    def control(self, version: str, verb: str) -> bool:
        """``systemctl <verb>`` on one version's FPM unit."""
        result = self.session.run(
            f"sudo systemctl {verb} {shlex.quote(self.service_for(version))}",
            timeout=self.session.timeouts.control,
        )
        return result.ok

    def socket_path(self, version: str) -> str | None:
        candidates = (
            f"/run/php/php{version}-fpm.sock",
            f"/var/run/php/php{version}-fpm.sock",
            f"/var/run/php-fpm/php{version}-fpm.sock",
        )
        quoted = " ".join(shlex.quote(c) for c in candidates)
        lines = self.session.run(
            f'for s in {quoted}; do if test -S "$s"; then echo "$s"; break; fi; done', timeout=5,
        ).lines()
        return lines[0] if lines and lines[0].startswith("/") else None

    @staticmethod
    def pool_config_path(version: str) -> str:
        return f"/etc/php/{version}/fpm/pool.d/www.conf"


class PHP(Controllable, ServiceFacade, Runtime):
    descriptor = PHP_DESCRIPTOR
    version_detection = (
        DirectoryBased("/etc/php", r"^[0-9]+\.[0-9]+$"),
        BinaryGlob("php[0-9]*"),
    )
    version_switching = (
        AlternativesSwitch("php", "/usr/bin"),
        SymlinkSwitch("/usr/bin/php", "/usr/bin/php{VERSION}"),
    )

    def __init__(self, session: HostSession, catalog: CatalogClient | None = None):
        super().__init__(session, catalog)
        self.fpm = FpmManager(session)

    def resolve_service_name(self, fresh: bool = False) -> str | None:
        """The FPM unit of the active PHP version."""
        if not fresh:
            with self._cache_lock:
                if self.cache.service_name:
                    return self.cache.service_name
        unit = self.fpm.active_service(self.get_version())
        with self._cache_lock:
            self.cache.service_name = unit
        return unit

    def switch_version(self, version: str) -> bool:
        """Switch the CLI, then point php-fpm at the same version when possible."""
        with self._mutation_lock:
            switched = super().switch_version(version)
            self.session.run(
                f"sudo update-alternatives --set php-fpm {shlex.quote(f'/usr/sbin/php-fpm{version}')}"
                " 2>/dev/null || true",
                timeout=10,
            )
        with self._cache_lock:
            self.cache.service_name = None
        return switched

    def package_manager_status(self) -> SoftwareStatus:
        """Composer."""
        return self._tool_status(
            "COMPOSER_ALLOW_SUPERUSER=1 composer --version 2>/dev/null | head -1",
            r"Composer (?:version )?(\d+\.\d+\.\d+)",
        )

    def extensions(self) -> list[str]:
        """Loaded extensions, as listed by ``php -m``."""
        lines = self.session.run("php -m 2>/dev/null").lines()
        return [ln for ln in lines if ln and not ln.startswith("[")]

    def is_extension_loaded(self, name: str) -> bool:
        return name.lower() in (ext.lower() for ext in self.extensions())

    def config_value(self, key: str) -> str | None:
        if not _INI_KEY.match(key):
            return None
        value = self.session.output(
            f"php -r {shlex.quote(f'echo ini_get({key!r});')} 2>/dev/null", timeout=10,
        )
        return value or None

    def config_file_path(self) -> str | None:
        path = self.session.output(
            "php --ini 2>/dev/null | grep 'Loaded Configuration File' | awk '{print $4}'",
            timeout=10,
        )
        return None if not path or path == "(none)" else path
