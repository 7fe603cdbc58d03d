"""
Shared web-server facade: site listing, the site transaction, and
config access for any server with a virtual-host directory layout.

Products supply their path tables, config-test command, directive
filter, parser, template and toggle mechanism; everything else lives
here.
"""

from __future__ import annotations

import logging
import posixpath
import re
import shlex
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from hostops.core.errors import TransactionError
from hostops.core.models.site import Layout, SiteRequest, SiteStatus, WebServerPaths, Website
from hostops.core.services.config_validator import ConfigValidator, ValidationResult
from hostops.core.services.facades.base import Controllable, ServiceFacade, WebServer
from hostops.core.services.path_resolver import PathResolver
from hostops.core.services.remote_files import RemoteFiles
from hostops.core.services.session import HostSession
from hostops.core.services.sites.listing import (
    DEFAULT_FRAMEWORK,
    dedupe_sites,
    is_enabled_name,
    is_valid_site_file,
    normalize_domain,
)
from hostops.core.services.sites.toggles import DISABLED_SUFFIX, SiteToggle
from hostops.core.services.sites.transaction import SiteTransaction
from hostops.core.services.versions.catalog import CatalogClient

logger = logging.getLogger(__name__)

_DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*$")

# PHP-FPM sockets in preference order; {v} is the requested PHP version
_VERSIONED_SOCKETS = ("/run/php/php{v}-fpm.sock", "/var/run/php/php{v}-fpm.sock")
_GENERIC_SOCKETS = (
    "/run/php/php-fpm.sock",
    "/var/run/php/php-fpm.sock",
    "/run/php-fpm/www.sock",
    "/var/run/php-fpm/www.sock",
)
_SOCKET_DIRS = ("/run/php", "/var/run/php", "/run/php-fpm")

SiteParser = Callable[[str, str, bool, str], Website | None]
SiteRenderer = Callable[..., str]


class WebServerFacade(Controllable, ServiceFacade, WebServer):
    """Base for nginx and Apache.

    Subclasses set the class attributes below and implement
    ``site_file_name`` and ``toggle_for``.
    """

    path_tables: dict[Layout, WebServerPaths]
    probe_dir: str
    validate_command: str
    success_tokens: tuple[str, ...]
    directive_filter: str
    parse_site: SiteParser
    render_site: SiteRenderer

    def __init__(self, session: HostSession, catalog: CatalogClient | None = None):
        super().__init__(session, catalog)
        self.files = RemoteFiles(session)
        self.path_resolver = PathResolver(session, self.path_tables, self.probe_dir)
        self.validator = ConfigValidator(session, self.validate_command, self.success_tokens)

    @property
    def paths(self) -> WebServerPaths:
        return self.path_resolver.get_paths()

    # ── Per-product hooks ───────────────────────────────────────

    def site_file_name(self, domain: str) -> str:
        return f"{domain}.conf"

    def toggle_for(self, path: str) -> SiteToggle:
        raise NotImplementedError

    def site_path(self, domain: str) -> str:
        return posixpath.join(self.paths.sites_available, self.site_file_name(domain))

    # ── Listing ─────────────────────────────────────────────────

    def scan_directories(self) -> list[str]:
        """Directories holding site configs, in deduplication priority order."""
        paths = self.paths
        ordered = [paths.sites_available, paths.sites_enabled, *self.session.config.sites.path_priority]
        return list(dict.fromkeys(d.rstrip("/") for d in ordered if d))

    def _site_candidates(self) -> list[tuple[str, bool]]:
        """(config path, enabled) pairs to read, in priority order."""
        paths = self.paths
        enabled_names: set[str] = set()
        if paths.separate_enabled_dir:
            enabled_names = set(self.files.list_dir(paths.sites_enabled))

        candidates: list[tuple[str, bool]] = []
        seen_names: set[str] = set()
        for directory in self.scan_directories():
            for entry in sorted(self.files.list_dir(directory)):
                name, enabled = entry, True
                if entry.endswith(DISABLED_SUFFIX):
                    name, enabled = entry[: -len(DISABLED_SUFFIX)], False
                if not is_valid_site_file(name):
                    continue
                if directory == paths.sites_enabled.rstrip("/") and name in seen_names:
                    continue
                if paths.separate_enabled_dir and directory == paths.sites_available.rstrip("/"):
                    enabled = enabled and is_enabled_name(name, enabled_names)
                seen_names.add(name)
                candidates.append((posixpath.join(directory, entry), enabled))
        return candidates

    def _read_site(self, candidate: tuple[str, bool]) -> Website | None:
        path, enabled = candidate
        filtered = self.session.output(
            f"sudo grep -Ei {shlex.quote(f'^[^#]*({self.directive_filter})')} "
            f"{shlex.quote(path)} 2>/dev/null | head -40"
        )
        if not filtered:
            return None
        return type(self).parse_site(filtered, posixpath.basename(path), enabled, path)

    def fetch_sites(self) -> list[Website]:
        """Every site across the scanned directories, one per domain."""
        try:
            candidates = self._site_candidates()
            with ThreadPoolExecutor(max_workers=4) as pool:
                parsed = list(pool.map(self._read_site, candidates))
        except Exception as e:
            logger.warning("Listing %s sites failed: %s", self.id, e)
            return []
        return dedupe_sites(site for site in parsed if site is not None)

    # ── Site transaction ────────────────────────────────────────

    def _find_site_path(self, domain: str) -> str:
        """Existing config path for ``domain``, else where a new one goes."""
        available = self.paths.sites_available
        for name in dict.fromkeys((self.site_file_name(domain), domain, f"{domain}.conf")):
            path = posixpath.join(available, name)
            if self.files.exists(path) or self.files.exists(f"{path}{DISABLED_SUFFIX}"):
                return path
        return self.site_path(domain)

    def _transaction(self, path: str) -> SiteTransaction:
        return SiteTransaction(
            files=self.files,
            path=path,
            toggle=self.toggle_for(path),
            validate=self.validate_config,
            reload=self.reload,
        )

    def php_socket(self, php_version: str | None = None) -> str | None:
        """Path of a PHP-FPM socket on the host, if any."""
        candidates = list(_GENERIC_SOCKETS)
        if php_version:
            candidates = [s.format(v=php_version) for s in _VERSIONED_SOCKETS] + candidates
        quoted = " ".join(shlex.quote(c) for c in candidates)
        result = self.session.run(
            f'for s in {quoted}; do if test -S "$s"; then echo "$s"; break; fi; done', timeout=5,
        )
        for line in result.lines():
            if line.startswith("/"):
                return line

        dirs = " ".join(shlex.quote(d) for d in _SOCKET_DIRS)
        found = self.session.run(
            f"find {dirs} -maxdepth 1 -type s -name '*.sock' 2>/dev/null | sort -V -r | head -1",
            timeout=5,
        )
        lines = found.lines()
        return lines[0] if lines and lines[0].startswith("/") else None

    def create_site(self, request: SiteRequest) -> Website:
        """Write, enable and validate a site config; roll back on failure.

        Raises:
            TransactionError: after the host has been restored.
        """
        domain = normalize_domain(request.domain)
        if not _DOMAIN_RE.match(domain):
            raise TransactionError.unknown(f"Invalid domain: {request.domain!r}")

        with self._mutation_lock:
            root = request.document_root.strip()
            if not root:
                root = f"{self.path_resolver.default_document_root()}/{domain.replace('.', '_')}"
            if not root.startswith("/"):
                root = f"/{root}"
            root_existed = self.files.is_dir(root)
            if not root_existed and not self.files.make_dir(root):
                raise TransactionError.file_write_failed(f"Could not create document root {root}")

            socket = self.php_socket(request.php_version)
            content = type(self).render_site(
                domain, root, port=request.port, log_dir=self.paths.log_dir, php_socket=socket,
            )
            path = self._find_site_path(domain)
            try:
                report = self._transaction(path).apply(content)
            except TransactionError:
                if not root_existed and not self.files.remove_empty_dir(root):
                    logger.warning("Could not remove document root %s after rollback", root)
                raise
            logger.info(
                "%s site %s %s", self.display_name, domain, "updated" if report.updated else "created",
            )

        return Website(
            domain=domain,
            document_root=root,
            port=request.port,
            framework="PHP" if socket else DEFAULT_FRAMEWORK,
            status=SiteStatus.RUNNING,
            config_path=path,
        )

    def delete_site(self, domain: str, delete_files: bool = False) -> bool:
        """Disable and remove a site config, optionally its document root.

        Raises:
            TransactionError: after the host has been restored.
        """
        domain = normalize_domain(domain)
        with self._mutation_lock:
            path = self._find_site_path(domain)
            root = ""
            if delete_files:
                site = self._read_site((path, True))
                root = site.document_root if site else ""

            self._transaction(path).remove()
            logger.info("%s site %s deleted", self.display_name, domain)

            if delete_files and root:
                if not self.files.remove_tree(root):
                    logger.warning("Site %s deleted but files at %s were kept", domain, root)
        return True

    def enable_site(self, domain: str) -> bool:
        domain = normalize_domain(domain)
        with self._mutation_lock:
            toggle = self.toggle_for(self._find_site_path(domain))
            if toggle.is_enabled():
                return True
            if not toggle.enable():
                return False
            if not self.validate_config().is_valid:
                toggle.disable()
                return False
            return self.reload()

    def disable_site(self, domain: str) -> bool:
        domain = normalize_domain(domain)
        with self._mutation_lock:
            toggle = self.toggle_for(self._find_site_path(domain))
            if not toggle.is_enabled():
                return True
            return toggle.disable() and self.reload()

    # ── Config access ───────────────────────────────────────────

    def validate_config(self) -> ValidationResult:
        return self.validator.validate()

    def read_config(self) -> str:
        return self.files.read(self.paths.config_file)

    def log_file(self, kind: str = "error") -> str:
        return posixpath.join(self.paths.log_dir, f"{kind}.log")

    def read_logs(self, lines: int = 100, kind: str = "error") -> str:
        """Tail of the ``error`` or ``access`` log."""
        return self.files.tail(self.log_file(kind), lines)
