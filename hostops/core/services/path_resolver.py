"""
Path resolver: OS-dependent file layout of web servers.

Exactly two tables per product, Debian-style and RHEL-style. The
layout is picked in three tiers:

    1. OS classification (recognized Debian or RHEL family)
    2. directory probe (a "sites-available" dir implies Debian-style)
    3. RHEL-style default

Tier 2 is what keeps unlisted or minimal distributions working.
"""

from __future__ import annotations

import logging
import shlex
import threading

from hostops.core.models.host import DistroFamily
from hostops.core.models.site import Layout, WebServerPaths
from hostops.core.services.session import HostSession

logger = logging.getLogger(__name__)


# ── Path tables ─────────────────────────────────────────────────

NGINX_PATHS: dict[Layout, WebServerPaths] = {
    Layout.DEBIAN: WebServerPaths(
        layout=Layout.DEBIAN,
        config_file="/etc/nginx/nginx.conf",
        sites_available="/etc/nginx/sites-available",
        sites_enabled="/etc/nginx/sites-enabled",
        log_dir="/var/log/nginx",
        pid_file="/run/nginx.pid",
        extra_dirs={"conf_d": "/etc/nginx/conf.d"},
    ),
    Layout.RHEL: WebServerPaths(
        layout=Layout.RHEL,
        config_file="/etc/nginx/nginx.conf",
        sites_available="/etc/nginx/conf.d",
        sites_enabled="/etc/nginx/conf.d",
        log_dir="/var/log/nginx",
        pid_file="/run/nginx.pid",
        extra_dirs={"conf_d": "/etc/nginx/conf.d"},
    ),
}

APACHE_PATHS: dict[Layout, WebServerPaths] = {
    Layout.DEBIAN: WebServerPaths(
        layout=Layout.DEBIAN,
        config_file="/etc/apache2/apache2.conf",
        sites_available="/etc/apache2/sites-available",
        sites_enabled="/etc/apache2/sites-enabled",
        log_dir="/var/log/apache2",
        pid_file="/var/run/apache2/apache2.pid",
        extra_dirs={
            "mods_available": "/etc/apache2/mods-available",
            "mods_enabled": "/etc/apache2/mods-enabled",
            "conf_available": "/etc/apache2/conf-available",
            "envvars": "/etc/apache2/envvars",
        },
    ),
    Layout.RHEL: WebServerPaths(
        layout=Layout.RHEL,
        config_file="/etc/httpd/conf/httpd.conf",
        sites_available="/etc/httpd/conf.d",
        sites_enabled="/etc/httpd/conf.d",
        log_dir="/var/log/httpd",
        pid_file="/var/run/httpd/httpd.pid",
        extra_dirs={
            "modules": "/etc/httpd/conf.modules.d",
            "envvars": "/etc/sysconfig/httpd",
        },
    ),
}

# Candidate document roots, first existing one wins
DEFAULT_DOCUMENT_ROOTS = ("/var/www/html", "/usr/share/nginx/html")


def layout_for_family(family: DistroFamily, recognized: bool) -> Layout | None:
    """Layout implied by the classification alone (None when ambiguous)."""
    if not recognized:
        return None
    if family == DistroFamily.DEBIAN:
        return Layout.DEBIAN
    if family == DistroFamily.RHEL:
        return Layout.RHEL
    return None


class PathResolver:
    """Resolves (and memoizes) one product's path table for a host.

    Args:
        tables: The product's Debian/RHEL tables.
        probe_dir: Directory whose presence implies a Debian-style layout.
    """

    def __init__(
        self,
        session: HostSession,
        tables: dict[Layout, WebServerPaths],
        probe_dir: str,
    ):
        self.session = session
        self.tables = tables
        self.probe_dir = probe_dir
        self._paths: WebServerPaths | None = None
        self._document_root: str | None = None
        self._lock = threading.Lock()

    def resolve_layout(self) -> Layout:
        classification = self.session.classification
        layout = layout_for_family(classification.family, classification.recognized)
        if layout is not None:
            return layout

        probe = self.session.run(
            f"test -d {shlex.quote(self.probe_dir)} && echo 'DEBIAN'", timeout=5,
        )
        if "DEBIAN" in probe.output:
            logger.debug("Found %s, using Debian-style layout", self.probe_dir)
            return Layout.DEBIAN
        return Layout.RHEL

    def get_paths(self) -> WebServerPaths:
        with self._lock:
            if self._paths is None:
                self._paths = self.tables[self.resolve_layout()]
            return self._paths

    def default_document_root(self) -> str:
        with self._lock:
            if self._document_root is None:
                self._document_root = DEFAULT_DOCUMENT_ROOTS[-1]
                for candidate in DEFAULT_DOCUMENT_ROOTS:
                    check = self.session.run(
                        f"test -d {shlex.quote(candidate)} && echo 'EXISTS'", timeout=5,
                    )
                    if "EXISTS" in check.output:
                        self._document_root = candidate
                        break
            return self._document_root
