"""
Apache facade (``apache2`` on Debian-style hosts, ``httpd`` elsewhere).
"""

from __future__ import annotations

import posixpath

from hostops.core.models.host import DistroFamily
from hostops.core.models.service import ServiceDescriptor, VersionPattern, standard_probes
from hostops.core.models.site import Layout
from hostops.core.services.facades.webserver import WebServerFacade
from hostops.core.services.path_resolver import APACHE_PATHS
from hostops.core.services.sites.listing import APACHE_DIRECTIVE_FILTER, parse_apache_site
from hostops.core.services.sites.templates import render_apache_site
from hostops.core.services.sites.toggles import CommandToggle, InPlaceToggle, SiteToggle

APACHE = ServiceDescriptor(
    id="apache",
    display_name="Apache",
    service_names=("apache2", "httpd"),
    binary_names=("apache2", "httpd"),
    probes=standard_probes(
        binaries=("apache2", "httpd"),
        units=("apache2", "httpd"),
        paths=("/usr/sbin/apache2", "/usr/sbin/httpd", "/usr/local/apache2/bin/httpd"),
        package_pattern="apache2|httpd",
    ),
    version_command="{ apache2 -v 2>/dev/null || httpd -v; } 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"Apache/(\d+\.\d+\.\d+)", label="apache"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
    ),
    package_pattern="apache2|httpd",
    packages={
        DistroFamily.DEBIAN: ("apache2",),
        DistroFamily.RHEL: ("httpd",),
        DistroFamily.ARCH: ("apache",),
        DistroFamily.SUSE: ("apache2",),
    },
    aliases=("apache2", "httpd"),
)


class Apache(WebServerFacade):
    descriptor = APACHE
    path_tables = APACHE_PATHS
    probe_dir = "/etc/apache2/sites-available"
    validate_command = "sudo apache2ctl configtest 2>&1 || sudo apachectl configtest 2>&1"
    success_tokens = ("syntax ok",)
    directive_filter = APACHE_DIRECTIVE_FILTER
    parse_site = staticmethod(parse_apache_site)
    render_site = staticmethod(render_apache_site)

    def toggle_for(self, path: str) -> SiteToggle:
        paths = self.paths
        if paths.separate_enabled_dir:
            name = posixpath.basename(path)
            enabled = posixpath.join(paths.sites_enabled, name)
            return CommandToggle(self.files, name, enabled)
        return InPlaceToggle(self.files, path)

    def log_file(self, kind: str = "error") -> str:
        if self.paths.layout == Layout.RHEL:
            return posixpath.join(self.paths.log_dir, f"{kind}_log")
        return super().log_file(kind)
