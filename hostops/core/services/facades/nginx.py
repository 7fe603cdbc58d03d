"""
nginx facade.
"""

from __future__ import annotations

import posixpath

from hostops.core.models.host import DistroFamily
from hostops.core.models.service import ServiceDescriptor, VersionPattern, standard_probes
from hostops.core.models.site import Layout
from hostops.core.services.facades.webserver import WebServerFacade
from hostops.core.services.path_resolver import NGINX_PATHS
from hostops.core.services.sites.listing import NGINX_DIRECTIVE_FILTER, parse_nginx_site
from hostops.core.services.sites.templates import render_nginx_site
from hostops.core.services.sites.toggles import InPlaceToggle, SiteToggle, SymlinkToggle

NGINX = ServiceDescriptor(
    id="nginx",
    display_name="Nginx",
    service_names=("nginx",),
    binary_names=("nginx",),
    probes=standard_probes(
        binaries=("nginx",),
        units=("nginx",),
        paths=("/usr/sbin/nginx", "/usr/local/bin/nginx", "/usr/bin/nginx"),
        package_pattern="nginx",
    ),
    version_command="nginx -v 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"nginx/(\d+\.\d+\.\d+)", label="nginx"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
        VersionPattern(r"(\d+\.\d+)"),
    ),
    package_pattern="nginx",
    packages={
        DistroFamily.DEBIAN: ("nginx",),
        DistroFamily.RHEL: ("nginx",),
        DistroFamily.ARCH: ("nginx",),
        DistroFamily.SUSE: ("nginx",),
    },
)


class Nginx(WebServerFacade):
    descriptor = NGINX
    path_tables = NGINX_PATHS
    probe_dir = "/etc/nginx/sites-available"
    validate_command = "sudo nginx -t 2>&1"
    success_tokens = ("syntax is ok", "test is successful")
    directive_filter = NGINX_DIRECTIVE_FILTER
    parse_site = staticmethod(parse_nginx_site)
    render_site = staticmethod(render_nginx_site)

    def site_file_name(self, domain: str) -> str:
        # sites-available entries are bare names; conf.d only includes *.conf
        if self.paths.layout == Layout.DEBIAN:
            return domain
        return f"{domain}.conf"

    def toggle_for(self, path: str) -> SiteToggle:
        paths = self.paths
        if paths.separate_enabled_dir:
            enabled = posixpath.join(paths.sites_enabled, posixpath.basename(path))
            return SymlinkToggle(self.files, path, enabled)
        return InPlaceToggle(self.files, path)
