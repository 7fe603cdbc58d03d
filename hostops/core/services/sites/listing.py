"""
Site listing: turn filtered config-file text into Website records.

Config directories on real servers are full of things that are not
sites (defaults, snippets, panel leftovers, backups). File names are
screened against a denylist before anything is read, and a parsed
entry must carry a real server name to count.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from hostops.core.models.site import SiteStatus, Website

DEFAULT_FRAMEWORK = "Static HTML"

# Directive filters passed to grep; only matching lines are fetched
NGINX_DIRECTIVE_FILTER = (
    "server_name|root|listen|fastcgi_pass|php|proxy_pass|ssl_certificate|index|include"
)
APACHE_DIRECTIVE_FILTER = (
    "ServerName|ServerAlias|DocumentRoot|VirtualHost|SSLEngine|SSLCertificateFile"
    "|ProxyPass|SetHandler|php"
)

_JUNK_FRAGMENTS = (
    "welcome", "ubuntu", "nginx", "apache", "mysql", "php", "active", "___velo",
    "echo ", "root@", "vmi", "[0", "total ", "drw", "password", "ver ", "(ubuntu)",
    "inactive", "btwaf", "well-known", "phpinfo", "rewrite", "proxy", "waf",
    "redirect", "monitor", "websocket",
)

_DEFAULT_FILES = frozenset({"default", "000-default.conf", "default.conf", "default-ssl.conf"})

_BACKUP_SUFFIXES = (".bak", ".disabled", ".save", ".orig", ".swp", "~")

_SITE_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")

_PROXY_PORTS = ("3000", "8080", "8000")


def is_valid_site_file(name: str) -> bool:
    """Whether a directory entry could be a site config."""
    trimmed = name.strip()
    if not 3 <= len(trimmed) < 100:
        return False
    lowered = trimmed.lower()
    if lowered in _DEFAULT_FILES:
        return False
    if lowered.startswith(("0.", ".")):
        return False
    if lowered.endswith(_BACKUP_SUFFIXES):
        return False
    if any(fragment in lowered for fragment in _JUNK_FRAGMENTS):
        return False
    return _SITE_NAME_RE.match(trimmed) is not None


def normalize_domain(domain: str) -> str:
    return domain.strip().strip(";\"'").lower()


def _value(line: str) -> str:
    parts = line.split()
    if len(parts) < 2:
        return ""
    return parts[1].replace(";", "").replace('"', "")


def _first_port(line: str) -> int | None:
    match = re.search(r"(\d+)", line)
    return int(match.group(1)) if match else None


def parse_nginx_site(text: str, file_name: str, enabled: bool, config_path: str = "") -> Website | None:
    """Parse grep-filtered nginx directives; None if no usable server_name."""
    domain: str | None = None
    root = ""
    port: int | None = None
    framework = DEFAULT_FRAMEWORK
    has_ssl = False

    for raw in text.splitlines():
        line = raw.strip()
        lowered = line.lower()
        if not line or line.startswith("#"):
            continue

        if lowered.startswith("server_name") and domain is None:
            candidate = _value(line)
            if candidate.startswith("SSL."):
                candidate = candidate[4:]
            if candidate and candidate not in ("_", "localhost"):
                domain = normalize_domain(candidate)
        elif lowered.startswith("root") and not root:
            root = _value(line)
        elif lowered.startswith("listen"):
            if "443" in line or "ssl" in lowered:
                has_ssl = True
            if port is None:
                port = _first_port(line)

        if "ssl_certificate" in lowered:
            has_ssl = True
        if "fastcgi_pass" in lowered or "php" in lowered:
            framework = "PHP"
        if "proxy_pass" in lowered and any(p in line for p in _PROXY_PORTS):
            if framework == DEFAULT_FRAMEWORK:
                framework = "Proxy"

    if not domain:
        return None

    return Website(
        domain=domain,
        document_root=root,
        port=port or 80,
        framework=framework,
        has_ssl=has_ssl,
        status=SiteStatus.RUNNING if enabled else SiteStatus.STOPPED,
        config_path=config_path or file_name,
    )


def parse_apache_site(text: str, file_name: str, enabled: bool, config_path: str = "") -> Website | None:
    """Parse grep-filtered Apache directives; None if no usable ServerName."""
    domain: str | None = None
    root = ""
    port: int | None = None
    framework = DEFAULT_FRAMEWORK
    has_ssl = False

    for raw in text.splitlines():
        line = raw.strip()
        lowered = line.lower()
        if not line or line.startswith("#"):
            continue

        if lowered.startswith("servername") and domain is None:
            candidate = _value(line)
            if candidate and candidate != "localhost":
                domain = normalize_domain(candidate.split(":")[0])
        elif lowered.startswith("documentroot") and not root:
            root = _value(line)
        elif lowered.startswith("<virtualhost") and port is None:
            match = re.search(r":(\d+)", line)
            if match:
                port = int(match.group(1))
                if port == 443:
                    has_ssl = True

        if lowered.startswith(("sslengine on", "sslcertificatefile")):
            has_ssl = True
        if "php" in lowered:
            framework = "PHP"
        if lowered.startswith("proxypass") and any(p in line for p in _PROXY_PORTS):
            if framework == DEFAULT_FRAMEWORK:
                framework = "Proxy"

    if not domain:
        return None

    return Website(
        domain=domain,
        document_root=root,
        port=port or 80,
        framework=framework,
        has_ssl=has_ssl,
        status=SiteStatus.RUNNING if enabled else SiteStatus.STOPPED,
        config_path=config_path or file_name,
    )


def dedupe_sites(sites: Iterable[Website]) -> list[Website]:
    """Keep the first Website per normalized domain, preserving order."""
    seen: set[str] = set()
    unique: list[Website] = []
    for site in sites:
        key = normalize_domain(site.domain)
        if key in seen:
            continue
        seen.add(key)
        unique.append(site)
    return unique


def is_enabled_name(file_name: str, enabled_names: set[str]) -> bool:
    """Match a sites-available entry against sites-enabled entries."""
    if file_name in enabled_names or f"{file_name}.conf" in enabled_names:
        return True
    return file_name.endswith(".conf") and file_name[: -len(".conf")] in enabled_names
