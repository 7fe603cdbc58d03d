"""
Tests for the detector probe chain and version resolution.
"""

import itertools

from hostops.core.models.service import ProbeKind
from hostops.core.services.detector import Detector, parse_unit_listing
from hostops.core.services.facades.apache import APACHE
from hostops.core.services.facades.mysql import MYSQL
from hostops.core.services.facades.nginx import NGINX
from hostops.core.services.facades.postgresql import POSTGRESQL
from hostops.core.services.version_resolver import (
    VersionOrder,
    VersionResolver,
    compare_versions,
    extract_version,
    sort_versions,
)

NGINX_UNIT_LINE = "nginx.service loaded active running A high performance web server"

# ── Probe chain ──────────────────────────────────────────────────────


class TestDetector:
    def test_binary_probe_wins_first(self, channel, session):
        channel.on("which nginx", "/usr/sbin/nginx\n")
        result = Detector(NGINX, session).detect()
        assert result.installed
        assert result.matched_probe == ProbeKind.BINARY
        assert result.service_name == "nginx"
        assert not channel.commands_containing("systemctl")

    def test_unit_probe_stops_the_chain(self, channel, session):
        # which: empty output, exit 1 (the mock default)
        channel.on("systemctl list-units", NGINX_UNIT_LINE)
        result = Detector(NGINX, session).detect()

        assert result.installed
        assert result.service_name == "nginx"
        assert result.matched_probe == ProbeKind.SERVICE_UNIT
        assert len(channel.commands_containing("which nginx")) == 1
        assert not channel.commands_containing("ls -1")
        assert not channel.commands_containing("dpkg")

    def test_common_path_probe(self, channel, session):
        channel.on("ls -1 /usr/sbin/nginx", "/usr/sbin/nginx")
        result = Detector(NGINX, session).detect()
        assert result.matched_probe == ProbeKind.COMMON_PATH
        assert not channel.commands_containing("dpkg")

    def test_package_probe_last(self, channel, session):
        channel.on("dpkg -l", "1")
        result = Detector(NGINX, session).detect()
        assert result.installed
        assert result.matched_probe == ProbeKind.PACKAGE

    def test_nothing_found(self, channel, session):
        channel.on("dpkg -l", "0")
        result = Detector(NGINX, session).detect()
        assert not result.installed
        assert result.service_name is None

    def test_timeouts_are_inconclusive(self, channel, session):
        channel.on_timeout("which")
        channel.on_timeout("systemctl")
        channel.on("dpkg -l", "1")
        assert Detector(NGINX, session).detect().installed

    def test_detect_is_idempotent(self, channel, session):
        channel.on("systemctl list-units", NGINX_UNIT_LINE)
        detector = Detector(NGINX, session)
        first, second = detector.detect(), detector.detect()
        assert (first.installed, first.service_name) == (second.installed, second.service_name)

    def test_dynamic_service_name(self, channel, session):
        # binary found as httpd, unit discovered separately
        channel.on("which httpd", "/usr/sbin/httpd")
        channel.on("systemctl list-units --type=service --all --no-legend --plain httpd.service",
                   "httpd.service loaded active running The Apache HTTP Server")
        result = Detector(APACHE, session).detect()
        assert result.installed
        assert result.service_name == "httpd"

    def test_dynamic_service_name_falls_back_to_default(self, channel, session):
        channel.on("which apache2", "/usr/sbin/apache2")
        assert Detector(APACHE, session).detect().service_name == "apache2"


class TestParseUnitListing:
    def test_skips_not_found(self):
        output = "mysql.service not-found inactive dead mysql.service\nmariadb.service loaded active running MariaDB"
        assert parse_unit_listing(output) == "mariadb"

    def test_unit_file_listing(self):
        assert parse_unit_listing("postgresql.service enabled enabled") == "postgresql"

    def test_bullet_prefix(self):
        assert parse_unit_listing("● redis-server.service loaded failed failed Redis") == "redis-server"

    def test_empty(self):
        assert parse_unit_listing("") is None


# ── Version parsing ──────────────────────────────────────────────────


class TestExtractVersion:
    def test_mariadb_branded_version_wins(self):
        output = "mysql  Ver 15.1 Distrib 10.6.12-MariaDB, for debian-linux-gnu (x86_64)"
        assert extract_version(output, MYSQL.version_patterns) == "10.6.12"

    def test_mysql(self):
        output = "mysql  Ver 8.0.32-0ubuntu0.22.04.2 for Linux on x86_64 ((Ubuntu))"
        assert extract_version(output, MYSQL.version_patterns) == "8.0.32"

    def test_nginx(self):
        assert extract_version("nginx version: nginx/1.24.0 (Ubuntu)", NGINX.version_patterns) == "1.24.0"

    def test_postgresql_major_only(self):
        assert extract_version("psql (PostgreSQL) 16", POSTGRESQL.version_patterns) == "16"
        assert extract_version("psql (PostgreSQL) 14.10 (Ubuntu 14.10-1)", POSTGRESQL.version_patterns) == "14.10"

    def test_no_match_is_none(self):
        assert extract_version("command not found", NGINX.version_patterns) is None
        assert extract_version("", NGINX.version_patterns) is None

    def test_resolver_runs_version_command(self, channel, session):
        channel.on("nginx -v", "nginx version: nginx/1.18.0")
        assert VersionResolver.for_descriptor(NGINX, session).get_version() == "1.18.0"


class TestCompareVersions:
    SAMPLES = ["1", "1.0", "1.0.1", "8.0.32", "8.1", "10.6", "10.6.12", "10.11.2", "2.10", "2.9.9"]

    def test_examples(self):
        assert compare_versions("10.6", "10.6.12") == VersionOrder.LESS
        assert compare_versions("8.0.32", "8.0.32") == VersionOrder.EQUAL
        assert compare_versions("2.10", "2.9.9") == VersionOrder.GREATER
        assert compare_versions("1", "1.0.0") == VersionOrder.EQUAL

    def test_antisymmetric(self):
        for a, b in itertools.product(self.SAMPLES, repeat=2):
            assert compare_versions(a, b) == -compare_versions(b, a)

    def test_transitive(self):
        for a, b, c in itertools.product(self.SAMPLES, repeat=3):
            if compare_versions(a, b) <= 0 and compare_versions(b, c) <= 0:
                assert compare_versions(a, c) <= 0

    def test_sort_versions(self):
        assert sort_versions(["8.1", "8.3", "7.4", "8.3", ""]) == ["8.3", "8.1", "7.4"]
        assert sort_versions(["10.6", "9.6"], descending=False) == ["9.6", "10.6"]
