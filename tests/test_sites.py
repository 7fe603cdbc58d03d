"""
Tests for site parsing, listing, deduplication and templates.
"""

from hostops.core.config.loader import HostOpsConfig
from hostops.core.models.site import SiteStatus, Website
from hostops.core.services.facades.apache import Apache
from hostops.core.services.facades.nginx import Nginx
from hostops.core.services.os_classifier import classify
from hostops.core.services.session import HostSession
from hostops.core.services.sites.listing import (
    dedupe_sites,
    is_enabled_name,
    is_valid_site_file,
    parse_apache_site,
    parse_nginx_site,
)
from hostops.core.services.sites.templates import render_apache_site, render_nginx_site

EXAMPLE_NGINX = """\
server {
    listen 80;
    server_name example.com www.example.com;
    root /var/www/example;
    index index.html;
}
"""

PANEL_DUPLICATE = """\
server {
    listen 443 ssl;
    server_name example.com;
    root /www/wwwroot/example;
    ssl_certificate /etc/ssl/example.pem;
}
"""

BLOG_NGINX = """\
server {
    listen 8080;
    server_name blog.example.org;
    root /var/www/blog;
    location ~ \\.php$ {
        fastcgi_pass unix:/run/php/php8.2-fpm.sock;
    }
}
"""

# ── File screening ───────────────────────────────────────────────────


class TestSiteFileScreening:
    def test_real_site_names(self):
        assert is_valid_site_file("example.com")
        assert is_valid_site_file("shop.example.co.uk.conf")

    def test_defaults_and_backups_rejected(self):
        for name in ("default", "000-default.conf", "example.com.bak", "example.com~", ".hidden"):
            assert not is_valid_site_file(name), name

    def test_junk_rejected(self):
        assert not is_valid_site_file("phpmyadmin.conf")
        assert not is_valid_site_file("a b")
        assert not is_valid_site_file("ab")

    def test_enabled_name_matching(self):
        assert is_enabled_name("example.com", {"example.com"})
        assert is_enabled_name("example.com", {"example.com.conf"})
        assert is_enabled_name("example.com.conf", {"example.com"})
        assert not is_enabled_name("example.com", {"other.com"})


# ── Parsers ──────────────────────────────────────────────────────────


class TestParseNginx:
    def test_basic(self):
        site = parse_nginx_site(EXAMPLE_NGINX, "example.com", True, "/etc/nginx/sites-available/example.com")
        assert site.domain == "example.com"
        assert site.document_root == "/var/www/example"
        assert site.port == 80
        assert site.framework == "Static HTML"
        assert not site.has_ssl
        assert site.status == SiteStatus.RUNNING

    def test_ssl_and_php(self):
        assert parse_nginx_site(PANEL_DUPLICATE, "dup.conf", False).has_ssl
        blog = parse_nginx_site(BLOG_NGINX, "blog", True)
        assert blog.framework == "PHP"
        assert blog.port == 8080

    def test_proxy(self):
        text = "server_name app.example.com;\nlisten 80;\nproxy_pass http://127.0.0.1:3000;"
        assert parse_nginx_site(text, "app", True).framework == "Proxy"

    def test_first_server_name_wins(self):
        text = "server_name first.com;\nserver_name second.com;"
        assert parse_nginx_site(text, "x", True).domain == "first.com"

    def test_catch_all_is_not_a_site(self):
        assert parse_nginx_site("server_name _;\nlisten 80 default_server;", "x", True) is None
        assert parse_nginx_site("", "x", True) is None

    def test_disabled_status(self):
        assert parse_nginx_site(EXAMPLE_NGINX, "example.com", False).status == SiteStatus.STOPPED


class TestParseApache:
    def test_basic(self):
        text = (
            "<VirtualHost *:443>\n"
            "    ServerName Example.com:443\n"
            "    DocumentRoot /var/www/example\n"
            "    SSLEngine on\n"
        )
        site = parse_apache_site(text, "example.com.conf", True)
        assert site.domain == "example.com"
        assert site.port == 443
        assert site.has_ssl
        assert site.document_root == "/var/www/example"

    def test_php_handler(self):
        text = (
            "<VirtualHost *:80>\nServerName a.example.com\n"
            'SetHandler "proxy:unix:/run/php/php8.2-fpm.sock|fcgi://localhost"\n'
        )
        assert parse_apache_site(text, "a", True).framework == "PHP"

    def test_localhost_is_not_a_site(self):
        assert parse_apache_site("ServerName localhost", "x", True) is None


class TestDedupe:
    def test_first_occurrence_wins(self):
        sites = [
            Website(domain="example.com", document_root="/first"),
            Website(domain="EXAMPLE.com", document_root="/second"),
            Website(domain="blog.example.org"),
        ]
        unique = dedupe_sites(sites)
        assert [s.document_root for s in unique if s.domain.lower() == "example.com"] == ["/first"]
        assert len(unique) == 2


# ── Listing through the facade ───────────────────────────────────────


class TestFetchSites:
    PANEL_DIR = "/www/server/panel/vhost/nginx"

    def _nginx(self, channel, fake_host, path_priority=()):
        config = HostOpsConfig.model_validate({"sites": {"path_priority": list(path_priority)}})
        session = HostSession(channel, config)
        session.set_classification(classify("ubuntu"))
        fake_host.files["/etc/nginx/sites-available/example.com"] = EXAMPLE_NGINX
        fake_host.files["/etc/nginx/sites-available/blog.example.org"] = BLOG_NGINX
        fake_host.links["/etc/nginx/sites-enabled/example.com"] = "/etc/nginx/sites-available/example.com"
        return Nginx(session)

    def test_lists_sites_with_enabled_state(self, channel, fake_host):
        sites = {s.domain: s for s in self._nginx(channel, fake_host).fetch_sites()}
        assert set(sites) == {"example.com", "blog.example.org"}
        assert sites["example.com"].status == SiteStatus.RUNNING
        assert sites["blog.example.org"].status == SiteStatus.STOPPED

    def test_duplicate_domain_across_directories(self, channel, fake_host):
        fake_host.files[f"{self.PANEL_DIR}/example.conf"] = PANEL_DUPLICATE
        nginx = self._nginx(channel, fake_host, path_priority=[self.PANEL_DIR])

        sites = nginx.fetch_sites()
        matching = [s for s in sites if s.domain == "example.com"]
        assert len(matching) == 1
        assert matching[0].document_root == "/var/www/example"

    def test_scan_order(self, channel, fake_host):
        nginx = self._nginx(channel, fake_host, path_priority=[self.PANEL_DIR, "/etc/nginx/sites-available/"])
        assert nginx.scan_directories() == [
            "/etc/nginx/sites-available",
            "/etc/nginx/sites-enabled",
            self.PANEL_DIR,
        ]

    def test_rhel_disabled_files_are_listed_stopped(self, channel, fake_host, rhel_session):
        fake_host.files["/etc/nginx/conf.d/example.com.conf.disabled"] = EXAMPLE_NGINX
        sites = Nginx(rhel_session).fetch_sites()
        assert [(s.domain, s.status) for s in sites] == [("example.com", SiteStatus.STOPPED)]

    def test_listing_failure_is_empty(self, session):
        assert Nginx(session).fetch_sites() == []


# ── Templates ────────────────────────────────────────────────────────


class TestTemplates:
    def test_nginx_static(self):
        text = render_nginx_site("example.com", "/var/www/example", port=8080)
        assert "listen 8080;" in text
        assert "server_name example.com www.example.com;" in text
        assert "try_files $uri $uri/ =404;" in text
        assert "fastcgi_pass" not in text

    def test_nginx_php(self):
        text = render_nginx_site("example.com", "/srv/ex", php_socket="/run/php/php8.2-fpm.sock")
        assert "fastcgi_pass unix:/run/php/php8.2-fpm.sock;" in text
        assert "index.php" in text

    def test_parse_of_rendered_site(self):
        text = render_nginx_site("example.com", "/var/www/example")
        site = parse_nginx_site(text, "example.com", True)
        assert (site.domain, site.document_root, site.port) == ("example.com", "/var/www/example", 80)

    def test_apache(self):
        text = render_apache_site("example.com", "/var/www/example", php_socket="/run/php/php8.2-fpm.sock")
        assert "<VirtualHost *:80>" in text
        assert "DocumentRoot /var/www/example" in text
        assert "proxy:unix:/run/php/php8.2-fpm.sock|fcgi://localhost" in text


class TestApacheLayout:
    def test_rhel_log_names(self, rhel_session):
        assert Apache(rhel_session).log_file("error") == "/var/log/httpd/error_log"

    def test_debian_log_names(self, session):
        assert Apache(session).log_file("access") == "/var/log/apache2/access.log"
