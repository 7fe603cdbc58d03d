"""
Tests for the capability catalog client and install-command selection.
"""

import json
import urllib.error

import pytest

from hostops.core.errors import CatalogError
from hostops.core.models.versions import Capability, CapabilityVersion
from hostops.core.services.versions.catalog import (
    CatalogClient,
    install_command_for,
    resolve_instruction,
)

NGINX_CAPABILITY = {
    "id": 3,
    "name": "Nginx",
    "slug": "nginx",
    "category": "web",
    "versions": [
        {
            "version": "1.24",
            "stability": "stable",
            "is_default": True,
            "install_commands": {
                "ubuntu": {"default": "apt-get install nginx=1.24*", "ppa": "add-apt-repository ..."},
                "rocky": ["dnf module enable nginx:1.24", "dnf install -y nginx"],
            },
        },
        {"version": "1.26", "install_commands": {"linux": "curl -sL https://example.test/nginx | sh"}},
    ],
}


class _Response:
    def __init__(self, body: bytes):
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeOpener:
    """Stands in for ``urllib.request.urlopen``; maps URL suffixes to payloads."""

    def __init__(self, routes: dict[str, object]):
        self.routes = routes
        self.requests: list[str] = []

    def __call__(self, req, timeout=None):
        url = req.full_url
        self.requests.append(url)
        for suffix, payload in self.routes.items():
            if url.endswith(suffix):
                if isinstance(payload, Exception):
                    raise payload
                body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
                return _Response(body)
        raise urllib.error.HTTPError(url, 404, "Not Found", {}, None)


def _client(routes) -> tuple[CatalogClient, FakeOpener]:
    opener = FakeOpener(routes)
    return CatalogClient("https://catalog.example.test/api/v1/", opener=opener), opener


# ── Instruction resolution ───────────────────────────────────────────


class TestResolveInstruction:
    def test_string(self):
        assert resolve_instruction("  apt-get install nginx ") == "apt-get install nginx"

    def test_variant_map_prefers_default(self):
        assert resolve_instruction({"ppa": "a", "default": "b"}) == "b"
        assert resolve_instruction({"ppa": "a", "other": "b"}) == "a"

    def test_command_list_is_chained(self):
        assert resolve_instruction(["apt-get update", "", "apt-get install -y nginx"]) == (
            "apt-get update && apt-get install -y nginx"
        )

    def test_empty(self):
        assert resolve_instruction(None) is None
        assert resolve_instruction([]) is None
        assert resolve_instruction({"default": "  "}) is None


class TestInstallCommandFor:
    VERSION = CapabilityVersion.model_validate(NGINX_CAPABILITY["versions"][0])

    def test_exact_os_id(self):
        assert install_command_for(self.VERSION, "rocky") == (
            "dnf module enable nginx:1.24 && dnf install -y nginx"
        )

    def test_alias_fallback(self):
        assert install_command_for(self.VERSION, "linuxmint") == "apt-get install nginx=1.24*"

    def test_custom_aliases(self):
        assert install_command_for(self.VERSION, "almalinux", aliases=["rocky"]).startswith("dnf")

    def test_generic_linux_key(self):
        version = CapabilityVersion.model_validate(NGINX_CAPABILITY["versions"][1])
        assert install_command_for(version, "arch").startswith("curl")

    def test_nothing_applicable(self):
        version = CapabilityVersion(version="1.0", install_commands={"rocky": "dnf install x"})
        assert install_command_for(version, "ubuntu") is None


class TestCapabilityModel:
    def test_version_lookup(self):
        capability = Capability.model_validate(NGINX_CAPABILITY)
        assert capability.version("1.26").version == "1.26"
        assert capability.version("9.9") is None
        assert capability.version_names == ["1.24", "1.26"]

    def test_default_version_entry(self):
        capability = Capability.model_validate({
            "slug": "redis",
            "default_version": {"version": "7.2", "install_commands": {"linux": "x"}},
        })
        assert capability.version("7.2") is not None


# ── HTTP client ──────────────────────────────────────────────────────


class TestCatalogClient:
    def test_wrapped_payload(self):
        client, opener = _client({"/capabilities/nginx": {"data": NGINX_CAPABILITY}})
        capability = client.fetch_capability_details("nginx")
        assert capability.slug == "nginx"
        assert opener.requests == ["https://catalog.example.test/api/v1/capabilities/nginx"]

    def test_bare_payload(self):
        client, _ = _client({"/capabilities": [NGINX_CAPABILITY, {"slug": "redis"}]})
        assert [c.slug for c in client.fetch_capabilities()] == ["nginx", "redis"]

    def test_version_details(self):
        client, _ = _client({"/capabilities/nginx/1.24": NGINX_CAPABILITY["versions"][0]})
        assert client.fetch_version_details("nginx", "1.24").is_default

    def test_path_segments_are_escaped(self):
        client, opener = _client({})
        with pytest.raises(CatalogError):
            client.fetch_version_details("php", "8.1/../../admin?x=1")
        with pytest.raises(CatalogError):
            client.fetch_capability_details("my app")
        assert opener.requests == [
            "https://catalog.example.test/api/v1/capabilities/php/8.1%2F..%2F..%2Fadmin%3Fx%3D1",
            "https://catalog.example.test/api/v1/capabilities/my%20app",
        ]

    def test_responses_are_cached(self):
        client, opener = _client({"/capabilities/nginx": NGINX_CAPABILITY})
        client.fetch_capability_details("nginx")
        client.fetch_capability_details("nginx")
        assert len(opener.requests) == 1

        client.clear_cache()
        client.fetch_capability_details("nginx")
        assert len(opener.requests) == 2

    def test_http_error(self):
        client, _ = _client({})
        with pytest.raises(CatalogError, match="HTTP 404"):
            client.fetch_capability_details("nope")

    def test_unreachable(self):
        client, _ = _client({"/capabilities": urllib.error.URLError("connection refused")})
        with pytest.raises(CatalogError, match="unreachable"):
            client.fetch_capabilities()

    def test_invalid_json(self):
        client, _ = _client({"/capabilities/nginx": b"<html>"})
        with pytest.raises(CatalogError, match="invalid JSON"):
            client.fetch_capability_details("nginx")

    def test_malformed_entries(self):
        client, _ = _client({"/capabilities": {"slug": "not-a-list"}})
        with pytest.raises(CatalogError, match="list"):
            client.fetch_capabilities()
        client, _ = _client({"/capabilities/x": {"name": "no slug"}})
        with pytest.raises(CatalogError, match="Malformed"):
            client.fetch_capability_details("x")
