"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import base64
import posixpath
import shlex

import pytest

from hostops.adapters.base import CommandResult
from hostops.adapters.mock import MockChannel
from hostops.core.services.os_classifier import classify
from hostops.core.services.session import HostSession

NGINX_OK = (
    "nginx: the configuration file /etc/nginx/nginx.conf syntax is ok\n"
    "nginx: configuration file /etc/nginx/nginx.conf test is successful\n"
)
NGINX_BROKEN = (
    'nginx: [emerg] unexpected "}" in /etc/nginx/sites-enabled/example.com:14\n'
    "nginx: configuration file /etc/nginx/nginx.conf test failed\n"
)


class FakeHost:
    """In-memory file tree answering the commands RemoteFiles issues.

    Installed as the oldest MockChannel rule, so any ``channel.on(...)``
    a test registers afterwards takes precedence.
    """

    def __init__(self, channel: MockChannel, unit: str = "nginx"):
        self.files: dict[str, str] = {}
        self.links: dict[str, str] = {}
        self.dirs: set[str] = {"/var/www/html"}
        self.failing: set[str] = set()
        self.config_valid = True
        self.unit = unit
        self.reloads = 0
        channel.on_call("", self.handle)

    # ── State helpers ───────────────────────────────────────────

    def snapshot(self) -> tuple[dict[str, str], dict[str, str], int]:
        return dict(self.files), dict(self.links), self.reloads

    def read(self, path: str) -> str | None:
        if path in self.links:
            path = self.links[path]
        return self.files.get(path)

    def listing(self, directory: str) -> list[str]:
        directory = directory.rstrip("/")
        names = [p for p in [*self.files, *self.links] if posixpath.dirname(p) == directory]
        return sorted(posixpath.basename(p) for p in names)

    # ── Command handling ────────────────────────────────────────

    def handle(self, command: str) -> CommandResult:
        body, _, marker = command.partition(" && echo '")
        marker = marker.rstrip("'")
        if marker and marker in self.failing:
            return CommandResult.failure()

        if body.startswith(("for s in", "find ")):
            return CommandResult.failure()
        if body.startswith("sudo nginx -t"):
            if self.config_valid:
                return CommandResult.success(NGINX_OK)
            return CommandResult.failure(output=NGINX_BROKEN)

        ok, output = self._dispatch(shlex.split(body))
        if not ok:
            return CommandResult.failure()
        return CommandResult.success(f"{output}\n{marker}" if marker else output)

    def _dispatch(self, tokens: list[str]) -> tuple[bool, str]:
        head = tokens[:2]
        if head == ["sudo", "test"]:
            path = tokens[3]
            return path in self.files or path in self.links, ""
        if head == ["test", "-d"]:
            return tokens[2] in self.dirs, ""
        if "tee" in tokens:
            path = tokens[tokens.index("tee") + 1]
            self.files[path] = base64.b64decode(tokens[1]).decode("utf-8")
            return True, ""
        if head == ["sudo", "cp"]:
            src, dst = tokens[-2:]
            if src not in self.files:
                return False, ""
            self.files[dst] = self.files[src]
            return True, ""
        if head == ["sudo", "mv"]:
            src, dst = tokens[-2:]
            for table in (self.files, self.links):
                if src in table:
                    table[dst] = table.pop(src)
                    return True, ""
            return False, ""
        if head == ["sudo", "rm"]:
            path = tokens[-1]
            if "-rf" in tokens:
                self.dirs.discard(path)
                for table in (self.files, self.links):
                    for key in [k for k in table if k.startswith(f"{path}/")]:
                        del table[key]
                return True, ""
            self.files.pop(path, None)
            self.links.pop(path, None)
            return True, ""
        if head == ["sudo", "ln"]:
            target, link = tokens[-2:]
            self.links[link] = target
            return True, ""
        if head == ["sudo", "mkdir"]:
            self.dirs.add(tokens[-1])
            return True, ""
        if head == ["sudo", "rmdir"]:
            path = tokens[-1]
            if path not in self.dirs or self.listing(path):
                return False, ""
            self.dirs.discard(path)
            return True, ""
        if tokens[0] == "ls":
            return True, "\n".join(self.listing(tokens[3]))
        if head in (["sudo", "grep"], ["sudo", "cat"]):
            content = self.read(tokens[4] if head[1] == "grep" else tokens[2])
            return content is not None, content or ""
        if tokens[:3] == ["sudo", "systemctl", "reload"] and tokens[3] == self.unit:
            self.reloads += 1
            return True, ""
        if tokens[:2] == ["systemctl", "is-active"]:
            return True, "active"
        return False, ""


# ── Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def channel() -> MockChannel:
    return MockChannel()


@pytest.fixture
def session(channel: MockChannel) -> HostSession:
    """A session on an Ubuntu host."""
    s = HostSession(channel)
    s.set_classification(classify("ubuntu"))
    return s


@pytest.fixture
def rhel_session(channel: MockChannel) -> HostSession:
    """A session on a Rocky Linux host."""
    s = HostSession(channel)
    s.set_classification(classify("rocky"))
    return s


@pytest.fixture
def fake_host(channel: MockChannel) -> FakeHost:
    return FakeHost(channel)
