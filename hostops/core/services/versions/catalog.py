"""
Capability catalog client: which versions of a product exist, and how
to install them on a given OS.

The catalog is a read-only JSON API. Bodies may be wrapped as
``{"data": ...}`` or returned bare. Responses are cached briefly since
a single install dialog asks for the same capability several times.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from hostops.core.config.loader import DEFAULT_CATALOG_URL
from hostops.core.errors import CatalogError
from hostops.core.models.versions import Capability, CapabilityVersion, InstallInstruction

logger = logging.getLogger(__name__)

_CACHE_TTL = 300

# Generic keys tried after the OS id and its aliases
_GENERIC_OS_KEYS = ("linux", "default")

Opener = Callable[..., Any]


def _segment(value: str) -> str:
    """``value`` as a single URL path segment."""
    return urllib.parse.quote(value, safe="")


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def resolve_instruction(instruction: InstallInstruction | None) -> str | None:
    """One shell command from a catalog instruction.

    A variant map prefers its ``default`` key, then its first entry; a
    command list is joined with ``&&``.
    """
    if not instruction:
        return None
    if isinstance(instruction, str):
        return instruction.strip() or None
    if isinstance(instruction, list):
        commands = [c.strip() for c in instruction if c and c.strip()]
        return " && ".join(commands) if commands else None
    if "default" in instruction and instruction["default"].strip():
        return instruction["default"].strip()
    for command in instruction.values():
        if command and command.strip():
            return command.strip()
    return None


def install_command_for(
    version: CapabilityVersion,
    os_id: str,
    aliases: list[str] | tuple[str, ...] = ("ubuntu", "debian"),
) -> str | None:
    """Install command for ``os_id``: exact id, then aliases, then generic keys."""
    commands = {k.lower(): v for k, v in version.install_commands.items()}
    keys = [os_id.lower(), *[a.lower() for a in aliases], *_GENERIC_OS_KEYS]
    for key in dict.fromkeys(k for k in keys if k):
        command = resolve_instruction(commands.get(key))
        if command:
            if key != os_id.lower():
                logger.info("No install command for %r, using %r entry", os_id, key)
            return command
    return None


class CatalogClient:
    """HTTP client for the capability catalog.

    Args:
        base_url: API root, e.g. ``https://velo.3zozz.com/api/v1``.
        timeout: Per-request timeout in seconds.
        opener: ``urllib.request.urlopen`` compatible callable.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_CATALOG_URL,
        timeout: float = 15.0,
        opener: Opener | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._opener = opener or urllib.request.urlopen
        self._cache: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        with self._lock:
            cached = self._cache.get(url)
            if cached and (time.time() - cached[0]) < _CACHE_TTL:
                return cached[1]

        req = urllib.request.Request(
            url,
            headers={"Accept": "application/json", "User-Agent": "hostops/1.0"},
        )
        logger.debug("GET %s", url)
        try:
            with self._opener(req, timeout=self.timeout) as resp:
                payload = json.loads(resp.read())
        except urllib.error.HTTPError as e:
            raise CatalogError(f"Catalog returned HTTP {e.code} for {path}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise CatalogError(f"Catalog unreachable: {e}") from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Catalog sent invalid JSON for {path}: {e}") from e

        data = _unwrap(payload)
        with self._lock:
            self._cache[url] = (time.time(), data)
        return data

    def fetch_capabilities(self) -> list[Capability]:
        data = self._get("/capabilities")
        if not isinstance(data, list):
            raise CatalogError("Expected a list of capabilities")
        try:
            return [Capability.model_validate(item) for item in data]
        except ValidationError as e:
            raise CatalogError(f"Malformed capability list: {e}") from e

    def fetch_capability_details(self, slug: str) -> Capability:
        data = self._get(f"/capabilities/{_segment(slug)}")
        try:
            return Capability.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Malformed capability {slug!r}: {e}") from e

    def fetch_version_details(self, slug: str, version: str) -> CapabilityVersion:
        data = self._get(f"/capabilities/{_segment(slug)}/{_segment(version)}")
        try:
            return CapabilityVersion.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Malformed version {slug} {version}: {e}") from e

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
