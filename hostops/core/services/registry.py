"""
Service registry: the facades of one host, built on first use.

There are no process-wide facade instances. A registry is constructed
per host (channel) and passed to whoever needs it, so tests build one
around a MockChannel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from hostops.adapters.base import CommandChannel
from hostops.core.config.loader import HostOpsConfig
from hostops.core.errors import HostOpsError
from hostops.core.models.status import SoftwareStatus
from hostops.core.services.facades.apache import Apache
from hostops.core.services.facades.base import ServiceFacade
from hostops.core.services.facades.mongodb import MongoDB
from hostops.core.services.facades.mysql import MySQL
from hostops.core.services.facades.nginx import Nginx
from hostops.core.services.facades.node import Node
from hostops.core.services.facades.php import PHP
from hostops.core.services.facades.postgresql import PostgreSQL
from hostops.core.services.facades.python import Python
from hostops.core.services.facades.redis import Redis
from hostops.core.services.session import HostSession
from hostops.core.services.versions.catalog import CatalogClient
from hostops.core.services.versions.install_flow import InstallFlow, ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")

FACADE_TYPES: dict[str, type[ServiceFacade]] = {
    cls.descriptor.id: cls
    for cls in (Nginx, Apache, MySQL, PostgreSQL, PHP, Node, Python, Redis, MongoDB)
}


def _alias_table() -> dict[str, str]:
    table: dict[str, str] = {}
    for service_id, cls in FACADE_TYPES.items():
        for alias in cls.descriptor.aliases:
            table.setdefault(alias, service_id)
    return table


_ALIASES = _alias_table()


def canonical_id(name: str) -> str | None:
    """Registry id for ``name`` or one of its aliases (None if unknown)."""
    key = name.strip().lower()
    if key in FACADE_TYPES:
        return key
    return _ALIASES.get(key)


class ServiceRegistry:
    """Lazily-built facades for one host.

    Args:
        channel: Command channel to the host.
        config: Loaded configuration (defaults when omitted).
        catalog: Capability catalog client (built from config when omitted).
    """

    def __init__(
        self,
        channel: CommandChannel,
        config: HostOpsConfig | None = None,
        catalog: CatalogClient | None = None,
    ):
        self.session = HostSession(channel, config)
        settings = self.session.config.catalog
        self.catalog = catalog or CatalogClient(settings.base_url, settings.timeout)
        self._facades: dict[str, ServiceFacade] = {}
        self._lock = threading.Lock()

    def list_services(self) -> list[str]:
        return list(FACADE_TYPES)

    def get(self, name: str) -> ServiceFacade | None:
        """Facade for ``name`` (an id or alias), or None if unknown."""
        service_id = canonical_id(name)
        if service_id is None:
            return None
        with self._lock:
            facade = self._facades.get(service_id)
            if facade is None:
                facade = FACADE_TYPES[service_id](self.session, self.catalog)
                self._facades[service_id] = facade
                logger.debug("Built facade %s for %s", service_id, self.session.channel.name)
            return facade

    def require(self, name: str) -> ServiceFacade:
        facade = self.get(name)
        if facade is None:
            known = ", ".join(self.list_services())
            raise HostOpsError(f"Unknown service {name!r} (known: {known})")
        return facade

    def with_capability(self, capability: type[T]) -> list[T]:
        """Every facade implementing ``capability``, e.g. ``WebServer``."""
        facades = [self.require(service_id) for service_id in FACADE_TYPES]
        return [f for f in facades if isinstance(f, capability)]

    def statuses(self, names: list[str] | None = None) -> dict[str, SoftwareStatus]:
        """Status of several products, queried concurrently."""
        facades = [self.require(n) for n in (names or self.list_services())]
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda f: f.get_status(), facades))
        return {f.id: status for f, status in zip(facades, results)}

    def install_flow(self, on_progress: ProgressCallback | None = None) -> InstallFlow:
        return InstallFlow(self.session, self.catalog, on_progress=on_progress)
