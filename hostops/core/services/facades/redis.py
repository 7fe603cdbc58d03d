"""
Redis facade.

Redis databases are numbered keyspaces (``db0``, ``db1``, ...). They
cannot be created or named; "deleting" one flushes it. Users are
Redis 6+ ACL users.
"""

from __future__ import annotations

import logging
import re
import shlex
from datetime import datetime

from hostops.core.errors import DatabaseError
from hostops.core.models.database import Database, DatabaseUser
from hostops.core.models.host import DistroFamily
from hostops.core.models.service import ServiceDescriptor, VersionPattern, standard_probes
from hostops.core.services.facades.base import Controllable, DatabaseServer, ServiceFacade

logger = logging.getLogger(__name__)

REDIS = ServiceDescriptor(
    id="redis",
    display_name="Redis",
    service_names=("redis-server", "redis"),
    binary_names=("redis-server",),
    probes=standard_probes(
        binaries=("redis-server",),
        units=("redis-server", "redis"),
        paths=("/usr/bin/redis-server", "/usr/local/bin/redis-server"),
        package_pattern="redis",
    ),
    version_command="redis-server --version 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"v=(\d+\.\d+\.\d+)", label="redis"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
    ),
    package_pattern="redis",
    packages={
        DistroFamily.DEBIAN: ("redis-server",),
        DistroFamily.RHEL: ("redis",),
        DistroFamily.ARCH: ("redis",),
        DistroFamily.SUSE: ("redis",),
    },
    aliases=("redis-server",),
)

# db0:keys=5,expires=0,avg_ttl=0
_KEYSPACE_RE = re.compile(r"^db(\d+):keys=(\d+)")
_DB_NAME_RE = re.compile(r"^db(\d{1,4})$")
_USER_RE = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


def _db_index(name: str) -> int:
    match = _DB_NAME_RE.match(name or "")
    if not match:
        raise DatabaseError.invalid_name(name)
    return int(match.group(1))


def _check_user(name: str) -> str:
    if not _USER_RE.match(name or ""):
        raise DatabaseError.invalid_name(name)
    return name


class Redis(Controllable, ServiceFacade, DatabaseServer):
    descriptor = REDIS

    def _cli(self, args: str, timeout: float | None = None):
        return self.session.run(f"redis-cli {args} 2>&1", timeout=timeout)

    # ── Databases ───────────────────────────────────────────────

    def fetch_databases(self) -> list[Database]:
        """Keyspaces holding keys; ``db0`` alone when the server runs empty."""
        found: dict[int, Database] = {}
        for line in self._cli("INFO keyspace", timeout=10).lines():
            match = _KEYSPACE_RE.match(line)
            if match:
                index = int(match.group(1))
                found[index] = Database(name=f"db{index}", size=f"{match.group(2)} keys")
        if not found and self.is_active():
            return [Database(name="db0", size="0 keys")]
        return [found[i] for i in sorted(found)]

    def create_database(
        self, name: str, user: str | None = None, password: str | None = None,
    ) -> bool:
        raise DatabaseError.command_failed(
            "Redis databases are numbered keyspaces (db0, db1, ...) and cannot be created"
        )

    def delete_database(self, name: str) -> bool:
        """Flush every key of keyspace ``name``."""
        index = _db_index(name)
        with self._mutation_lock:
            result = self._cli(f"-n {index} FLUSHDB")
        if not (result.ok and "OK" in result.text):
            raise DatabaseError.command_failed(result.text or f"FLUSHDB on {name} failed")
        logger.info("Flushed %s", name)
        return True

    def backup(self, name: str) -> str:
        """RDB snapshot under /tmp; returns its path.

        Redis snapshots the whole dataset, so the file holds every
        keyspace, not only ``name``.
        """
        _db_index(name)
        path = f"/tmp/redis_{name}_{datetime.now():%Y%m%d_%H%M%S}.rdb"
        result = self.session.run(
            f"redis-cli --rdb {shlex.quote(path)} 2>&1 && echo 'DUMPED'",
            timeout=self.session.timeouts.dump,
        )
        if not (result.ok and "DUMPED" in result.output):
            raise DatabaseError.command_failed(
                f"Backup of {name} failed: {result.text or f'exit code {result.exit_code}'}"
            )
        logger.info("Saved Redis snapshot to %s", path)
        return path

    # ── ACL users ───────────────────────────────────────────────

    def fetch_users(self) -> list[DatabaseUser]:
        result = self._cli("ACL USERS")
        if not result.ok:
            return []
        return [DatabaseUser(name=u) for u in result.lines() if _USER_RE.match(u)]

    def create_user(self, name: str, password: str) -> bool:
        _check_user(name)
        with self._mutation_lock:
            result = self._cli(f"ACL SETUSER {name} on {shlex.quote('>' + password)} '~*' +@all")
        if not (result.ok and "OK" in result.text):
            raise DatabaseError.command_failed(result.text or f"ACL SETUSER {name} failed")
        return True

    def delete_user(self, name: str) -> bool:
        _check_user(name)
        if name == "default":
            raise DatabaseError.invalid_name(name)
        with self._mutation_lock:
            result = self._cli(f"ACL DELUSER {name}")
        if not (result.ok and result.text.strip() == "1"):
            raise DatabaseError.command_failed(result.text or f"ACL DELUSER {name} failed")
        return True
