"""
MongoDB facade.

Every statement is a ``mongosh --quiet --eval`` script. Values are
embedded as JSON string literals, and mutations confirm success with
an echoed marker since mongosh exits non-zero when a script throws.
"""

from __future__ import annotations

import json
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

MONGODB = ServiceDescriptor(
    id="mongodb",
    display_name="MongoDB",
    service_names=("mongod",),
    binary_names=("mongod",),
    probes=standard_probes(
        binaries=("mongod",),
        units=("mongod",),
        paths=("/usr/bin/mongod", "/usr/local/bin/mongod"),
        package_pattern="mongodb-org|mongodb",
    ),
    version_command="mongod --version 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"db version v(\d+\.\d+\.\d+)", label="mongodb"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
    ),
    package_pattern="mongodb-org|mongodb",
    packages={
        DistroFamily.DEBIAN: ("mongodb-org",),
        DistroFamily.RHEL: ("mongodb-org",),
    },
    aliases=("mongo", "mongod"),
)

SYSTEM_DATABASES = frozenset({"admin", "config", "local"})

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,63}$")


def _check_name(name: str) -> str:
    if not _NAME_RE.match(name or ""):
        raise DatabaseError.invalid_name(name)
    return name


def mongosh_command(script: str, database: str = "admin") -> str:
    return f"mongosh --quiet {shlex.quote(database)} --eval {shlex.quote(script)} 2>&1"


def _megabytes(size_bytes: object) -> str | None:
    if not isinstance(size_bytes, (int, float)):
        return None
    return f"{size_bytes / 1024 / 1024:.2f} MB"


class MongoDB(Controllable, ServiceFacade, DatabaseServer):
    descriptor = MONGODB

    def _query_json(self, script: str, database: str = "admin") -> object:
        output = self.session.output(mongosh_command(f"JSON.stringify({script})", database))
        try:
            return json.loads(output)
        except ValueError:
            logger.debug("Unparsable mongosh output: %s", output[:200])
            return None

    def _execute(self, script: str, database: str, marker: str) -> tuple[bool, str]:
        result = self.session.run(f"{mongosh_command(script, database)} && echo '{marker}'")
        return result.ok and marker in result.output, result.text.replace(marker, "").strip()

    # ── Databases ───────────────────────────────────────────────

    def fetch_databases(self) -> list[Database]:
        data = self._query_json("db.adminCommand({listDatabases: 1})")
        if not isinstance(data, dict):
            return []
        found = []
        for entry in data.get("databases") or []:
            name = entry.get("name") if isinstance(entry, dict) else None
            if name and name not in SYSTEM_DATABASES:
                found.append(Database(name=name, size=_megabytes(entry.get("sizeOnDisk"))))
        return sorted(found, key=lambda d: d.name)

    def create_database(
        self, name: str, user: str | None = None, password: str | None = None,
    ) -> bool:
        """Create ``name`` by creating its first collection.

        MongoDB has no empty databases, so an ``init`` collection is
        created. With ``user`` and ``password`` the user is created in
        the new database with readWrite on it; if that fails the new
        database is dropped again.
        """
        _check_name(name)
        if user:
            _check_name(user)
        if name in SYSTEM_DATABASES:
            raise DatabaseError.already_exists(name)

        with self._mutation_lock:
            if any(db.name == name for db in self.fetch_databases()):
                raise DatabaseError.already_exists(name)
            ok, output = self._execute('db.createCollection("init")', name, "CREATED")
            if not ok:
                if "already exists" in output.lower():
                    raise DatabaseError.already_exists(name)
                raise DatabaseError.command_failed(output)
            logger.info("Created database %s", name)

            if user and password:
                try:
                    self.create_user(user, password, database=name)
                except DatabaseError:
                    self._execute("db.dropDatabase()", name, "DROPPED")
                    raise
        return True

    def delete_database(self, name: str) -> bool:
        _check_name(name)
        if name in SYSTEM_DATABASES:
            raise DatabaseError.invalid_name(name)
        with self._mutation_lock:
            ok, output = self._execute("db.dropDatabase()", name, "DROPPED")
        if not ok:
            raise DatabaseError.command_failed(output)
        logger.info("Dropped database %s", name)
        return True

    def backup(self, name: str) -> str:
        """Gzipped ``mongodump`` archive of ``name`` under /tmp; returns its path."""
        _check_name(name)
        path = f"/tmp/{name}_{datetime.now():%Y%m%d_%H%M%S}.archive.gz"
        command = (
            f"mongodump --quiet --db {shlex.quote(name)}"
            f" --archive={shlex.quote(path)} --gzip 2>&1 && echo 'DUMPED'"
        )
        result = self.session.run(command, timeout=self.session.timeouts.dump)
        if not (result.ok and "DUMPED" in result.output):
            raise DatabaseError.command_failed(
                f"Backup of {name} failed: {result.text or f'exit code {result.exit_code}'}"
            )
        logger.info("Backed up %s to %s", name, path)
        return path

    # ── Users ───────────────────────────────────────────────────

    def fetch_users(self, database: str = "admin") -> list[DatabaseUser]:
        _check_name(database)
        data = self._query_json("db.getUsers()", database)
        # mongosh wraps the list as {users: [...]}, the legacy shell does not
        entries = data.get("users") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            return []
        return [
            DatabaseUser(name=u["user"], database=u.get("db") or database)
            for u in entries
            if isinstance(u, dict) and u.get("user")
        ]

    def create_user(self, name: str, password: str, database: str = "admin") -> bool:
        """Create ``name`` with readWrite on ``database``. An existing user is fine."""
        _check_name(name)
        _check_name(database)
        script = (
            f"db.createUser({{user: {json.dumps(name)}, pwd: {json.dumps(password)},"
            f' roles: [{{role: "readWrite", db: {json.dumps(database)}}}]}})'
        )
        with self._mutation_lock:
            ok, output = self._execute(script, database, "CREATED")
        if not ok and "already exists" not in output.lower():
            raise DatabaseError.command_failed(output)
        return True

    def delete_user(self, name: str, database: str = "admin") -> bool:
        _check_name(name)
        _check_name(database)
        with self._mutation_lock:
            ok, output = self._execute(f"db.dropUser({json.dumps(name)})", database, "DROPPED")
        if not ok:
            raise DatabaseError.command_failed(output)
        return True
