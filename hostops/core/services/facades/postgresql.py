"""
PostgreSQL facade. Every statement runs as the ``postgres`` OS user.
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
from hostops.core.models.versions import DirectoryBased, PackageManagerQuery, SymlinkSwitch
from hostops.core.services.facades.base import (
    Controllable,
    DatabaseServer,
    ServiceFacade,
    Versioned,
)

logger = logging.getLogger(__name__)

POSTGRESQL = ServiceDescriptor(
    id="postgresql",
    display_name="PostgreSQL",
    service_names=("postgresql",),
    binary_names=("psql",),
    probes=standard_probes(
        binaries=("psql",),
        units=("postgresql",),
        paths=("/usr/bin/psql", "/usr/local/bin/psql", "/usr/lib/postgresql"),
        package_pattern="postgresql",
    ),
    version_command="psql --version 2>&1 | head -1",
    version_patterns=(
        VersionPattern(r"\(PostgreSQL\) (\d+\.\d+)", label="postgresql"),
        VersionPattern(r"\(PostgreSQL\) (\d+)", label="postgresql-major"),
        VersionPattern(r"(\d+\.\d+)"),
    ),
    package_pattern="postgresql",
    packages={
        DistroFamily.DEBIAN: ("postgresql", "postgresql-contrib"),
        DistroFamily.RHEL: ("postgresql-server", "postgresql-contrib"),
        DistroFamily.ARCH: ("postgresql",),
        DistroFamily.SUSE: ("postgresql-server",),
    },
    aliases=("postgres", "pgsql"),
)

SYSTEM_DATABASES = frozenset({"postgres", "template0", "template1"})

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def _check_name(name: str) -> str:
    if not _NAME_RE.match(name or ""):
        raise DatabaseError.invalid_name(name)
    return name


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def psql_command(sql: str) -> str:
    """``sql`` as the postgres user, tuples only, unaligned."""
    return f"sudo -u postgres psql -tAc {shlex.quote(sql)} 2>&1"


class PostgreSQL(Controllable, ServiceFacade, DatabaseServer, Versioned):
    descriptor = POSTGRESQL
    version_detection = (
        DirectoryBased("/etc/postgresql", r"^[0-9]+$"),
        PackageManagerQuery("postgresql[0-9-]*"),
    )
    version_switching = (
        SymlinkSwitch("/usr/bin/psql", "/usr/lib/postgresql/{VERSION}/bin/psql"),
    )

    def _query(self, sql: str) -> list[str]:
        result = self.session.run(psql_command(sql))
        if not result.ok:
            return []
        return result.lines()

    def _execute(self, command: str, marker: str) -> tuple[bool, str]:
        result = self.session.run(f"{command} && echo '{marker}'")
        return result.ok and marker in result.output, result.text

    # ── Databases ───────────────────────────────────────────────

    def fetch_databases(self) -> list[Database]:
        databases = []
        for line in self._query(
            "SELECT datname, pg_size_pretty(pg_database_size(datname))"
            " FROM pg_database WHERE datistemplate = false"
        ):
            name, _, size = line.partition("|")
            if name in SYSTEM_DATABASES or not _NAME_RE.match(name):
                continue
            databases.append(Database(name=name, size=size or None))
        return databases

    def create_database(
        self, name: str, user: str | None = None, password: str | None = None,
    ) -> bool:
        """Create ``name``, optionally with a user granted all privileges on it.

        Raises:
            DatabaseError: as for MySQL; the database is dropped again when
                its user cannot be created.
        """
        _check_name(name)
        if user:
            _check_name(user)

        with self._mutation_lock:
            ok, output = self._execute(f"sudo -u postgres createdb {name} 2>&1", "CREATED")
            if not ok:
                if "already exists" in output.lower():
                    raise DatabaseError.already_exists(name)
                raise DatabaseError.command_failed(output)
            logger.info("Created database %s", name)

            if user and password:
                try:
                    self.create_user(user, password)
                    self.grant(name, user)
                except DatabaseError:
                    self._execute(f"sudo -u postgres dropdb --if-exists {name} 2>&1", "DROPPED")
                    raise
        return True

    def delete_database(self, name: str) -> bool:
        """Terminate open connections, then drop ``name``."""
        _check_name(name)
        if name in SYSTEM_DATABASES:
            raise DatabaseError.invalid_name(name)
        with self._mutation_lock:
            self.session.run(psql_command(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity"
                f" WHERE datname = {_sql_literal(name)} AND pid <> pg_backend_pid()"
            ))
            ok, output = self._execute(f"sudo -u postgres dropdb {name} 2>&1", "DROPPED")
        if not ok:
            raise DatabaseError.command_failed(output)
        logger.info("Dropped database %s", name)
        return True

    def backup(self, name: str) -> str:
        _check_name(name)
        path = f"/tmp/{name}_{datetime.now():%Y%m%d_%H%M%S}.sql"
        result = self.session.run(
            f"sudo -u postgres pg_dump {name} > {shlex.quote(path)} && echo 'DUMPED'",
            timeout=self.session.timeouts.dump,
        )
        if not (result.ok and "DUMPED" in result.output):
            raise DatabaseError.command_failed(
                f"Backup of {name} failed: {result.text or f'exit code {result.exit_code}'}"
            )
        logger.info("Backed up %s to %s", name, path)
        return path

    # ── Users ───────────────────────────────────────────────────

    def fetch_users(self) -> list[DatabaseUser]:
        return [DatabaseUser(name=n) for n in self._query("SELECT usename FROM pg_user") if n]

    def create_user(self, name: str, password: str) -> bool:
        _check_name(name)
        with self._mutation_lock:
            ok, output = self._execute(
                psql_command(f"CREATE USER {name} WITH PASSWORD {_sql_literal(password)}"),
                "CREATED",
            )
        if not ok and "already exists" not in output.lower():
            raise DatabaseError.command_failed(output)
        return True

    def delete_user(self, name: str) -> bool:
        _check_name(name)
        with self._mutation_lock:
            ok, output = self._execute(psql_command(f"DROP USER IF EXISTS {name}"), "DROPPED")
        if not ok:
            raise DatabaseError.command_failed(output)
        return True

    def grant(self, database: str, user: str) -> bool:
        _check_name(database)
        _check_name(user)
        with self._mutation_lock:
            ok, output = self._execute(
                psql_command(f"GRANT ALL PRIVILEGES ON DATABASE {database} TO {user}"), "GRANTED",
            )
        if not ok:
            raise DatabaseError.command_failed(output)
        return True
