"""
MySQL / MariaDB facade.

Statements go through a client fallback chain: the connecting user,
then root over sudo (socket auth), then the Debian maintenance account.
Mutations confirm success with an echoed marker.
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
from hostops.core.models.versions import NoSwitch, PackageManagerQuery
from hostops.core.services.facades.base import (
    Controllable,
    DatabaseServer,
    ServiceFacade,
    Versioned,
)

logger = logging.getLogger(__name__)

MYSQL = ServiceDescriptor(
    id="mysql",
    display_name="MySQL",
    service_names=("mysql", "mariadb", "mysqld"),
    binary_names=("mysql", "mariadb"),
    probes=standard_probes(
        binaries=("mysql", "mariadb"),
        units=("mysql", "mariadb", "mysqld"),
        paths=("/usr/bin/mysql", "/usr/local/bin/mysql", "/usr/sbin/mysqld"),
        package_pattern="mysql-server|mariadb-server",
    ),
    version_command="mysql --version 2>&1 | head -1",
    version_patterns=(
        # "mysql  Ver 15.1 Distrib 10.6.12-MariaDB": the client version comes first
        VersionPattern(r"Distrib (\d+\.\d+\.\d+)-MariaDB", ignore_case=True, label="mariadb"),
        VersionPattern(r"Ver (\d+\.\d+\.\d+)", label="mysql"),
        VersionPattern(r"(\d+\.\d+\.\d+)"),
    ),
    package_pattern="mysql-server|mariadb-server",
    packages={
        DistroFamily.DEBIAN: ("mysql-server",),
        DistroFamily.RHEL: ("mysql-server",),
        DistroFamily.ARCH: ("mariadb",),
        DistroFamily.SUSE: ("mariadb",),
    },
    aliases=("mariadb", "mysqld"),
)

SYSTEM_DATABASES = frozenset({"information_schema", "performance_schema", "mysql", "sys"})

_NAME_RE = re.compile(r"^[A-Za-z0-9_]{1,64}$")
_HOST_RE = re.compile(r"^[A-Za-z0-9._%-]{1,255}$")


def _sql_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def _check_name(name: str) -> str:
    if not _NAME_RE.match(name or ""):
        raise DatabaseError.invalid_name(name)
    return name


def mysql_command(sql: str) -> str:
    """``sql`` through the client fallback chain, batch mode, no headers."""
    quoted = shlex.quote(sql)
    return (
        f"mysql -NBe {quoted} 2>/dev/null"
        f" || sudo mysql -NBe {quoted} 2>/dev/null"
        f" || sudo mysql --defaults-file=/etc/mysql/debian.cnf -NBe {quoted} 2>&1"
    )


class MySQL(Controllable, ServiceFacade, DatabaseServer, Versioned):
    descriptor = MYSQL
    version_detection = (PackageManagerQuery("mysql-server|mariadb-server"),)
    version_switching = (
        NoSwitch(
            "MySQL does not support version switching. "
            "Uninstall current version and install desired version."
        ),
    )

    def _query(self, sql: str) -> list[str]:
        return self.session.run(mysql_command(sql)).lines()

    def _execute(self, sql: str, marker: str = "DONE") -> tuple[bool, str]:
        result = self.session.run(f"{mysql_command(sql)} && echo '{marker}'")
        return result.ok and marker in result.output, result.text

    def is_mariadb(self) -> bool:
        return "mariadb" in self.version_resolver.raw_output().lower()

    # ── Databases ───────────────────────────────────────────────

    def fetch_databases(self) -> list[Database]:
        names = [n for n in self._query("SHOW DATABASES") if n not in SYSTEM_DATABASES]
        sizes: dict[str, str] = {}
        for line in self._query(
            "SELECT table_schema, ROUND(SUM(data_length + index_length) / 1024 / 1024, 2)"
            " FROM information_schema.tables GROUP BY table_schema"
        ):
            parts = line.split("\t")
            if len(parts) == 2:
                sizes[parts[0]] = f"{parts[1]} MB"
        return [Database(name=n, size=sizes.get(n)) for n in names if _NAME_RE.match(n)]

    def create_database(
        self, name: str, user: str | None = None, password: str | None = None,
    ) -> bool:
        """Create ``name`` (utf8mb4), optionally with a user owning it.

        Raises:
            DatabaseError: invalid name, existing database, or a failed
                statement. A database created here is dropped again when
                its user cannot be created.
        """
        _check_name(name)
        if user:
            _check_name(user)

        with self._mutation_lock:
            ok, output = self._execute(
                f"CREATE DATABASE `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci",
                "CREATED",
            )
            if not ok:
                if "exists" in output.lower():
                    raise DatabaseError.already_exists(name)
                raise DatabaseError.command_failed(output)
            logger.info("Created database %s", name)

            if user and password:
                try:
                    self.create_user(user, password)
                    self.grant(name, user)
                except DatabaseError:
                    self._execute(f"DROP DATABASE IF EXISTS `{name}`", "DROPPED")
                    raise
        return True

    def delete_database(self, name: str) -> bool:
        _check_name(name)
        if name in SYSTEM_DATABASES:
            raise DatabaseError.invalid_name(name)
        with self._mutation_lock:
            ok, output = self._execute(f"DROP DATABASE `{name}`", "DROPPED")
        if not ok:
            raise DatabaseError.command_failed(output)
        logger.info("Dropped database %s", name)
        return True

    def backup(self, name: str) -> str:
        """Dump ``name`` to a timestamped file under /tmp; returns its path."""
        _check_name(name)
        path = f"/tmp/{name}_{datetime.now():%Y%m%d_%H%M%S}.sql"
        target = shlex.quote(path)
        command = (
            f"(mysqldump --single-transaction {name} > {target} 2>/dev/null"
            f" || sudo mysqldump --single-transaction {name} > {target})"
            " && echo 'DUMPED'"
        )
        result = self.session.run(command, timeout=self.session.timeouts.dump)
        if not (result.ok and "DUMPED" in result.output):
            raise DatabaseError.command_failed(
                f"Backup of {name} failed: {result.text or f'exit code {result.exit_code}'}"
            )
        logger.info("Backed up %s to %s", name, path)
        return path

    # ── Users ───────────────────────────────────────────────────

    def fetch_users(self) -> list[DatabaseUser]:
        users = []
        for line in self._query("SELECT User, Host FROM mysql.user"):
            parts = line.split("\t")
            if len(parts) == 2 and parts[0]:
                users.append(DatabaseUser(name=parts[0], host=parts[1]))
        return users

    def create_user(self, name: str, password: str, host: str = "localhost") -> bool:
        _check_name(name)
        if not _HOST_RE.match(host):
            raise DatabaseError.invalid_name(host)
        with self._mutation_lock:
            ok, output = self._execute(
                f"CREATE USER {_sql_literal(name)}@{_sql_literal(host)}"
                f" IDENTIFIED BY {_sql_literal(password)}",
                "CREATED",
            )
        if not ok and "exists" not in output.lower():
            raise DatabaseError.command_failed(output)
        return True

    def delete_user(self, name: str, host: str = "localhost") -> bool:
        _check_name(name)
        with self._mutation_lock:
            ok, output = self._execute(
                f"DROP USER IF EXISTS {_sql_literal(name)}@{_sql_literal(host)}", "DROPPED",
            )
        if not ok:
            raise DatabaseError.command_failed(output)
        return True

    def grant(self, database: str, user: str, host: str = "localhost") -> bool:
        _check_name(database)
        _check_name(user)
        with self._mutation_lock:
            ok, output = self._execute(
                f"GRANT ALL PRIVILEGES ON `{database}`.* TO {_sql_literal(user)}@{_sql_literal(host)};"
                " FLUSH PRIVILEGES",
                "GRANTED",
            )
        if not ok:
            raise DatabaseError.command_failed(output)
        return True
