"""
Tests for product facades: status, systemd control, databases, runtimes.
"""

import shlex

import pytest

from hostops.adapters.shell.command import LocalShellChannel
from hostops.core.errors import DatabaseError, DatabaseErrorKind
from hostops.core.models.status import SoftwareState
from hostops.core.services.facades.apache import Apache
from hostops.core.services.facades.mongodb import MongoDB
from hostops.core.services.facades.mysql import MySQL
from hostops.core.services.facades.nginx import Nginx
from hostops.core.services.facades.node import Node
from hostops.core.services.facades.php import PHP
from hostops.core.services.facades.postgresql import PostgreSQL
from hostops.core.services.facades.python import Python
from hostops.core.services.facades.redis import Redis
from hostops.core.services.os_classifier import classify
from hostops.core.services.session import HostSession


def _nginx_present(channel):
    channel.on("which nginx", "/usr/sbin/nginx")
    channel.on("nginx -v", "nginx version: nginx/1.24.0 (Ubuntu)")


# ── Status ───────────────────────────────────────────────────────────


class TestStatus:
    def test_running(self, channel, session):
        _nginx_present(channel)
        channel.on("systemctl is-active nginx", "active")

        status = Nginx(session).get_status()
        assert status.state == SoftwareState.RUNNING
        assert status.display_text == "v1.24.0 • Running"

    def test_stopped(self, channel, session):
        _nginx_present(channel)
        channel.on("systemctl is-active nginx", "inactive", exit_code=3)
        assert Nginx(session).get_status().display_text == "v1.24.0 • Stopped"

    def test_not_installed(self, session):
        status = Nginx(session).get_status()
        assert status.state == SoftwareState.NOT_INSTALLED
        assert status.display_text == "Not Installed"

    def test_runtime_has_no_running_state(self, channel, session):
        channel.on("which node", "/usr/bin/node")
        channel.on("node --version", "v20.11.0")
        status = Node(session).get_status()
        assert status.state == SoftwareState.INSTALLED
        assert status.display_text == "v20.11.0"

    def test_unparsable_version(self, channel, session):
        channel.on("which nginx", "/usr/sbin/nginx")
        channel.on("systemctl is-active nginx", "active")
        assert Nginx(session).get_status().display_text == "Installed • Running"

    def test_query_exception_is_error_status(self, channel, session):
        def explode(_command):
            raise RuntimeError("channel closed")

        channel.on_call("nginx -v", explode)
        status = Nginx(session).get_status()
        assert status.state == SoftwareState.ERROR
        assert "channel closed" in status.display_text


# ── Apache version ───────────────────────────────────────────────────


def _stub(directory, name, output):
    script = directory / name
    script.write_text(f"#!/bin/sh\necho '{output}'\n")
    script.chmod(0o755)


class TestApacheVersion:
    @pytest.fixture
    def local_session(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PATH", f"{tmp_path}:/usr/bin:/bin")
        s = HostSession(LocalShellChannel())
        s.set_classification(classify("rocky"))
        return s

    def test_httpd_when_apache2_is_absent(self, tmp_path, local_session):
        _stub(tmp_path, "httpd", "Server version: Apache/2.4.57 (Rocky Linux)")
        assert Apache(local_session).get_version() == "2.4.57"

    def test_apache2_preferred(self, tmp_path, local_session):
        _stub(tmp_path, "apache2", "Server version: Apache/2.4.58 (Ubuntu)")
        _stub(tmp_path, "httpd", "Server version: Apache/2.4.57 (Rocky Linux)")
        assert Apache(local_session).get_version() == "2.4.58"

    def test_neither_binary(self, local_session):
        assert Apache(local_session).get_version() is None


# ── Control ──────────────────────────────────────────────────────────


class TestControl:
    def test_start_confirms_active(self, channel, session):
        channel.on("sudo systemctl start nginx", "")
        channel.on("systemctl is-active nginx", "active")
        assert Nginx(session).start()

    def test_start_that_does_not_stick(self, channel, session):
        channel.on("sudo systemctl start nginx", "")
        channel.on("systemctl is-active nginx", "failed", exit_code=3)
        assert not Nginx(session).start()

    def test_stop(self, channel, session):
        channel.on("sudo systemctl stop nginx", "")
        channel.on("systemctl is-active nginx", "inactive", exit_code=3)
        assert Nginx(session).stop()

    def test_reload_failure(self, channel, session):
        channel.on("sudo systemctl reload nginx", "Job for nginx.service failed.", exit_code=1)
        assert not Nginx(session).reload()

    def test_dynamic_unit_resolved_fresh(self, channel, session):
        channel.on("which redis-server", "/usr/bin/redis-server")
        channel.on("--plain redis-server.service",
                   "redis-server.service loaded active running Advanced key-value store")
        channel.on("sudo systemctl restart redis-server", "")
        channel.on("systemctl is-active redis-server", "active")

        assert Redis(session).restart()
        assert channel.commands_containing("sudo systemctl restart redis-server")

    def test_uninstall(self, channel, session):
        channel.on("sudo apt-get remove -y nginx", "")
        assert Nginx(session).uninstall()
        assert Nginx(session).uninstall(purge=True) is False
        assert channel.commands_containing("sudo apt-get purge -y nginx")


# ── MySQL ────────────────────────────────────────────────────────────


class TestMySQL:
    def test_fetch_databases_hides_system_schemas(self, channel, session):
        channel.on("SHOW DATABASES", "information_schema\nshop\nmysql\nblog\nsys\n")
        channel.on("information_schema.tables", "shop\t1.50\nblog\t0.02\n")

        databases = MySQL(session).fetch_databases()
        assert [(d.name, d.size) for d in databases] == [("shop", "1.50 MB"), ("blog", "0.02 MB")]

    def test_create_with_user(self, channel, session):
        channel.on("CREATE DATABASE", "CREATED")
        channel.on("CREATE USER", "CREATED")
        channel.on("GRANT ALL", "GRANTED")

        assert MySQL(session).create_database("shop", user="shop_app", password="s3cret")
        assert channel.commands_containing("CHARACTER SET utf8mb4")
        assert not channel.commands_containing("DROP DATABASE")

    def test_create_existing(self, channel, session):
        channel.on("CREATE DATABASE", "ERROR 1007 (HY000): Can't create database 'shop'; database exists", 1)
        with pytest.raises(DatabaseError) as exc:
            MySQL(session).create_database("shop")
        assert exc.value.kind == DatabaseErrorKind.ALREADY_EXISTS

    def test_user_failure_drops_new_database(self, channel, session):
        channel.on("CREATE DATABASE", "CREATED")
        channel.on("CREATE USER", "ERROR 1819 (HY000): Your password does not satisfy the policy", 1)

        with pytest.raises(DatabaseError) as exc:
            MySQL(session).create_database("shop", user="shop_app", password="weak")
        assert exc.value.kind == DatabaseErrorKind.COMMAND_FAILED
        assert channel.commands_containing("DROP DATABASE IF EXISTS `shop`")

    def test_invalid_names_never_reach_the_host(self, channel, session):
        mysql = MySQL(session)
        for name in ("shop; DROP DATABASE mysql", "", "a" * 65):
            with pytest.raises(DatabaseError) as exc:
                mysql.create_database(name)
            assert exc.value.kind == DatabaseErrorKind.INVALID_NAME
        assert channel.call_count == 0

    def test_system_database_is_not_deletable(self, channel, session):
        with pytest.raises(DatabaseError):
            MySQL(session).delete_database("mysql")
        assert channel.call_count == 0

    def test_delete(self, channel, session):
        channel.on("DROP DATABASE `shop`", "DROPPED")
        assert MySQL(session).delete_database("shop")

    def test_backup_path(self, channel, session):
        channel.on("mysqldump --single-transaction shop", "DUMPED")
        path = MySQL(session).backup("shop")
        assert path.startswith("/tmp/shop_")
        assert path.endswith(".sql")

    def test_backup_failure(self, channel, session):
        channel.on("mysqldump", "mysqldump: Got error: 1049: Unknown database 'shop'", 2)
        with pytest.raises(DatabaseError, match="Backup of shop failed"):
            MySQL(session).backup("shop")

    def test_fetch_users(self, channel, session):
        channel.on("FROM mysql.user", "root\tlocalhost\nshop_app\t%\n")
        users = MySQL(session).fetch_users()
        assert [(u.name, u.host) for u in users] == [("root", "localhost"), ("shop_app", "%")]

    def test_mariadb_detection(self, channel, session):
        channel.on("mysql --version", "mysql  Ver 15.1 Distrib 10.6.12-MariaDB, for debian-linux-gnu")
        assert MySQL(session).is_mariadb()


# ── PostgreSQL ───────────────────────────────────────────────────────


class TestPostgreSQL:
    def test_fetch_databases(self, channel, session):
        channel.on("FROM pg_database", "postgres|8 MB\nshop|12 MB\n")
        assert [(d.name, d.size) for d in PostgreSQL(session).fetch_databases()] == [("shop", "12 MB")]

    def test_create_with_user(self, channel, session):
        channel.on("createdb shop", "CREATED")
        channel.on("CREATE USER shop_app", "CREATED")
        channel.on("GRANT ALL PRIVILEGES ON DATABASE shop TO shop_app", "GRANTED")
        assert PostgreSQL(session).create_database("shop", "shop_app", "s3cret")

    def test_user_failure_drops_new_database(self, channel, session):
        channel.on("createdb shop", "CREATED")
        channel.on("CREATE USER", "ERROR:  permission denied to create role", 1)
        with pytest.raises(DatabaseError):
            PostgreSQL(session).create_database("shop", "shop_app", "s3cret")
        assert channel.commands_containing("dropdb --if-exists shop")

    def test_delete_terminates_connections_first(self, channel, session):
        channel.on("dropdb shop", "DROPPED")
        assert PostgreSQL(session).delete_database("shop")
        terminate = channel.commands_containing("pg_terminate_backend")
        drop = channel.commands_containing("dropdb shop")
        assert channel.call_log.index(terminate[0]) < channel.call_log.index(drop[0])

    def test_template_databases_protected(self, session):
        with pytest.raises(DatabaseError):
            PostgreSQL(session).delete_database("template1")


# ── MongoDB ──────────────────────────────────────────────────────────

LIST_DATABASES = (
    '{"databases":[{"name":"admin","sizeOnDisk":40960},{"name":"shop","sizeOnDisk":2097152},'
    '{"name":"blog","sizeOnDisk":73728},{"name":"local","sizeOnDisk":81920}],"ok":1}'
)


def _eval_script(command: str) -> str:
    tokens = shlex.split(command)
    return tokens[tokens.index("--eval") + 1]


class TestMongoDB:
    def test_fetch_databases_hides_system_databases(self, channel, session):
        channel.on("listDatabases", LIST_DATABASES)
        databases = MongoDB(session).fetch_databases()
        assert [(d.name, d.size) for d in databases] == [("blog", "0.07 MB"), ("shop", "2.00 MB")]

    def test_fetch_databases_unparsable_output(self, channel, session):
        channel.on("listDatabases", "MongoNetworkError: connect ECONNREFUSED 127.0.0.1:27017", 1)
        assert MongoDB(session).fetch_databases() == []

    def test_create_with_user(self, channel, session):
        channel.on("listDatabases", '{"databases":[]}')
        channel.on("db.createCollection", "{ ok: 1 }\nCREATED")
        channel.on("db.createUser", "{ ok: 1 }\nCREATED")

        assert MongoDB(session).create_database("shop", user="shop_app", password="s3cret")
        [create] = channel.commands_containing("db.createCollection")
        assert create.startswith("mongosh --quiet shop --eval")
        [user] = channel.commands_containing("db.createUser")
        assert 'roles: [{role: "readWrite", db: "shop"}]' in _eval_script(user)
        assert not channel.commands_containing("db.dropDatabase()")

    def test_password_is_a_json_string(self, channel, session):
        channel.on("db.createUser", "CREATED")
        MongoDB(session).create_user("shop_app", "it's\"x", database="shop")
        [user] = channel.commands_containing("db.createUser")
        assert 'pwd: "it\'s\\"x"' in _eval_script(user)

    def test_create_existing(self, channel, session):
        channel.on("listDatabases", LIST_DATABASES)
        with pytest.raises(DatabaseError) as exc:
            MongoDB(session).create_database("shop")
        assert exc.value.kind == DatabaseErrorKind.ALREADY_EXISTS
        assert not channel.commands_containing("db.createCollection")

    def test_create_collection_conflict(self, channel, session):
        channel.on("listDatabases", '{"databases":[]}')
        channel.on("db.createCollection", "MongoServerError: Collection shop.init already exists", 1)
        with pytest.raises(DatabaseError) as exc:
            MongoDB(session).create_database("shop")
        assert exc.value.kind == DatabaseErrorKind.ALREADY_EXISTS

    def test_user_failure_drops_new_database(self, channel, session):
        channel.on("listDatabases", '{"databases":[]}')
        channel.on("db.createCollection", "CREATED")
        channel.on("db.createUser", "MongoServerError: not authorized on shop to execute command", 1)

        with pytest.raises(DatabaseError) as exc:
            MongoDB(session).create_database("shop", user="shop_app", password="s3cret")
        assert exc.value.kind == DatabaseErrorKind.COMMAND_FAILED
        assert "not authorized" in str(exc.value)
        [drop] = channel.commands_containing("db.dropDatabase()")
        assert drop.startswith("mongosh --quiet shop --eval")

    def test_invalid_names_never_reach_the_host(self, channel, session):
        mongo = MongoDB(session)
        for name in ('shop"); db.dropDatabase("x', "", "a.b", "a" * 64):
            with pytest.raises(DatabaseError) as exc:
                mongo.create_database(name)
            assert exc.value.kind == DatabaseErrorKind.INVALID_NAME
        assert channel.call_count == 0

    def test_system_databases_protected(self, channel, session):
        mongo = MongoDB(session)
        with pytest.raises(DatabaseError) as exc:
            mongo.create_database("admin")
        assert exc.value.kind == DatabaseErrorKind.ALREADY_EXISTS
        with pytest.raises(DatabaseError) as exc:
            mongo.delete_database("local")
        assert exc.value.kind == DatabaseErrorKind.INVALID_NAME
        assert channel.call_count == 0

    def test_delete(self, channel, session):
        channel.on("db.dropDatabase()", "{ ok: 1, dropped: 'shop' }\nDROPPED")
        assert MongoDB(session).delete_database("shop")
        assert channel.commands_containing("mongosh --quiet shop --eval")

    def test_delete_failure(self, channel, session):
        channel.on("db.dropDatabase()", "MongoServerError: not authorized", 1)
        with pytest.raises(DatabaseError, match="not authorized"):
            MongoDB(session).delete_database("shop")

    def test_backup_is_gzipped_archive(self, channel, session):
        channel.on("mongodump --quiet --db shop", "DUMPED")
        path = MongoDB(session).backup("shop")
        assert path.startswith("/tmp/shop_")
        assert path.endswith(".archive.gz")
        [dump] = channel.commands_containing("mongodump")
        assert f"--archive={path} --gzip" in dump

    def test_backup_failure(self, channel, session):
        channel.on("mongodump", "Failed: can't create session: could not connect to server", 1)
        with pytest.raises(DatabaseError, match="Backup of shop failed"):
            MongoDB(session).backup("shop")

    def test_fetch_users(self, channel, session):
        channel.on("db.getUsers()", '{"users":[{"user":"shop_app","db":"shop","roles":[]}],"ok":1}')
        users = MongoDB(session).fetch_users("shop")
        assert [(u.name, u.database) for u in users] == [("shop_app", "shop")]

    def test_fetch_users_bare_list(self, channel, session):
        channel.on("db.getUsers()", '[{"user":"root"}]')
        assert [(u.name, u.database) for u in MongoDB(session).fetch_users()] == [("root", "admin")]


# ── Redis ────────────────────────────────────────────────────────────

KEYSPACE = """\
# Keyspace
db0:keys=5,expires=0,avg_ttl=0
db10:keys=1,expires=0,avg_ttl=0
db2:keys=12,expires=1,avg_ttl=3600
"""


def _redis_running(channel):
    channel.on("which redis-server", "/usr/bin/redis-server")
    channel.on("--plain redis-server.service",
               "redis-server.service loaded active running Advanced key-value store")
    channel.on("systemctl is-active redis-server", "active")


class TestRedis:
    def test_fetch_databases_from_keyspace(self, channel, session):
        channel.on("redis-cli INFO keyspace", KEYSPACE)
        databases = Redis(session).fetch_databases()
        assert [(d.name, d.size) for d in databases] == [
            ("db0", "5 keys"), ("db2", "12 keys"), ("db10", "1 keys"),
        ]

    def test_empty_running_server_has_db0(self, channel, session):
        _redis_running(channel)
        channel.on("redis-cli INFO keyspace", "# Keyspace\n")
        assert [(d.name, d.size) for d in Redis(session).fetch_databases()] == [("db0", "0 keys")]

    def test_unreachable_server_has_no_databases(self, channel, session):
        channel.on("redis-cli INFO keyspace",
                   "Could not connect to Redis at 127.0.0.1:6379: Connection refused", 1)
        assert Redis(session).fetch_databases() == []

    def test_create_is_refused(self, channel, session):
        with pytest.raises(DatabaseError) as exc:
            Redis(session).create_database("db3")
        assert exc.value.kind == DatabaseErrorKind.COMMAND_FAILED
        assert channel.call_count == 0

    def test_delete_flushes_keyspace(self, channel, session):
        channel.on("redis-cli -n 3 FLUSHDB", "OK")
        assert Redis(session).delete_database("db3")

    def test_delete_failure(self, channel, session):
        channel.on("FLUSHDB", "NOAUTH Authentication required.")
        with pytest.raises(DatabaseError, match="NOAUTH"):
            Redis(session).delete_database("db0")

    def test_invalid_names_never_reach_the_host(self, channel, session):
        redis = Redis(session)
        for name in ("shop", "db", "db1; FLUSHALL", "db12345"):
            with pytest.raises(DatabaseError) as exc:
                redis.delete_database(name)
            assert exc.value.kind == DatabaseErrorKind.INVALID_NAME
        assert channel.call_count == 0

    def test_backup_snapshot(self, channel, session):
        channel.on("redis-cli --rdb", "SYNC sent to master, writing 1024 bytes to file\nDUMPED")
        path = Redis(session).backup("db0")
        assert path.startswith("/tmp/redis_db0_")
        assert path.endswith(".rdb")

    def test_fetch_users(self, channel, session):
        channel.on("redis-cli ACL USERS", "default\nshop_app\n")
        assert [u.name for u in Redis(session).fetch_users()] == ["default", "shop_app"]

    def test_create_user(self, channel, session):
        channel.on("ACL SETUSER shop_app on", "OK")
        assert Redis(session).create_user("shop_app", "s3 cret")
        [command] = channel.commands_containing("ACL SETUSER")
        assert "'>s3 cret'" in command

    def test_default_user_is_not_deletable(self, channel, session):
        with pytest.raises(DatabaseError) as exc:
            Redis(session).delete_user("default")
        assert exc.value.kind == DatabaseErrorKind.INVALID_NAME
        assert channel.call_count == 0

    def test_delete_user(self, channel, session):
        channel.on("ACL DELUSER shop_app", "1")
        assert Redis(session).delete_user("shop_app")


# ── PHP and runtimes ─────────────────────────────────────────────────


class TestPHP:
    def test_fpm_status_all(self, channel, session):
        channel.on("for svc in", "php8.1-fpm:inactive\nphp8.3-fpm:active\nbogus:active\n")
        assert PHP(session).fpm.status_all() == {"php8.1-fpm": False, "php8.3-fpm": True}

    def test_service_is_fpm_of_active_version(self, channel, session):
        channel.on("php -v", "PHP 8.3.1 (cli)")
        channel.on("--plain php8.3-fpm.service", "php8.3-fpm.service loaded active running PHP 8.3 FPM")
        assert PHP(session).resolve_service_name() == "php8.3-fpm"

    def test_extensions(self, channel, session):
        channel.on("php -m", "[PHP Modules]\ncurl\nmbstring\n\n[Zend Modules]\nZend OPcache\n")
        php = PHP(session)
        assert php.extensions() == ["curl", "mbstring", "Zend OPcache"]
        assert php.is_extension_loaded("MBSTRING")

    def test_config_value(self, channel, session):
        channel.on("ini_get", "256M")
        php = PHP(session)
        assert php.config_value("memory_limit") == "256M"
        assert php.config_value("x; rm -rf /") is None

    def test_composer_status(self, channel, session):
        channel.on("composer --version", "Composer version 2.6.5 2023-10-06 10:11:52")
        status = PHP(session).package_manager_status()
        assert (status.state, status.version) == (SoftwareState.INSTALLED, "2.6.5")


class TestRuntimeTools:
    def test_pip(self, channel, session):
        channel.on("pip3 --version", "pip 23.0.1 from /usr/lib/python3/dist-packages/pip (python 3.11)")
        assert Python(session).package_manager_status().version == "23.0.1"

    def test_npm_missing(self, session):
        assert Node(session).package_manager_status().state == SoftwareState.NOT_INSTALLED
