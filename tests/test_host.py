"""
Tests for OS classification, package manager commands and the host session.
"""

import pytest

from hostops.adapters.mock import MockChannel
from hostops.core.models.host import DistroFamily, PackageManager
from hostops.core.services.os_classifier import classify, classify_remote, detect_os_id
from hostops.core.services.package_commands import (
    install_command,
    query_installed_command,
    remove_command,
    update_command,
)
from hostops.core.services.session import HostSession

# ── Classifier ───────────────────────────────────────────────────────


class TestClassify:
    def test_ubuntu(self):
        c = classify("ubuntu")
        assert c.family == DistroFamily.DEBIAN
        assert c.package_manager == PackageManager.APT
        assert c.recognized

    def test_rhel_family(self):
        assert classify("rocky").package_manager == PackageManager.DNF
        assert classify("centos").package_manager == PackageManager.YUM
        assert classify("fedora").family == DistroFamily.RHEL

    def test_arch_and_suse(self):
        assert classify("manjaro").package_manager == PackageManager.PACMAN
        assert classify("opensuse-leap").family == DistroFamily.SUSE

    def test_quoted_and_uppercase(self):
        assert classify('"Ubuntu"\n').os_id == "ubuntu"

    def test_unknown_defaults_to_debian_apt(self):
        c = classify("plan9")
        assert c.family == DistroFamily.DEBIAN
        assert c.package_manager == PackageManager.APT
        assert not c.recognized
        assert c.os_id == "plan9"

    def test_empty_is_unknown_family(self):
        c = classify("")
        assert c.family == DistroFamily.UNKNOWN
        assert c.package_manager == PackageManager.APT
        assert not c.recognized


class TestRemoteClassification:
    def test_detect_os_id(self):
        channel = MockChannel().on("/etc/os-release", '"debian"\n')
        assert detect_os_id(channel) == "debian"

    def test_unreadable_os_release(self):
        assert detect_os_id(MockChannel()) == ""
        assert classify_remote(MockChannel()).family == DistroFamily.UNKNOWN

    def test_session_memoizes(self):
        channel = MockChannel().on("/etc/os-release", "almalinux")
        session = HostSession(channel)
        assert session.classification.family == DistroFamily.RHEL
        assert session.classification.package_manager == PackageManager.DNF
        assert len(channel.commands_containing("os-release")) == 1


# ── Package commands ─────────────────────────────────────────────────


class TestPackageCommands:
    def test_install_with_update(self):
        cmd = install_command(["nginx"], PackageManager.APT, with_update=True)
        assert cmd.startswith("sudo apt-get update")
        update, install = cmd.split(" && ")
        assert "|| true" in update
        assert install == "sudo apt-get install -y nginx"

    def test_install_without_update(self):
        assert install_command(["nginx"], PackageManager.DNF, with_update=False) == (
            "sudo dnf install -y -q nginx"
        )

    def test_every_package_kept_and_quoted(self):
        cmd = install_command(["php8.2-fpm", "weird name"], PackageManager.PACMAN, with_update=False)
        assert "php8.2-fpm" in cmd
        assert "'weird name'" in cmd

    def test_empty_package_list_rejected(self):
        with pytest.raises(ValueError):
            install_command([], PackageManager.APT)

    def test_update_and_remove(self):
        assert update_command(PackageManager.ZYPPER) == "sudo zypper --non-interactive refresh"
        assert remove_command(["redis"], PackageManager.YUM) == "sudo yum remove -y -q redis"
        assert remove_command(["redis"], PackageManager.APT, purge=True).startswith("sudo apt-get purge")

    def test_query_uses_dialect(self):
        assert query_installed_command("nginx", PackageManager.APT).startswith("dpkg -l")
        assert query_installed_command("nginx", PackageManager.DNF).startswith("rpm -qa")
        assert "(nginx)" in query_installed_command("nginx", PackageManager.PACMAN)


class TestScenario:
    def test_ubuntu_to_nginx_install_command(self):
        classification = classify("ubuntu")
        assert (classification.family, classification.package_manager) == (
            DistroFamily.DEBIAN, PackageManager.APT,
        )
        cmd = install_command(["nginx"], classification.package_manager, with_update=True)
        assert cmd.index("update") < cmd.index("install")
        assert cmd.endswith("nginx")
