"""Unit tests for dependency detection and installation."""

from __future__ import annotations

import pytest

from vaultdeploy.deploy import DependencyResolver, DependencyStatus
from vaultdeploy.deploy.prerequisites import ARGON2, COMPOSE, DOCKER, OPENSSL
from vaultdeploy.errors import (
    DependencyInstallFailed,
    ReauthenticationRequired,
    UnsupportedPlatform,
)
from vaultdeploy.shared.process import CommandResult


class FakeHost:
    """PATH lookup and command runner for a simulated host."""

    def __init__(self, binaries, compose_ok=True, fail_on=None):
        self.binaries = set(binaries)
        self.compose_ok = compose_ok
        self.fail_on = fail_on
        self.commands = []

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.binaries else None

    def run(self, args, **kwargs):
        args = list(args)
        self.commands.append(args)
        if self.fail_on and self.fail_on in args:
            return CommandResult(tuple(args), 100, stderr="E: Unable to locate package")
        if args[:3] == ["docker", "compose", "version"]:
            return CommandResult(tuple(args), 0 if self.compose_ok else 1)
        # Installing a package makes its binary appear
        if "install" in args:
            package = args[-1]
            if package == "docker-compose-plugin":
                self.compose_ok = True
            self.binaries.add(package)
        return CommandResult(tuple(args), 0)


def resolver_for(host, is_root=False):
    return DependencyResolver(runner=host.run, which=host.which, user="alice", is_root=is_root)


class TestDependencyResolver:
    """Tests for DependencyResolver."""

    def test_all_present(self):
        """Test nothing is installed when every tool exists."""
        host = FakeHost({"docker", "openssl", "argon2", "apt-get"})
        statuses = resolver_for(host).ensure_all()

        assert statuses == {
            "docker": DependencyStatus.PRESENT,
            "compose": DependencyStatus.PRESENT,
            "openssl": DependencyStatus.PRESENT,
            "argon2": DependencyStatus.PRESENT,
        }
        assert not any("install" in cmd for cmd in host.commands)

    def test_installs_missing_package_with_apt(self):
        """Test a missing tool is installed with apt-get via sudo."""
        host = FakeHost({"docker", "openssl", "apt-get"})
        status = resolver_for(host).ensure(ARGON2)

        assert status == DependencyStatus.INSTALLED
        assert ["sudo", "apt-get", "update", "-qq"] in host.commands
        assert ["sudo", "apt-get", "install", "-y", "-qq", "argon2"] in host.commands

    def test_apt_refreshed_once(self):
        """Test package lists are refreshed only once per run."""
        host = FakeHost({"docker", "apt-get"})
        resolver_for(host).ensure_all([OPENSSL, ARGON2])

        refreshes = [cmd for cmd in host.commands if "update" in cmd]
        assert len(refreshes) == 1

    def test_installs_compose_plugin(self):
        """Test compose is probed with 'docker compose version'."""
        host = FakeHost({"docker", "yum"}, compose_ok=False)
        status = resolver_for(host).ensure(COMPOSE)

        assert status == DependencyStatus.INSTALLED
        assert ["sudo", "yum", "install", "-y", "-q", "docker-compose-plugin"] in host.commands

    def test_root_skips_sudo(self):
        """Test sudo is not used when running as root."""
        host = FakeHost({"docker", "dnf"})
        resolver_for(host, is_root=True).ensure(OPENSSL)

        assert ["dnf", "install", "-y", "-q", "openssl"] in host.commands

    def test_prefers_apt_over_yum(self):
        """Test detection order."""
        host = FakeHost({"apt-get", "yum"})
        assert resolver_for(host).detect_package_manager().name == "apt-get"

    def test_unsupported_platform(self):
        """Test missing package manager names the tool."""
        host = FakeHost({"docker"})
        resolver = resolver_for(host)

        with pytest.raises(UnsupportedPlatform) as exc_info:
            resolver.ensure(OPENSSL)

        assert exc_info.value.tool == "openssl"
        assert "openssl" in str(exc_info.value)
        assert resolver.statuses["openssl"] == DependencyStatus.FAILED

    def test_install_failure(self):
        """Test package manager errors surface as DependencyInstallFailed."""
        host = FakeHost({"docker", "apt-get"}, fail_on="argon2")

        with pytest.raises(DependencyInstallFailed) as exc_info:
            resolver_for(host).ensure(ARGON2)

        assert "Unable to locate package" in exc_info.value.detail

    def test_docker_install_requires_reauthentication(self):
        """Test installing Docker stops the run at the restart boundary."""
        host = FakeHost({"apt-get", "curl"})
        resolver = resolver_for(host)

        with pytest.raises(ReauthenticationRequired) as exc_info:
            resolver.ensure_all()

        assert exc_info.value.exit_code == 0
        assert ["sudo", "usermod", "-aG", "docker", "alice"] in host.commands
        # Nothing after docker was attempted
        assert not any("argon2" in cmd for cmd in host.commands)
        assert resolver.statuses["docker"] == DependencyStatus.INSTALLED

    def test_docker_install_failure(self):
        """Test a failed Docker install is fatal, not a restart."""
        host = FakeHost({"apt-get"}, fail_on="sh")

        with pytest.raises(DependencyInstallFailed):
            resolver_for(host).ensure(DOCKER)
