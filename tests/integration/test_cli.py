"""Integration tests for the vaultdeploy CLI.

The bootstrap and backup flows run the real pipeline with faked external
tools injected through the click context.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from vaultdeploy.errors import ReauthenticationRequired
from vaultdeploy.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def base_args(config):
    return ["--base-dir", str(config.base_dir), "--domain", config.domain]


@pytest.fixture
def orchestrator_factory(make_orchestrator):
    """Factory that keeps the test prompt instead of the terminal one."""

    def factory(config, **kwargs):
        kwargs.pop("prompt", None)
        return make_orchestrator(config, **kwargs)

    return factory


class TestBootstrapCommand:
    """Tests for running vaultdeploy without a subcommand."""

    def test_success(self, runner, base_args, config, orchestrator_factory, fake_runtime):
        result = runner.invoke(cli, base_args, obj={"orchestrator_factory": orchestrator_factory})

        assert result.exit_code == 0, result.output
        assert "Deployment complete" in result.output
        assert "https://192.0.2.10:8443/admin" in result.output
        assert "self-signed" in result.output
        assert config.env_file.exists()
        assert fake_runtime.called("up")

    def test_rerun_succeeds(self, runner, base_args, orchestrator_factory, accept_prompt):
        obj = {"orchestrator_factory": orchestrator_factory}
        runner.invoke(cli, base_args, obj=obj)
        result = runner.invoke(cli, base_args, obj=dict(obj))

        assert result.exit_code == 0, result.output
        assert len(accept_prompt.shown) == 1

    def test_unconfirmed_health_is_advisory(
        self, runner, base_args, orchestrator_factory, fake_runtime
    ):
        fake_runtime.default_healthy = False

        result = runner.invoke(cli, base_args, obj={"orchestrator_factory": orchestrator_factory})

        assert result.exit_code == 0, result.output
        assert "health was not confirmed" in result.output

    def test_declined_token(self, runner, base_args, config, make_orchestrator, decline_prompt):
        def factory(cfg, **kwargs):
            kwargs["prompt"] = decline_prompt
            return make_orchestrator(cfg, **kwargs)

        result = runner.invoke(cli, base_args, obj={"orchestrator_factory": factory})

        assert result.exit_code == 1
        assert not config.env_file.exists()

    def test_non_interactive_never_confirms(self, runner, base_args, config, make_orchestrator):
        """Test --non-interactive aborts instead of persisting an unseen token."""
        result = runner.invoke(
            cli,
            [*base_args, "--non-interactive"],
            obj={"orchestrator_factory": make_orchestrator},
        )

        assert result.exit_code == 1
        assert not config.env_file.exists()

    def test_reauthentication_exits_zero(
        self, runner, base_args, config, orchestrator_factory, fake_resolver, fake_runtime
    ):
        """Test the post-Docker-install stop is a clean exit with instructions."""
        fake_resolver.error = ReauthenticationRequired()

        result = runner.invoke(cli, base_args, obj={"orchestrator_factory": orchestrator_factory})

        assert result.exit_code == 0
        assert "log back in" in result.output
        assert not config.env_file.exists()
        assert fake_runtime.calls == []

    def test_start_failure(self, runner, base_args, orchestrator_factory, fake_runtime):
        from vaultdeploy.shared.process import CommandResult

        fake_runtime.up_result = CommandResult(("docker",), 1, stderr="port is already allocated")

        result = runner.invoke(cli, base_args, obj={"orchestrator_factory": orchestrator_factory})

        assert result.exit_code == 1
        assert "port is already allocated" in result.output

    def test_unknown_argument(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "--bogus"], obj={})
        assert result.exit_code == 2

    def test_invalid_port(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "--port", "0"], obj={})
        assert result.exit_code == 1
        assert "port" in result.output.lower()


class TestBackupCommand:
    """Tests for vaultdeploy backup."""

    def test_backup(self, runner, base_args, config, orchestrator_factory, fake_resolver):
        obj = {"orchestrator_factory": orchestrator_factory}
        runner.invoke(cli, base_args, obj=obj)
        fake_resolver.calls = 0

        result = runner.invoke(cli, [*base_args, "backup"], obj=dict(obj))

        assert result.exit_code == 0, result.output
        assert "Backup saved to" in result.output
        assert len(list(config.backup_dir.glob("backup_*.sqlite3"))) == 1
        assert fake_resolver.calls == 0

    def test_backup_before_bootstrap(self, runner, base_args, orchestrator_factory):
        result = runner.invoke(
            cli, [*base_args, "backup"], obj={"orchestrator_factory": orchestrator_factory}
        )

        assert result.exit_code == 1
        assert "bootstrap" in result.output


class TestStatusAndDown:
    """Tests for status and down against a mocked docker CLI."""

    def test_status_without_deployment(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "status"], obj={})

        assert result.exit_code == 0
        assert "No deployment found" in result.output

    def test_status_running(self, runner, base_args, config):
        config.descriptor_file.write_text("services: {}\n")
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(
                returncode=0,
                stdout=json.dumps({"Service": "vaultwarden", "State": "running"}) + "\n",
                stderr="",
            )
            result = runner.invoke(cli, [*base_args, "status"], obj={})

        assert result.exit_code == 0, result.output
        assert "running" in result.output
        assert "ps" in mock_run.call_args[0][0]

    def test_down(self, runner, base_args, config):
        config.descriptor_file.write_text("services: {}\n")
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
            result = runner.invoke(cli, [*base_args, "down"], obj={})

        assert result.exit_code == 0
        assert "Service stopped" in result.output
        assert mock_run.call_args[0][0][-1] == "down"

    def test_down_without_deployment(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "down"], obj={})

        assert result.exit_code == 1
        assert "docker-compose.yml" in result.output
