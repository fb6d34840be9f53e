"""CLI main entry point."""

from pathlib import Path

import click

from . import __version__
from .commands.deploy import backup, down, fail, run_bootstrap, status
from .config import load_config
from .errors import ConfigError
from .shared.logging import configure_logging, level_for_verbosity


@click.group(invoke_without_command=True)
@click.option("-c", "--config", "config_path", type=click.Path(path_type=Path), help="Config file path")
@click.option("--base-dir", type=click.Path(path_type=Path), help="Deployment directory")
@click.option("--port", type=int, help="Published HTTPS port")
@click.option("--domain", help="Domain the vault is served on")
@click.option("--non-interactive", is_flag=True, help="Never prompt; unconfirmed secrets abort")
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option("--log-file", type=click.Path(path_type=Path), help="Write logs to a file instead of stderr")
@click.version_option(__version__, prog_name="vaultdeploy")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    base_dir: Path | None,
    port: int | None,
    domain: str | None,
    non_interactive: bool,
    verbose: int,
    json_logs: bool,
    log_file: Path | None,
) -> None:
    """Deploy a self-hosted Vaultwarden with TLS and an admin token.

    Without a command, runs the full bootstrap. Safe to re-run: existing
    secrets and certificates are kept.

    Examples:

        # Bootstrap (or re-apply configuration)
        vaultdeploy

        # Back up the database, pruning backups older than 30 days
        vaultdeploy backup

        # From cron, with JSON logs kept in a file
        vaultdeploy --json-logs -v --log-file backup.log backup
    """
    ctx.ensure_object(dict)
    configure_logging(level_for_verbosity(verbose), log_file=log_file, json_output=json_logs)

    try:
        config = load_config(
            config_path,
            overrides={"base_dir": base_dir, "port": port, "domain": domain},
        )
    except ConfigError as e:
        fail(e)

    ctx.obj["config"] = config
    ctx.obj["non_interactive"] = non_interactive

    if ctx.invoked_subcommand is None:
        run_bootstrap(ctx)


cli.add_command(backup)
cli.add_command(status)
cli.add_command(down)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
