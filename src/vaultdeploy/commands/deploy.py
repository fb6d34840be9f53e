"""Deploy commands: bootstrap (default), backup, status and down."""

from __future__ import annotations

import sys
from typing import NoReturn

import click

from ..config import DeployConfig
from ..deploy import (
    BootstrapStep,
    DeploymentStateManager,
    Orchestrator,
    ServiceController,
    StackState,
    default_prompt,
)
from ..errors import DeployError, ReauthenticationRequired
from ..shared import console

STEP_MESSAGES = {
    BootstrapStep.CHECK_DEPENDENCIES: "Checking system dependencies",
    BootstrapStep.INIT_DIRECTORIES: "Initializing directories",
    BootstrapStep.ENSURE_CREDENTIAL: "Generating secure configuration",
    BootstrapStep.ENSURE_CERTIFICATE: "Checking TLS certificate",
    BootstrapStep.RENDER_DESCRIPTOR: "Writing service descriptor",
    BootstrapStep.START_SERVICE: "Starting service",
    BootstrapStep.POLL_HEALTH: "Waiting for the service to become healthy",
}


def fail(error: DeployError) -> NoReturn:
    """Report a DeployError and exit with its code."""
    if isinstance(error, ReauthenticationRequired):
        console.warn(str(error))
        console.info("Log out of this session, log back in, then run vaultdeploy again")
    else:
        console.error(str(error))
    sys.exit(error.exit_code)


def _orchestrator(ctx: click.Context, **kwargs) -> Orchestrator:
    """Build the orchestrator; tests inject a factory through ctx.obj."""
    factory = ctx.obj.get("orchestrator_factory", Orchestrator)
    return factory(ctx.obj["config"], **kwargs)


def run_bootstrap(ctx: click.Context) -> None:
    """Execute the full bootstrap flow and print the summary."""
    config: DeployConfig = ctx.obj["config"]
    click.echo(click.style(f"{config.app_name} deployment\n", bold=True))

    def on_step(step: BootstrapStep) -> None:
        message = STEP_MESSAGES.get(step)
        if message:
            console.info(message)

    orchestrator = _orchestrator(
        ctx,
        prompt=default_prompt(ctx.obj.get("non_interactive", False)),
        on_step=on_step,
    )
    try:
        result = orchestrator.run_bootstrap()
    except DeployError as e:
        fail(e)

    summary = result.summary
    if result.healthy:
        console.info("Deployment complete")
    else:
        console.warn("Service started, but health was not confirmed (best effort)")
        if result.health and result.health.error:
            console.warn(result.health.error)

    click.echo(f"Access URL: {click.style(summary.access_url, bold=True)}")
    click.echo(f"Sign up:    {click.style(summary.signup_url, bold=True)}")
    click.echo(f"Admin page: {click.style(summary.admin_url, bold=True)}")
    if summary.self_signed:
        console.warn("Browsers will warn about the self-signed certificate on first visit")


@click.command()
@click.pass_context
def backup(ctx: click.Context) -> None:
    """Back up the running vault's database."""
    config: DeployConfig = ctx.obj["config"]
    console.info("Creating data backup")
    try:
        record = _orchestrator(ctx).run_backup()
    except DeployError as e:
        fail(e)

    console.info(f"Backup saved to: {record.archived_path}")
    if record.pruned:
        console.info(
            f"Removed {len(record.pruned)} backup(s) older than {config.backup_retention_days} days"
        )


@click.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show deployment artifacts and service state."""
    config: DeployConfig = ctx.obj["config"]
    state = DeploymentStateManager(config).detect_state()

    def mark(present: bool) -> str:
        return "✓" if present else "✗"

    click.echo(f"Deployment: {config.base_dir}")
    click.echo(f"  {mark(state.has_credential)} admin token record")
    click.echo(f"  {mark(state.has_certificate)} TLS certificate")
    click.echo(f"  {mark(state.has_descriptor)} service descriptor")
    click.echo(f"  Backups: {state.backup_count}")

    if state.stack_state == StackState.NOT_FOUND:
        click.echo("No deployment found. Run: vaultdeploy")
        return
    click.echo(f"Service state: {state.stack_state.value}")
    for svc in state.running_services:
        click.echo(f"  ✓ {svc}")


@click.command()
@click.pass_context
def down(ctx: click.Context) -> None:
    """Stop and remove the service container (data is kept)."""
    controller = ServiceController(ctx.obj["config"])
    success, msg = controller.stop()
    if success:
        click.echo(f"✓ {msg}")
    else:
        click.echo(f"✗ {msg}", err=True)
        sys.exit(1)
