"""
Deploy and watch commands.

This module provides the CLI commands:
- deploy: Load a compiled template, start a deployment, then watch it
- watch: Attach to an existing deployment and watch it

Per project patterns:
- Use envvar parameter for environment variable fallback
- Options left unset fall back to Settings (DEPLOYWATCH_* variables)
- The process exit code is the watch outcome's exit code
"""

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from deploywatch_arm import (
    create_arm_client,
    deployment_id,
    load_parameters,
    load_template,
    resource_group_scope,
)
from deploywatch_core.config import Settings
from deploywatch_core.coordinator import (
    EXIT_CODES,
    WatchCoordinator,
    WatchOutcome,
    WatchStatus,
)
from deploywatch_core.exceptions import OrchestrationAPIError, PreflightError
from deploywatch_core.poller import DeploymentPoller
from deploywatch_core.protocols import DeploymentClientProtocol
from deploywatch_core.tui import LiveTreeDisplay, TreeRenderer
from deploywatch_core.types import DeploymentId

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

console = Console()
err_console = Console(stderr=True)

SubscriptionOption = typer.Option(
    ..., "--subscription-id", envvar="DEPLOYWATCH_SUBSCRIPTION_ID", help="Target subscription ID"
)
ResourceGroupOption = typer.Option(
    ..., "--resource-group", "-g", envvar="DEPLOYWATCH_RESOURCE_GROUP", help="Target resource group"
)
NameOption = typer.Option("main", "--name", "-n", help="Deployment name")
PollIntervalOption = typer.Option(
    None, "--poll-interval", help="Seconds between status polls (default 5)"
)
RenderIntervalOption = typer.Option(
    None, "--render-interval", help="Seconds between redraws (default 0.05)"
)
TokenOption = typer.Option(
    None, "--token", envvar="DEPLOYWATCH_ACCESS_TOKEN", help="Bearer token for ARM"
)
TenantOption = typer.Option(
    None, "--tenant", envvar="DEPLOYWATCH_TENANT_ID", help="Tenant used in portal links"
)
LogFileOption = typer.Option(
    None, "--log-file", help="Write logs to this file (otherwise logging is silenced)"
)


def _load_settings(**overrides: object) -> Settings:
    """
    Build Settings from the environment, then apply CLI options that were set.

    Invalid DEPLOYWATCH_* values are reported and exit 1 before anything runs.
    """
    try:
        settings = Settings()
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            err_console.print(f"[red]Error:[/red] {escape(field)}: {escape(error['msg'])}")
        raise typer.Exit(1)
    update = {key: value for key, value in overrides.items() if value is not None}
    return settings.model_copy(update=update)


def _configure_logging(settings: Settings, log_file: Path | None) -> None:
    """
    Configure logging without disturbing the live tree.

    Log records go to log_file when given. Otherwise logging is silenced,
    since anything written to the terminal mid-frame would break the
    cursor rewind; errors are reported after the watch ends instead.
    """
    if log_file is not None:
        logging.basicConfig(
            filename=str(log_file),
            level=settings.log_level,
            format=LOG_FORMAT,
        )
    else:
        logging.basicConfig(level=logging.CRITICAL, format=LOG_FORMAT)


async def _watch(
    client: DeploymentClientProtocol, settings: Settings, root_id: DeploymentId
) -> WatchOutcome:
    coordinator = WatchCoordinator(
        poller=DeploymentPoller(client),
        display=LiveTreeDisplay(TreeRenderer(settings.tenant_id), console),
        poll_interval=settings.poll_interval_seconds,
        render_interval=settings.render_interval_seconds,
    )
    return await coordinator.run(root_id)


def _run(main: Coroutine[Any, Any, WatchOutcome]) -> None:
    """Run a watch coroutine, report its outcome and exit with its code."""
    try:
        outcome = asyncio.run(main)
    except OrchestrationAPIError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CODES[WatchStatus.ERROR])
    except KeyboardInterrupt:
        err_console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(EXIT_CODES[WatchStatus.CANCELLED])

    _report(outcome)
    raise typer.Exit(outcome.exit_code)


def _report(outcome: WatchOutcome) -> None:
    state = escape(outcome.root_state or "unknown")
    if outcome.status is WatchStatus.SUCCEEDED:
        console.print(f"[green]Deployment {state}[/green]")
    elif outcome.status is WatchStatus.FAILED:
        err_console.print(f"[red]Deployment {state}[/red]")
    elif outcome.status is WatchStatus.CANCELLED:
        err_console.print(f"[yellow]Cancelled[/yellow] (last state: {state})")
    else:
        err_console.print(f"[red]Error:[/red] {escape(str(outcome.error))}")


def deploy(
    subscription_id: str = SubscriptionOption,
    resource_group: str = ResourceGroupOption,
    template: Path = typer.Option(
        ..., "--template", "-t", help="Compiled ARM template (JSON)"
    ),
    parameters: Optional[Path] = typer.Option(
        None, "--parameters", "-p", help="ARM parameters file (JSON)"
    ),
    name: str = NameOption,
    poll_interval: Optional[float] = PollIntervalOption,
    render_interval: Optional[float] = RenderIntervalOption,
    token: Optional[str] = TokenOption,
    tenant: Optional[str] = TenantOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """
    Start a deployment and watch it until it finishes.

    Exits 0 when the deployment succeeds, 1 when it fails (or when the
    template cannot be loaded), 2 on service errors, 130 when cancelled.
    """
    settings = _load_settings(
        poll_interval_seconds=poll_interval,
        render_interval_seconds=render_interval,
        access_token=token,
        tenant_id=tenant,
    )
    _configure_logging(settings, log_file)

    try:
        template_body = load_template(template)
        parameter_values = load_parameters(parameters)
    except PreflightError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    scope = resource_group_scope(subscription_id, resource_group)

    async def _deploy() -> WatchOutcome:
        async with create_arm_client(settings) as client:
            root_id = await client.start_deployment(
                scope, name, template_body, parameter_values
            )
            return await _watch(client, settings, root_id)

    _run(_deploy())


def watch(
    subscription_id: str = SubscriptionOption,
    resource_group: str = ResourceGroupOption,
    name: str = NameOption,
    poll_interval: Optional[float] = PollIntervalOption,
    render_interval: Optional[float] = RenderIntervalOption,
    token: Optional[str] = TokenOption,
    tenant: Optional[str] = TenantOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """Watch an existing deployment until it finishes."""
    settings = _load_settings(
        poll_interval_seconds=poll_interval,
        render_interval_seconds=render_interval,
        access_token=token,
        tenant_id=tenant,
    )
    _configure_logging(settings, log_file)
    root_id = deployment_id(resource_group_scope(subscription_id, resource_group), name)

    async def _attach() -> WatchOutcome:
        async with create_arm_client(settings) as client:
            return await _watch(client, settings, root_id)

    _run(_attach())
