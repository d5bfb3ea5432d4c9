from __future__ import annotations

import os
from pathlib import Path

import typer

from train.cli.commands._helpers import exit_on_error
from train.cli.context import build_context
from train.core.result import Err
from train.services.ci import client_from_config
from train.services.dispatch import Override, PipelineDispatcher
from train.services.errors import TrainError


def pipelines(
    ref: str = typer.Argument(..., help="Branch or tag to run, e.g. release-12.0"),
    namespace: str | None = typer.Option(
        None,
        "--namespace",
        help="Value for the configured override variable (e.g. HELM_NAMESPACE)",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Fleet config (default: ./deploy.toml)"
    ),
) -> None:
    """Trigger and await CI pipelines for every configured service on REF."""
    ctx = build_context(config)
    ci = ctx.config.ci
    if ci is None:
        exit_on_error(
            Err(TrainError(kind="config", message="no [ci] section in the configuration")),
            ctx.console,
        )
        return

    client = exit_on_error(client_from_config(ci, os.environ), ctx.console)
    override = None
    if ci.override_key and namespace:
        override = Override(key=ci.override_key, value=namespace)

    dispatcher = PipelineDispatcher(
        client, ctx.console, poll_interval=ci.poll_interval, timeout=ci.timeout
    )
    runs = exit_on_error(
        dispatcher.dispatch(
            ctx.config.sequential, ctx.config.group_map(), ref, dict(ci.variables), override
        ),
        ctx.console,
    )
    ctx.console.success(f"{len(runs)} pipelines succeeded on {ref}")
