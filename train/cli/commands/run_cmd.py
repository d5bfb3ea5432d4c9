from __future__ import annotations

from pathlib import Path

import typer

from train.cli.commands._helpers import exit_on_error
from train.cli.context import build_context
from train.services.train import ReleaseTrain, TrainOptions


def run(
    base_dir: Path = typer.Argument(..., help="Directory holding the service working copies"),
    version: str = typer.Argument(..., help="Release number, e.g. 12"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Fleet config (default: ./deploy.toml)"
    ),
    namespace: str | None = typer.Option(
        None,
        "--namespace",
        help="Value for the configured override variable (e.g. HELM_NAMESPACE)",
    ),
    skip_build: bool = typer.Option(False, "--skip-build", help="Do not run mvn clean install"),
    skip_pipelines: bool = typer.Option(
        False, "--skip-pipelines", help="Do not trigger CI pipelines"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Auto-confirm (do not prompt)"),
) -> None:
    """Cut a release across every configured service.

    Bumps pom.xml versions, creates the release branch and tag, writes release
    notes, builds, pushes and runs the CI pipelines on the new tag.
    """
    ctx = build_context(config)
    train = ReleaseTrain(
        config=ctx.config,
        service_dirs=ctx.service_dirs(base_dir),
        notes_dir=ctx.notes_dir(),
        console=ctx.console,
        confirm=lambda msg: typer.confirm(msg, default=False),
    )
    exit_on_error(
        train.run(
            version,
            TrainOptions(
                skip_build=skip_build,
                skip_pipelines=skip_pipelines,
                namespace=namespace,
                assume_yes=yes,
            ),
        ),
        ctx.console,
    )
