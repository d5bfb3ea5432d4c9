from __future__ import annotations

from pathlib import Path

import typer

from train.cli.commands._helpers import exit_on_error
from train.cli.context import build_context
from train.services.notes import synthesize
from train.services.versions import normalize_version


def notes(
    base_dir: Path = typer.Argument(..., help="Directory holding the service working copies"),
    version: str = typer.Argument(..., help="Release number, e.g. 12"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Fleet config (default: ./deploy.toml)"
    ),
) -> None:
    """Write release-notes-VERSION.txt from the services' commit history."""
    ctx = build_context(config)
    exit_on_error(normalize_version(version), ctx.console)

    exit_on_error(
        synthesize(
            ctx.service_dirs(base_dir),
            int(version),
            url_prefix=ctx.config.task_url_prefix,
            trunk=ctx.config.trunk,
            out_dir=ctx.notes_dir(),
            console=ctx.console,
        ),
        ctx.console,
    )
