from __future__ import annotations

from pathlib import Path

import typer

from train.cli.commands._helpers import exit_on_error
from train.core.config import DEFAULT_CONFIG_FILE, load_config
from train.core.result import Ok
from train.output.console import RichConsole, Style
from train.services.versions import propagate


def bump(
    directory: Path = typer.Argument(..., help="Service working copy"),
    version: str = typer.Argument(..., help="Release number, e.g. 12"),
    pattern: str | None = typer.Option(
        None,
        "--pattern",
        "-p",
        help="Also set <properties> whose name contains this text",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Fleet config (default: ./deploy.toml)"
    ),
) -> None:
    """Set every pom.xml under DIRECTORY to VERSION.0."""
    console = RichConsole()

    if pattern is None:
        path = config or Path.cwd() / DEFAULT_CONFIG_FILE
        if config is not None or path.exists():
            match load_config(path):
                case Ok(cfg):
                    pattern = cfg.property_pattern
                case _:
                    console.warning(f"Ignoring unreadable config {path}")

    rewrites = exit_on_error(propagate(directory, version, property_pattern=pattern), console)
    if not rewrites:
        console.warning(f"No pom.xml found under {directory}")
        return

    for r in rewrites:
        fields: list[str] = []
        if r.project_version:
            fields.append("version")
        if r.parent_version:
            fields.append("parent")
        if r.properties:
            fields.append(f"{r.properties} properties")
        summary = ", ".join(fields) if fields else "unchanged"
        console.print(f"  {r.path.relative_to(directory)} ({r.kind}): {summary}", Style.DIM)
    changed = sum(1 for r in rewrites if r.changed_fields)
    console.success(f"Updated {changed} of {len(rewrites)} pom.xml files")
