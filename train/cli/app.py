from __future__ import annotations

import typer

from train import __version__
from train.cli.commands.bump import bump
from train.cli.commands.notes import notes
from train.cli.commands.pipelines import pipelines
from train.cli.commands.run_cmd import run

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Release train for a fleet of Maven services.",
)


# Commands
app.command()(run)
app.command()(bump)
app.command()(notes)
app.command()(pipelines)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_show_version,
        is_eager=True,
    ),
) -> None:
    pass


def main() -> None:
    app()
