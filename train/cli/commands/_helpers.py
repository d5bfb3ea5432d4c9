"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn, TypeVar

import typer

from train.core.result import Err, Result
from train.output.console import ConsoleProtocol
from train.output.errors import print_train_error, train_error_exit_code
from train.services.errors import TrainError

T = TypeVar("T")


def exit_on_error(result: Result[T, TrainError], console: ConsoleProtocol) -> T:
    """Return the value of an Ok result; print the error and exit otherwise."""
    if isinstance(result, Err):
        print_train_error(result.error, console)
        exit_with_code(train_error_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)

