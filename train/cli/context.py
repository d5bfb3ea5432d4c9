from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from train.core.config import DEFAULT_CONFIG_FILE, Config, load_config, resolve_service_dirs
from train.core.errors import ErrorCode
from train.core.result import Err
from train.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    config_path: Path
    console: ConsoleProtocol

    def service_dirs(self, base_dir: Path) -> dict[str, Path]:
        """Working copies of every configured service; exits if one is missing."""
        result = resolve_service_dirs(self.config.services, base_dir)
        if isinstance(result, Err):
            self.console.error(result.error.message)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        return result.value

    def notes_dir(self) -> Path:
        """Release notes directory (relative paths are taken from the config file)."""
        path = Path(self.config.notes_dir).expanduser()
        if path.is_absolute():
            return path
        return self.config_path.parent / path


def build_context(config_path: Path | None = None) -> CLIContext:
    console = RichConsole()
    path = config_path or Path.cwd() / DEFAULT_CONFIG_FILE

    result = load_config(path)
    if isinstance(result, Err):
        console.error(result.error.message)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(config=result.value, config_path=path, console=console)
