"""Typed loading of the fleet configuration (deploy.toml).

The file lists the services of the release train, split into services that
must run their pipelines one after another (``[[sequential]]``) and named
groups whose pipelines run concurrently (``[groups]``), plus the CI and
Maven settings shared by every service.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CiConfig",
    "Config",
    "ConfigError",
    "MavenConfig",
    "Service",
    "load_config",
    "resolve_service_dirs",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_TRUNK",
]

DEFAULT_CONFIG_FILE = "deploy.toml"
DEFAULT_TRUNK = "develop"
DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_PIPELINE_TIMEOUT_SECONDS = 60 * 60
DEFAULT_TOKEN_ENV = "GITLAB_TOKEN"
DEFAULT_CI_VARIABLES: tuple[tuple[str, str], ...] = (("CI_PIPELINE_SOURCE", "web"),)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class Service:
    """One repository of the release train.

    Attributes:
        name: Display name, unique across the fleet.
        directory: Working copy location, relative to the base directory.
        project: GitLab project path (e.g. "ecp/proezd/proezd-api").
        group: Concurrency group; None for sequential services.
        prebuild: Sub-directories built with Maven before the service root.
    """

    name: str
    directory: str
    project: str
    group: str | None = None
    prebuild: tuple[str, ...] = ()

    @property
    def is_sequential(self) -> bool:
        return self.group is None


@dataclass(frozen=True, slots=True)
class CiConfig:
    """GitLab pipeline settings."""

    url: str | None = None
    token_env: str = DEFAULT_TOKEN_ENV
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout: float = DEFAULT_PIPELINE_TIMEOUT_SECONDS
    variables: tuple[tuple[str, str], ...] = DEFAULT_CI_VARIABLES
    # Variable only sent when the project does not already define it.
    override_key: str | None = None


@dataclass(frozen=True, slots=True)
class MavenConfig:
    """Build tool settings."""

    clean_cache: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    sequential: tuple[Service, ...] = ()
    groups: tuple[tuple[str, tuple[Service, ...]], ...] = ()
    trunk: str = DEFAULT_TRUNK
    task_url_prefix: str = ""
    property_pattern: str | None = None
    notes_dir: str = "."
    ci: CiConfig | None = None
    maven: MavenConfig = field(default_factory=MavenConfig)

    @property
    def services(self) -> tuple[Service, ...]:
        """All services: sequential ones first, then groups in file order."""
        grouped = tuple(svc for _, members in self.groups for svc in members)
        return self.sequential + grouped

    def group_map(self) -> dict[str, tuple[Service, ...]]:
        return dict(self.groups)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a parsed TOML mapping.

        Raises:
            ValueError: On a structurally invalid service list.
        """
        sequential = tuple(
            _parse_service(item, group=None) for item in _service_items(data, "sequential")
        )

        groups: list[tuple[str, tuple[Service, ...]]] = []
        groups_tbl: StrDict = get_table(data, "groups") or {}
        for group_name, members_obj in groups_tbl.items():
            members = as_obj_list(members_obj)
            if members is None:
                raise ValueError(f"group '{group_name}' must be a list of services")
            groups.append(
                (group_name, tuple(_parse_service(m, group=group_name) for m in members))
            )

        _check_unique_names(sequential + tuple(s for _, ms in groups for s in ms))

        maven: StrDict = get_table(data, "maven") or {}
        return cls(
            sequential=sequential,
            groups=tuple(groups),
            trunk=get_str(data, "trunk") or DEFAULT_TRUNK,
            task_url_prefix=get_str(data, "task_url_prefix") or "",
            property_pattern=get_str(data, "property_pattern"),
            notes_dir=get_str(data, "notes_dir") or ".",
            ci=_parse_ci(get_table(data, "ci")),
            maven=MavenConfig(clean_cache=tuple(get_str_list(maven, "clean_cache") or ())),
        )


def _service_items(data: Mapping[str, object], key: str) -> list[object]:
    if key not in data:
        return []
    items = get_list(data, key)
    if items is None:
        raise ValueError(f"'{key}' must be an array of tables")
    return items


def _parse_service(obj: object, *, group: str | None) -> Service:
    tbl = as_str_dict(obj)
    if tbl is None:
        raise ValueError("service entry must be a table")

    name = get_str(tbl, "name")
    if name is None:
        raise ValueError("service entry is missing 'name'")
    project = get_str(tbl, "project") or get_str(tbl, "gitlab_project")
    if project is None:
        raise ValueError(f"service '{name}' is missing 'project'")

    return Service(
        name=name,
        directory=get_str(tbl, "directory") or name,
        project=project,
        group=group,
        prebuild=tuple(get_str_list(tbl, "prebuild") or ()),
    )


def _check_unique_names(services: tuple[Service, ...]) -> None:
    seen: set[str] = set()
    for svc in services:
        if svc.name in seen:
            raise ValueError(f"duplicate service name: {svc.name}")
        seen.add(svc.name)


def _parse_ci(tbl: StrDict | None) -> CiConfig | None:
    if tbl is None:
        return None

    poll_interval = get_int(tbl, "poll_interval")
    if poll_interval is None:
        poll_interval = DEFAULT_POLL_INTERVAL_SECONDS
    timeout = get_int(tbl, "timeout")
    if timeout is None:
        timeout = DEFAULT_PIPELINE_TIMEOUT_SECONDS
    if poll_interval <= 0 or timeout <= 0:
        raise ValueError("ci.poll_interval and ci.timeout must be positive")

    variables = DEFAULT_CI_VARIABLES
    variables_tbl = get_table(tbl, "variables")
    if variables_tbl is not None:
        variables = tuple((k, str(v)) for k, v in variables_tbl.items())

    override = get_table(tbl, "override") or {}
    return CiConfig(
        url=get_str(tbl, "url"),
        token_env=get_str(tbl, "token_env") or DEFAULT_TOKEN_ENV,
        poll_interval=poll_interval,
        timeout=timeout,
        variables=variables,
        override_key=get_str(override, "key"),
    )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data = as_str_dict(tomllib.loads(content.decode("utf-8")))
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and validate the fleet configuration.

    Args:
        path: Path to deploy.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        config = Config.from_dict(result.value)
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))

    if not config.services:
        return Err(ConfigError("No services configured", path=path))
    return Ok(config)


def resolve_service_dirs(
    services: tuple[Service, ...], base_dir: Path
) -> Result[dict[str, Path], ConfigError]:
    """Map service names to their working copies under base_dir.

    Every directory must exist; the first missing one is reported.
    """
    dirs: dict[str, Path] = {}
    for svc in services:
        path = base_dir / svc.directory
        if not path.is_dir():
            return Err(ConfigError(f"Service directory does not exist: {path}", path=path))
        dirs[svc.name] = path
    return Ok(dirs)
