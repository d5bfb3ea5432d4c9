"""Tests for train.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from train.core.config import (
    DEFAULT_CI_VARIABLES,
    CiConfig,
    Config,
    ConfigError,
    Service,
    load_config,
    resolve_service_dirs,
)
from train.core.result import Err, Ok

FULL_CONFIG = """
trunk = "main"
task_url_prefix = "https://jira.example.com/browse/"
property_pattern = "proezd"
notes_dir = "notes"

[ci]
url = "https://gitlab.example.com"
token_env = "CI_TOKEN"
poll_interval = 5
timeout = 600
[ci.variables]
CI_PIPELINE_SOURCE = "web"
DEPLOY = "true"
[ci.override]
key = "HELM_NAMESPACE"

[maven]
clean_cache = ["ru/example/proezd"]

[[sequential]]
name = "proezd-common"
project = "ecp/proezd/proezd-common"

[[sequential]]
name = "proezd-api"
directory = "api"
project = "ecp/proezd/proezd-api"
prebuild = ["graphql-mesh-resources"]

[groups]
bo = [
  { name = "claim-bo", project = "ecp/proezd/claim-bo" },
  { name = "order-bo", gitlab_project = "ecp/proezd/order-bo" },
]
fo = [
  { name = "claim-fo", project = "ecp/proezd/claim-fo" },
]
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "deploy.toml"
    path.write_text(content, encoding="utf-8")
    return path


class TestService:
    def test_sequential_when_no_group(self) -> None:
        assert Service(name="a", directory="a", project="g/a").is_sequential is True
        assert Service(name="a", directory="a", project="g/a", group="bo").is_sequential is False

    def test_frozen(self) -> None:
        svc = Service(name="a", directory="a", project="g/a")
        with pytest.raises(AttributeError):
            svc.name = "b"  # type: ignore[misc]


class TestCiConfig:
    def test_defaults(self) -> None:
        ci = CiConfig()
        assert ci.url is None
        assert ci.token_env == "GITLAB_TOKEN"
        assert ci.poll_interval == 30
        assert ci.timeout == 3600
        assert ci.variables == DEFAULT_CI_VARIABLES
        assert ci.override_key is None


class TestConfigFromDict:
    def test_minimal(self) -> None:
        config = Config.from_dict({"sequential": [{"name": "a", "project": "g/a"}]})
        assert config.trunk == "develop"
        assert config.property_pattern is None
        assert config.ci is None
        assert config.maven.clean_cache == ()
        assert config.services[0].directory == "a"

    def test_missing_project_rejected(self) -> None:
        with pytest.raises(ValueError, match="missing 'project'"):
            Config.from_dict({"sequential": [{"name": "a"}]})

    def test_missing_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="missing 'name'"):
            Config.from_dict({"groups": {"g": [{"project": "g/a"}]}})

    def test_duplicate_names_rejected(self) -> None:
        data = {
            "sequential": [{"name": "a", "project": "g/a"}],
            "groups": {"g": [{"name": "a", "project": "g/a2"}]},
        }
        with pytest.raises(ValueError, match="duplicate service name: a"):
            Config.from_dict(data)

    def test_group_must_be_list(self) -> None:
        with pytest.raises(ValueError, match="group 'g'"):
            Config.from_dict({"groups": {"g": {"name": "a"}}})

    def test_non_positive_interval_rejected(self) -> None:
        data = {
            "sequential": [{"name": "a", "project": "g/a"}],
            "ci": {"poll_interval": 0},
        }
        with pytest.raises(ValueError, match="must be positive"):
            Config.from_dict(data)


class TestLoadConfig:
    def test_full_config(self, tmp_path: Path) -> None:
        result = load_config(_write(tmp_path, FULL_CONFIG))
        assert isinstance(result, Ok)
        config = result.value

        assert config.trunk == "main"
        assert config.task_url_prefix == "https://jira.example.com/browse/"
        assert config.property_pattern == "proezd"
        assert config.notes_dir == "notes"
        assert config.maven.clean_cache == ("ru/example/proezd",)

        assert [s.name for s in config.sequential] == ["proezd-common", "proezd-api"]
        assert config.sequential[1].directory == "api"
        assert config.sequential[1].prebuild == ("graphql-mesh-resources",)

        groups = config.group_map()
        assert list(groups) == ["bo", "fo"]
        assert [s.name for s in groups["bo"]] == ["claim-bo", "order-bo"]
        assert groups["bo"][1].project == "ecp/proezd/order-bo"
        assert all(s.group == "bo" for s in groups["bo"])

        assert [s.name for s in config.services] == [
            "proezd-common",
            "proezd-api",
            "claim-bo",
            "order-bo",
            "claim-fo",
        ]

        assert config.ci is not None
        assert config.ci.url == "https://gitlab.example.com"
        assert config.ci.token_env == "CI_TOKEN"
        assert config.ci.poll_interval == 5
        assert config.ci.timeout == 600
        assert dict(config.ci.variables) == {"CI_PIPELINE_SOURCE": "web", "DEPLOY": "true"}
        assert config.ci.override_key == "HELM_NAMESPACE"

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "nope.toml")
        assert isinstance(result, Err)
        assert isinstance(result.error, ConfigError)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        result = load_config(_write(tmp_path, "trunk = [unclosed"))
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message

    def test_invalid_structure(self, tmp_path: Path) -> None:
        result = load_config(_write(tmp_path, "[[sequential]]\nname = 'a'\n"))
        assert isinstance(result, Err)
        assert "Invalid config structure" in result.error.message

    def test_no_services(self, tmp_path: Path) -> None:
        result = load_config(_write(tmp_path, 'trunk = "develop"\n'))
        assert isinstance(result, Err)
        assert result.error.message == "No services configured"


class TestResolveServiceDirs:
    def test_resolves_existing(self, tmp_path: Path) -> None:
        (tmp_path / "a").mkdir()
        (tmp_path / "api").mkdir()
        services = (
            Service(name="a", directory="a", project="g/a"),
            Service(name="b", directory="api", project="g/b"),
        )
        result = resolve_service_dirs(services, tmp_path)
        assert result == Ok({"a": tmp_path / "a", "b": tmp_path / "api"})

    def test_missing_directory(self, tmp_path: Path) -> None:
        services = (Service(name="a", directory="a", project="g/a"),)
        result = resolve_service_dirs(services, tmp_path)
        assert isinstance(result, Err)
        assert "does not exist" in result.error.message
