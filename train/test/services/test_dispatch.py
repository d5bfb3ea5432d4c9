"""Tests for services/dispatch.py."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field

import pytest

from train.core.config import Service
from train.core.result import Err, Ok, Result
from train.output.console import MockConsole
from train.services import dispatch as dispatch_module
from train.services.ci import CreatedPipeline
from train.services.dispatch import Override, PipelineDispatcher
from train.services.errors import TrainError


def _svc(name: str, group: str | None = None) -> Service:
    return Service(name=name, directory=name, project=f"ecp/proezd/{name}", group=group)


@dataclass
class FakeCi:
    """Records calls; each project walks through its scripted statuses."""

    statuses: dict[str, list[str]] = field(default_factory=dict)
    variables: dict[tuple[str, str], str] = field(default_factory=dict)
    fail_create: set[str] = field(default_factory=set)
    events: list[tuple[str, str]] = field(default_factory=list)
    created: dict[str, Mapping[str, str]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    _ids: dict[int, str] = field(default_factory=dict)

    def get_variable(self, project: str, key: str) -> Result[str | None, TrainError]:
        return Ok(self.variables.get((project, key)))

    def create_pipeline(
        self, project: str, ref: str, variables: Mapping[str, str]
    ) -> Result[CreatedPipeline, TrainError]:
        with self.lock:
            self.events.append(("create", project))
            if project in self.fail_create:
                return Err(TrainError(kind="remote_api", message="failed to create pipeline"))
            pipeline_id = len(self._ids) + 1
            self._ids[pipeline_id] = project
            self.created[project] = dict(variables)
        return Ok(CreatedPipeline(id=pipeline_id, web_url=f"https://gl/{project}/{pipeline_id}"))

    def get_pipeline_status(self, project: str, pipeline_id: int) -> Result[str, TrainError]:
        with self.lock:
            queue = self.statuses.get(project, ["success"])
            status = queue.pop(0) if len(queue) > 1 else queue[0]
            self.events.append((status, project))
        return Ok(status)

    def terminal(self, project: str) -> list[str]:
        return [e for e, p in self.events if p == project and e != "create"]


@dataclass
class BlockingCi(FakeCi):
    """Each status poll waits until a second member polls too."""

    barrier: threading.Barrier = field(default_factory=lambda: threading.Barrier(2, timeout=5))

    def get_pipeline_status(self, project: str, pipeline_id: int) -> Result[str, TrainError]:
        self.barrier.wait()
        return super().get_pipeline_status(project, pipeline_id)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(dispatch_module, "sleep", lambda _seconds: None)


def _dispatcher(ci: FakeCi, console: MockConsole | None = None) -> PipelineDispatcher:
    return PipelineDispatcher(ci, console or MockConsole(), poll_interval=1, timeout=60)


class TestOrdering:
    def test_sequential_then_groups(self) -> None:
        ci = FakeCi(statuses={"ecp/proezd/s1": ["running", "success"]})
        sequential = [_svc("s1"), _svc("s2")]
        groups = {"g1": [_svc("a", "g1"), _svc("b", "g1")]}

        result = _dispatcher(ci).dispatch(sequential, groups, "release-12.0", {})

        assert isinstance(result, Ok)
        assert [r.service for r in result.value[:2]] == ["s1", "s2"]
        assert {r.service for r in result.value[2:]} == {"a", "b"}
        creates = [p for e, p in ci.events if e == "create"]
        assert creates[:2] == ["ecp/proezd/s1", "ecp/proezd/s2"]
        # s1 is finished before s2 is triggered.
        assert ci.events.index(("success", "ecp/proezd/s1")) < ci.events.index(
            ("create", "ecp/proezd/s2")
        )
        # s2 is finished before any group member is triggered.
        first_group_create = min(
            ci.events.index(("create", "ecp/proezd/a")), ci.events.index(("create", "ecp/proezd/b"))
        )
        assert ci.events.index(("success", "ecp/proezd/s2")) < first_group_create

    def test_group_members_overlap(self) -> None:
        ci = BlockingCi()
        members = [_svc("a", "g"), _svc("b", "g")]

        result = _dispatcher(ci).run_group(members, "release-12.0", {})

        assert isinstance(result, Ok)
        # Neither member polled before both were triggered.
        assert {e for e, _ in ci.events[:2]} == {"create"}

    def test_sequential_failure_stops_everything(self) -> None:
        ci = FakeCi(statuses={"ecp/proezd/s1": ["failed"]})
        result = _dispatcher(ci).dispatch(
            [_svc("s1"), _svc("s2")], {"g1": [_svc("a", "g1")]}, "release-12.0", {}
        )

        assert isinstance(result, Err)
        assert result.error.kind == "pipeline_failed"
        assert result.error.service == "s1"
        assert [p for e, p in ci.events if e == "create"] == ["ecp/proezd/s1"]

    def test_groups_run_in_order(self) -> None:
        ci = FakeCi(statuses={"ecp/proezd/a": ["canceled"]})
        groups = {"g1": [_svc("a", "g1")], "g2": [_svc("b", "g2")]}

        result = _dispatcher(ci).dispatch([], groups, "release-12.0", {})

        assert isinstance(result, Err)
        assert "canceled" in result.error.message
        assert ("create", "ecp/proezd/b") not in ci.events

    def test_headers(self) -> None:
        console = MockConsole()
        _dispatcher(FakeCi(), console).dispatch(
            [_svc("s1")], {"g1": [_svc("a", "g1")], "empty": []}, "release-12.0", {}
        )
        assert console.find("Pipeline for s1 on release-12.0")
        assert console.find("Pipelines for group g1 on release-12.0")
        assert not console.find("group empty")


class TestGroupFailure:
    def test_other_members_are_awaited(self) -> None:
        ci = FakeCi(
            fail_create={"ecp/proezd/b"},
            statuses={
                "ecp/proezd/a": ["pending", "running", "success"],
                "ecp/proezd/c": ["running", "success"],
            },
        )
        members = [_svc("a", "g"), _svc("b", "g"), _svc("c", "g")]

        result = _dispatcher(ci).run_group(members, "release-12.0", {})

        assert isinstance(result, Err)
        assert result.error.service == "b"
        assert result.error.kind == "remote_api"
        assert ci.terminal("ecp/proezd/a")[-1] == "success"
        assert ci.terminal("ecp/proezd/c")[-1] == "success"

    def test_all_succeed(self) -> None:
        members = [_svc(n, "g") for n in ("a", "b", "c")]
        result = _dispatcher(FakeCi()).run_group(members, "release-12.0", {})
        assert isinstance(result, Ok)
        assert sorted(r.service for r in result.value) == ["a", "b", "c"]


class TestWait:
    @pytest.mark.parametrize("status", ["failed", "canceled", "skipped"])
    def test_failed_statuses(self, status: str) -> None:
        ci = FakeCi(statuses={"ecp/proezd/s1": ["running", status]})
        result = _dispatcher(ci).run_one(_svc("s1"), "release-12.0", {})
        assert isinstance(result, Err)
        assert result.error.kind == "pipeline_failed"
        assert result.error.message == f"pipeline 1 {status}"

    def test_unknown_status_keeps_polling(self) -> None:
        ci = FakeCi(statuses={"ecp/proezd/s1": ["waiting_for_resource", "manual", "success"]})
        result = _dispatcher(ci).run_one(_svc("s1"), "release-12.0", {})
        assert isinstance(result, Ok)
        assert result.value.status == "success"
        assert result.value.web_url == "https://gl/ecp/proezd/s1/1"

    def test_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        clock = iter([0.0, 30.0, 61.0])
        monkeypatch.setattr(dispatch_module, "monotonic", lambda: next(clock))
        ci = FakeCi(statuses={"ecp/proezd/s1": ["running"]})

        result = _dispatcher(ci).run_one(_svc("s1"), "release-12.0", {})

        assert isinstance(result, Err)
        assert result.error.kind == "timeout"
        assert result.error.message == "pipeline 1 still running after 60s"
        assert ci.terminal("ecp/proezd/s1") == ["running", "running"]

    def test_polls_at_interval(self, monkeypatch: pytest.MonkeyPatch) -> None:
        slept: list[float] = []
        monkeypatch.setattr(dispatch_module, "sleep", slept.append)
        ci = FakeCi(statuses={"ecp/proezd/s1": ["created", "running", "success"]})

        PipelineDispatcher(ci, MockConsole(), poll_interval=5, timeout=60).run_one(
            _svc("s1"), "release-12.0", {}
        )

        assert slept == [5, 5]


class TestOverride:
    def test_applied_when_project_leaves_it_blank(self) -> None:
        ci = FakeCi(variables={("ecp/proezd/s1", "HELM_NAMESPACE"): "  "})
        override = Override(key="HELM_NAMESPACE", value="proezd-test")

        _dispatcher(ci).run_one(_svc("s1"), "r", {"CI_PIPELINE_SOURCE": "web"}, override)

        assert ci.created["ecp/proezd/s1"] == {
            "CI_PIPELINE_SOURCE": "web",
            "HELM_NAMESPACE": "proezd-test",
        }

    def test_applied_when_project_does_not_define_it(self) -> None:
        ci = FakeCi()
        override = Override(key="HELM_NAMESPACE", value="proezd-test")
        _dispatcher(ci).run_one(_svc("s1"), "r", {}, override)
        assert ci.created["ecp/proezd/s1"] == {"HELM_NAMESPACE": "proezd-test"}

    def test_project_value_wins(self) -> None:
        ci = FakeCi(variables={("ecp/proezd/s1", "HELM_NAMESPACE"): "proezd-prod"})
        console = MockConsole()
        override = Override(key="HELM_NAMESPACE", value="proezd-test")

        _dispatcher(ci, console).run_one(_svc("s1"), "r", {}, override)

        assert ci.created["ecp/proezd/s1"] == {}
        assert console.find("keeping project value of HELM_NAMESPACE")

    def test_blank_override_is_ignored(self) -> None:
        ci = FakeCi()
        _dispatcher(ci).run_one(_svc("s1"), "r", {}, Override(key="HELM_NAMESPACE", value=""))
        assert ci.created["ecp/proezd/s1"] == {}
