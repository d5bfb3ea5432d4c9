"""Pipeline dispatch: sequential services first, then groups in parallel.

Sequential services are triggered and awaited one at a time, in order. Groups
start only after every sequential service succeeded, one group at a time;
members of a group run concurrently, one worker each. A failing member fails
its group, but the rest of the group is still awaited before the failure is
reported.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import UTC, datetime
from time import monotonic, sleep
from typing import Protocol

from train.core.config import (
    DEFAULT_PIPELINE_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    Service,
)
from train.core.result import Err, Ok, Result
from train.output.console import ConsoleProtocol, Style
from train.services.ci import CreatedPipeline
from train.services.errors import TrainError

SUCCESS_STATUS = "success"
FAILED_STATUSES = frozenset({"failed", "canceled", "skipped"})


class PipelineApi(Protocol):
    """The CI calls the dispatcher needs (GitLabClient in production)."""

    def get_variable(self, project: str, key: str) -> Result[str | None, TrainError]: ...

    def create_pipeline(
        self, project: str, ref: str, variables: Mapping[str, str]
    ) -> Result[CreatedPipeline, TrainError]: ...

    def get_pipeline_status(self, project: str, pipeline_id: int) -> Result[str, TrainError]: ...


@dataclass(frozen=True, slots=True)
class Override:
    """A variable sent only to projects that leave it unset or blank."""

    key: str
    value: str


@dataclass(frozen=True, slots=True)
class PipelineRun:
    service: str
    pipeline_id: int
    web_url: str
    status: str
    started_at: datetime


class PipelineDispatcher:
    def __init__(
        self,
        client: PipelineApi,
        console: ConsoleProtocol,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout: float = DEFAULT_PIPELINE_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._console = console
        self.poll_interval = poll_interval
        self.timeout = timeout

    def dispatch(
        self,
        sequential: Sequence[Service],
        groups: Mapping[str, Sequence[Service]],
        ref: str,
        variables: Mapping[str, str],
        override: Override | None = None,
    ) -> Result[list[PipelineRun], TrainError]:
        """Run every pipeline on ref; stop at the first failing stage."""
        runs: list[PipelineRun] = []

        for service in sequential:
            self._console.header(f"Pipeline for {service.name} on {ref}")
            result = self.run_one(service, ref, variables, override)
            if isinstance(result, Err):
                return result
            runs.append(result.value)

        for name, members in groups.items():
            if not members:
                continue
            self._console.header(f"Pipelines for group {name} on {ref}")
            result = self.run_group(members, ref, variables, override)
            if isinstance(result, Err):
                return result
            runs.extend(result.value)

        return Ok(runs)

    def run_group(
        self,
        members: Sequence[Service],
        ref: str,
        variables: Mapping[str, str],
        override: Override | None = None,
    ) -> Result[list[PipelineRun], TrainError]:
        """Run all members concurrently; report the first failure to complete."""
        runs: list[PipelineRun] = []
        failure: TrainError | None = None

        with ThreadPoolExecutor(max_workers=len(members)) as pool:
            futures = [
                pool.submit(self.run_one, service, ref, variables, override) for service in members
            ]
            for future in as_completed(futures):
                match future.result():
                    case Ok(run):
                        runs.append(run)
                    case Err(e):
                        if failure is None:
                            failure = e

        if failure is not None:
            return Err(failure)
        return Ok(runs)

    def run_one(
        self,
        service: Service,
        ref: str,
        variables: Mapping[str, str],
        override: Override | None = None,
    ) -> Result[PipelineRun, TrainError]:
        """Trigger one pipeline and wait for it to finish."""
        request = dict(variables)
        if override is not None and override.value.strip():
            current = self._client.get_variable(service.project, override.key)
            if isinstance(current, Err):
                return Err(current.error.for_service(service.name))
            if current.value is None or not current.value.strip():
                request[override.key] = override.value
            else:
                self._console.print(
                    f"  {service.name}: keeping project value of {override.key}", Style.DIM
                )

        created = self._client.create_pipeline(service.project, ref, request)
        if isinstance(created, Err):
            return Err(created.error.for_service(service.name))

        pipeline = created.value
        started_at = datetime.now(UTC)
        self._console.info(f"  Created pipeline for {service.name}: {pipeline.web_url}")

        status = self._wait(service, pipeline.id)
        if isinstance(status, Err):
            return status

        self._console.success(f"  Pipeline completed successfully for {service.name}")
        return Ok(
            PipelineRun(
                service=service.name,
                pipeline_id=pipeline.id,
                web_url=pipeline.web_url,
                status=status.value,
                started_at=started_at,
            )
        )

    def _wait(self, service: Service, pipeline_id: int) -> Result[str, TrainError]:
        deadline = monotonic() + self.timeout
        while True:
            result = self._client.get_pipeline_status(service.project, pipeline_id)
            if isinstance(result, Err):
                return Err(result.error.for_service(service.name))

            status = result.value
            if status == SUCCESS_STATUS:
                return Ok(status)
            if status in FAILED_STATUSES:
                return Err(
                    TrainError(
                        kind="pipeline_failed",
                        message=f"pipeline {pipeline_id} {status}",
                        service=service.name,
                    )
                )

            self._console.print(f"  Pipeline for {service.name} is {status}...", Style.DIM)
            if monotonic() >= deadline:
                return Err(
                    TrainError(
                        kind="timeout",
                        message=f"pipeline {pipeline_id} still {status} after {self.timeout:g}s",
                        service=service.name,
                    )
                )
            sleep(self.poll_interval)
