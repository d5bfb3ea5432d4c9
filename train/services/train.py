"""The release train: every phase of a release, applied across the fleet.

Each phase runs over all services (sequential ones first, then groups in file
order) before the next phase starts, so a failure leaves every service at the
same step. Any error aborts the run; only release notes degrade to warnings.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from train.core.config import Config, Service
from train.core.result import Err, Ok, Result
from train.git.refs import release_branch_name, release_tag_name
from train.git.repository import GitError, Repository
from train.output.console import ConsoleProtocol, Style
from train.services.build import build_service, clean_cache
from train.services.ci import client_from_config
from train.services.dispatch import Override, PipelineApi, PipelineDispatcher, PipelineRun
from train.services.errors import TrainError
from train.services.notes import ReleaseNotes, synthesize
from train.services.versions import DescriptorRewrite, normalize_version, propagate


@dataclass(frozen=True, slots=True)
class TrainOptions:
    skip_build: bool = False
    skip_pipelines: bool = False
    namespace: str | None = None
    assume_yes: bool = False


@dataclass(slots=True)
class TrainReport:
    version: str
    branch: str
    tag: str
    rewrites: dict[str, list[DescriptorRewrite]] = field(default_factory=dict)
    notes: ReleaseNotes | None = None
    pipelines: list[PipelineRun] = field(default_factory=list)


def _vcs(service: str, action: str, error: GitError) -> TrainError:
    return TrainError(kind="vcs", message=f"{action} failed", hint=error.message, service=service)


class ReleaseTrain:
    def __init__(
        self,
        *,
        config: Config,
        service_dirs: Mapping[str, Path],
        notes_dir: Path,
        console: ConsoleProtocol,
        confirm: Callable[[str], bool] | None = None,
        ci_client: PipelineApi | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._dirs = dict(service_dirs)
        self._notes_dir = notes_dir
        self._console = console
        self._confirm = confirm
        self._ci_client = ci_client
        self._env = env if env is not None else os.environ

    def _repo(self, service: Service) -> Repository:
        return Repository(self._dirs[service.name])

    def _ask(self, question: str, options: TrainOptions) -> bool:
        if options.assume_yes:
            return True
        if self._confirm is None:
            self._console.error("Cannot prompt for confirmation (no prompt available)")
            return False
        return self._confirm(question)

    def run(
        self, version: str, options: TrainOptions | None = None
    ) -> Result[TrainReport, TrainError]:
        opts = options or TrainOptions()
        normalized = normalize_version(version)
        if isinstance(normalized, Err):
            return normalized
        number = int(version.strip())

        report = TrainReport(
            version=normalized.value,
            branch=release_branch_name(number),
            tag=release_tag_name(number),
        )

        steps: list[tuple[str, Callable[[], Result[None, TrainError]]]] = [
            ("Checking git status", lambda: self.ensure_clean(opts)),
            (f"Switching to {self._config.trunk}", self.checkout_trunk),
            ("Pulling latest changes", self.pull),
            ("Updating pom.xml files", lambda: self.bump(number, report)),
            (f"Creating branch {report.branch}", lambda: self.create_branch(report.branch)),
            ("Generating release notes", lambda: self.release_notes(number, report)),
            ("Reviewing changes", lambda: self.review(opts)),
            (f"Committing and tagging {report.tag}", lambda: self.commit_and_tag(report)),
        ]
        if not opts.skip_build:
            steps.append(("Building services", self.build))
        steps.append(("Pushing changes and tags", self.push))
        if not opts.skip_pipelines:
            steps.append(("Running pipelines", lambda: self.pipelines(report, opts)))

        for i, (title, step) in enumerate(steps, start=1):
            self._console.header(f"Phase {i}: {title}")
            result = step()
            if isinstance(result, Err):
                return result

        self._console.newline()
        self._console.success(f"Release {report.version} completed")
        return Ok(report)

    # -- phases ---------------------------------------------------------------

    def ensure_clean(self, options: TrainOptions) -> Result[None, TrainError]:
        for service in self._config.services:
            repo = self._repo(service)
            self._console.print(f"  {service.name}", Style.DIM)
            if not repo.exists():
                return Err(
                    TrainError(
                        kind="vcs",
                        message=f"{repo.path} is not a git working copy",
                        service=service.name,
                    )
                )
            match repo.check_clean():
                case Ok(True):
                    continue
                case Err(e):
                    return Err(_vcs(service.name, "git status check", e))
                case Ok(False):
                    pass

            self._console.warning(f"Git working copy is not clean in {service.name}")
            status = repo.status_text()
            if isinstance(status, Err):
                return Err(_vcs(service.name, "git status", status.error))
            self._console.print(status.value.rstrip())

            if not self._ask(f"Discard local changes in {service.name}?", options):
                return Err(
                    TrainError(
                        kind="aborted",
                        message="working copy is not clean",
                        hint="commit or stash the changes, or accept the reset",
                        service=service.name,
                    )
                )
            reset = repo.reset_hard()
            if isinstance(reset, Err):
                return Err(_vcs(service.name, "git reset", reset.error))
        return Ok(None)

    def checkout_trunk(self) -> Result[None, TrainError]:
        return self._each("git checkout", lambda repo: repo.checkout(self._config.trunk))

    def pull(self) -> Result[None, TrainError]:
        return self._each("git pull", lambda repo: repo.pull())

    def bump(self, version: int, report: TrainReport) -> Result[None, TrainError]:
        for service in self._config.services:
            result = propagate(
                self._dirs[service.name],
                str(version),
                property_pattern=self._config.property_pattern,
            )
            if isinstance(result, Err):
                return Err(result.error.for_service(service.name))
            rewrites = result.value
            report.rewrites[service.name] = rewrites
            changed = sum(1 for r in rewrites if r.changed_fields)
            self._console.print(
                f"  {service.name}: {changed}/{len(rewrites)} pom.xml files updated", Style.DIM
            )
        return Ok(None)

    def create_branch(self, branch: str) -> Result[None, TrainError]:
        for service in self._config.services:
            repo = self._repo(service)
            repo.delete_branch_if_exists(branch)
            result = repo.create_branch(branch)
            if isinstance(result, Err):
                return Err(_vcs(service.name, f"creating branch {branch}", result.error))
        return Ok(None)

    def release_notes(self, version: int, report: TrainReport) -> Result[None, TrainError]:
        result = synthesize(
            {s.name: self._dirs[s.name] for s in self._config.services},
            version,
            url_prefix=self._config.task_url_prefix,
            trunk=self._config.trunk,
            out_dir=self._notes_dir,
            console=self._console,
        )
        if isinstance(result, Err):
            return result
        report.notes = result.value
        return Ok(None)

    def review(self, options: TrainOptions) -> Result[None, TrainError]:
        for service in self._config.services:
            diff = self._repo(service).diff()
            if isinstance(diff, Err):
                return Err(_vcs(service.name, "git diff", diff.error))
            self._console.print(f"--- Changes in {service.name} ---", Style.BOLD)
            if diff.value.strip():
                self._console.diff(diff.value)
            else:
                self._console.print("No changes to show", Style.DIM)

        if not self._ask("Commit, tag, build and push these changes?", options):
            return Err(TrainError(kind="aborted", message="release cancelled by user"))
        return Ok(None)

    def commit_and_tag(self, report: TrainReport) -> Result[None, TrainError]:
        message = f"Up to version {report.version}"
        for service in self._config.services:
            repo = self._repo(service)
            added = repo.add_all()
            if isinstance(added, Err):
                return Err(_vcs(service.name, "git add", added.error))
            committed = repo.commit(message)
            if isinstance(committed, Err):
                return Err(_vcs(service.name, "git commit", committed.error))
            repo.delete_tag_if_exists(report.tag)
            tagged = repo.tag(report.tag)
            if isinstance(tagged, Err):
                return Err(_vcs(service.name, f"creating tag {report.tag}", tagged.error))
        return Ok(None)

    def build(self) -> Result[None, TrainError]:
        cleaned = clean_cache(self._config.maven.clean_cache, self._console)
        if isinstance(cleaned, Err):
            return cleaned
        for service in self._config.services:
            self._console.info(f"Building {service.name}")
            result = build_service(self._dirs[service.name], self._console, service.prebuild)
            if isinstance(result, Err):
                return Err(result.error.for_service(service.name))
        return Ok(None)

    def push(self) -> Result[None, TrainError]:
        return self._each("git push", lambda repo: repo.push_with_tags())

    def pipelines(self, report: TrainReport, options: TrainOptions) -> Result[None, TrainError]:
        ci = self._config.ci
        if ci is None:
            self._console.print("No CI configuration, skipping pipelines", Style.DIM)
            return Ok(None)

        client = self._ci_client
        if client is None:
            built = client_from_config(ci, self._env)
            if isinstance(built, Err):
                return built
            client = built.value

        override = None
        if ci.override_key and options.namespace:
            override = Override(key=ci.override_key, value=options.namespace)

        dispatcher = PipelineDispatcher(
            client, self._console, poll_interval=ci.poll_interval, timeout=ci.timeout
        )
        result = dispatcher.dispatch(
            self._config.sequential,
            self._config.group_map(),
            report.tag,
            dict(ci.variables),
            override,
        )
        if isinstance(result, Err):
            return result
        report.pipelines = result.value
        return Ok(None)

    def _each(
        self, action: str, op: Callable[[Repository], Result[str, GitError]]
    ) -> Result[None, TrainError]:
        for service in self._config.services:
            self._console.print(f"  {service.name}", Style.DIM)
            result = op(self._repo(service))
            if isinstance(result, Err):
                return Err(_vcs(service.name, action, result.error))
        return Ok(None)
