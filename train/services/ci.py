"""GitLab CI client.

This module provides:
- HttpTransport: Protocol for raw HTTP exchanges (injectable for tests)
- UrllibTransport: Real implementation using urllib
- MockHttpTransport: Scripted implementation for testing
- GitLabClient: the three REST v4 calls the pipeline dispatcher needs
"""

from __future__ import annotations

import json
import ssl
import threading
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable
from urllib.parse import quote

from train.core.config import CiConfig
from train.core.result import Err, Ok, Result
from train.core.structured import StrDict, as_str_dict, get_int, get_str
from train.services.errors import TrainError

__all__ = [
    "CreatedPipeline",
    "GitLabClient",
    "HttpError",
    "HttpResponse",
    "HttpTransport",
    "MockHttpTransport",
    "UrllibTransport",
    "client_from_config",
]

GITLAB_URI_ENV = "GITLAB_URI"
_API_PREFIX = "/api/v4"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class HttpError:
    """Transport failure (no HTTP response at all).

    Attributes:
        url: The URL that failed
        message: Human-readable error message
    """

    url: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpTransport(Protocol):
    """Protocol for HTTP exchanges.

    Any HTTP status is a response; only network failures are errors.
    """

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> Result[HttpResponse, HttpError]: ...


class UrllibTransport:
    """Real HTTP transport using urllib."""

    def __init__(self, timeout: float = 30.0, user_agent: str = "release-train") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> Result[HttpResponse, HttpError]:
        req = urllib.request.Request(
            url,
            data=body,
            method=method,
            headers={"User-Agent": self.user_agent, **headers},
        )
        try:
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(HttpResponse(status=response.status, body=response.read()))
        except urllib.error.HTTPError as e:
            return Ok(HttpResponse(status=e.code, body=e.read()))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, message=str(e)))


@dataclass(slots=True)
class MockHttpTransport:
    """Scripted transport for tests.

    Responses are queued per (method, url); the last queued response repeats.
    Unscripted requests get a 404. Safe to share between worker threads.

    Usage:
        transport = MockHttpTransport()
        transport.add("GET", "https://gl/api/v4/projects/a%2Fb/pipelines/7",
                      HttpResponse(200, b'{"status": "success"}'))
    """

    responses: dict[tuple[str, str], list[HttpResponse | HttpError]] = field(default_factory=dict)
    calls: list[tuple[str, str, bytes | None]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, method: str, url: str, *responses: HttpResponse | HttpError) -> None:
        self.responses.setdefault((method, url), []).extend(responses)

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> Result[HttpResponse, HttpError]:
        with self._lock:
            self.calls.append((method, url, body))
            queue = self.responses.get((method, url))
            if not queue:
                return Ok(HttpResponse(status=404, body=b'{"message": "404 Not Found"}'))
            response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)


@dataclass(frozen=True, slots=True)
class CreatedPipeline:
    id: int
    web_url: str


class GitLabClient:
    """Minimal GitLab REST v4 client (pipelines and project variables)."""

    def __init__(self, base_url: str, token: str, transport: HttpTransport) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._transport = transport

    def project_url(self, project: str) -> str:
        return f"{self.base_url}{_API_PREFIX}/projects/{quote(project, safe='')}"

    def get_variable(self, project: str, key: str) -> Result[str | None, TrainError]:
        """Value of a project CI variable; None when the project does not define it."""
        url = f"{self.project_url(project)}/variables/{quote(key, safe='')}"
        result = self._send("GET", url)
        if isinstance(result, Err):
            return result
        response = result.value
        if response.status == 404:
            return Ok(None)
        if response.status != 200:
            return Err(_api_error(f"failed to read variable {key}", response))

        data = _json_object(response)
        if data is None:
            return Err(_api_error(f"unexpected response for variable {key}", response))
        value = data.get("value")
        return Ok(value if isinstance(value, str) else None)

    def create_pipeline(
        self,
        project: str,
        ref: str,
        variables: Mapping[str, str],
    ) -> Result[CreatedPipeline, TrainError]:
        url = f"{self.project_url(project)}/pipeline"
        payload = {
            "ref": ref,
            "variables": [{"key": k, "value": v} for k, v in variables.items()],
        }
        result = self._send("POST", url, json.dumps(payload).encode("utf-8"))
        if isinstance(result, Err):
            return result
        response = result.value
        if response.status != 201:
            return Err(_api_error("failed to create pipeline", response))

        data = _json_object(response)
        pipeline_id = get_int(data, "id") if data is not None else None
        if data is None or pipeline_id is None:
            return Err(_api_error("unexpected pipeline creation response", response))
        return Ok(CreatedPipeline(id=pipeline_id, web_url=get_str(data, "web_url") or ""))

    def get_pipeline_status(self, project: str, pipeline_id: int) -> Result[str, TrainError]:
        url = f"{self.project_url(project)}/pipelines/{pipeline_id}"
        result = self._send("GET", url)
        if isinstance(result, Err):
            return result
        response = result.value
        if response.status != 200:
            return Err(_api_error(f"failed to read pipeline {pipeline_id}", response))

        data = _json_object(response)
        status = get_str(data, "status") if data is not None else None
        if status is None:
            return Err(_api_error(f"pipeline {pipeline_id} has no status", response))
        return Ok(status)

    def _send(
        self, method: str, url: str, body: bytes | None = None
    ) -> Result[HttpResponse, TrainError]:
        headers = {"PRIVATE-TOKEN": self._token}
        if body is not None:
            headers["Content-Type"] = "application/json"
        result = self._transport.request(method, url, headers, body)
        if isinstance(result, Err):
            return Err(
                TrainError(
                    kind="remote_api",
                    message=f"{method} request failed",
                    hint=str(result.error),
                )
            )
        return Ok(result.value)


def _json_object(response: HttpResponse) -> StrDict | None:
    try:
        return as_str_dict(json.loads(response.body.decode("utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def _api_error(message: str, response: HttpResponse) -> TrainError:
    return TrainError(
        kind="remote_api",
        message=f"{message} (HTTP {response.status})",
        hint=response.text.strip() or None,
    )


def client_from_config(
    ci: CiConfig,
    env: Mapping[str, str],
    transport: HttpTransport | None = None,
) -> Result[GitLabClient, TrainError]:
    """Build a client from configuration and the environment (token, URL)."""
    base_url = ci.url or env.get(GITLAB_URI_ENV, "").strip()
    if not base_url:
        return Err(
            TrainError(
                kind="config",
                message="GitLab URL is not configured",
                hint=f"set ci.url in the config file or the {GITLAB_URI_ENV} environment variable",
            )
        )
    token = env.get(ci.token_env, "").strip()
    if not token:
        return Err(
            TrainError(
                kind="config",
                message=f"{ci.token_env} environment variable is not set",
            )
        )
    return Ok(GitLabClient(base_url, token, transport or UrllibTransport()))
