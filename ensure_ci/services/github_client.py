"""GitHub REST client for check suites, check runs, statuses and workflow runs.

REST wrapper with:
- optional token auth (GITHUB_TOKEN / GH_TOKEN)
- rate-limit handling (sleep until reset when exhausted)
- basic ETag conditional requests + in-memory response cache
- exhaustive pagination (100 per page)
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Iterator, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ensure_ci.errors import GitHubAPIError
from ensure_ci.models.checks import CheckRun, CheckSuite, CommitStatus, WorkflowRun

PER_PAGE = 100
log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _next_link(link_header: str | None) -> str | None:
    if not link_header:
        return None
    for part in link_header.split(","):
        section = part.split(";")
        if len(section) < 2:
            continue
        url = section[0].strip().strip("<>")
        if any(s.strip() == 'rel="next"' for s in section[1:]):
            return url
    return None


def _validate(model: type[ModelT], item: Any, path: str) -> ModelT:
    try:
        return model.model_validate(item)
    except ValidationError as exc:
        raise GitHubAPIError(f"Unexpected {model.__name__} payload from {path}: {exc}", url=path) from exc


class GitHubClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        user_agent: str = "ensure-ci-success/1.0",
        timeout: float = 20.0,
    ) -> None:
        env_token = os.getenv("GITHUB_TOKEN")
        if not env_token:
            env_token = os.getenv("GH_TOKEN")
        if env_token:
            env_token = env_token.strip() or None
        self._token = token or env_token
        self._base_url = base_url.rstrip("/")
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.Client(timeout=timeout, headers=headers)

        # Per-invocation caches; a 304 does not count against the rate limit.
        self._etag_by_url: dict[str, str] = {}
        self._response_cache_by_url: dict[str, tuple[Any, str | None]] = {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _sleep_for_rate_limit_if_needed(self, r: httpx.Response) -> None:
        remaining = r.headers.get("X-RateLimit-Remaining")
        reset = r.headers.get("X-RateLimit-Reset")
        try:
            rem_i = int(remaining) if remaining is not None else None
            reset_i = int(reset) if reset is not None else None
        except ValueError:
            rem_i, reset_i = None, None

        if rem_i == 0 and reset_i:
            now = int(time.time())
            delay = max(0, reset_i - now) + 1
            log.warning("GitHub rate limit exhausted, sleeping %ss until reset", delay)
            time.sleep(delay)

    def _send(self, method: str, url: str, headers: dict[str, str]) -> httpx.Response:
        try:
            return self._client.request(method, url, headers=headers)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub API request failed for {url}: {exc}", url=url) from exc

    def _request(self, method: str, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        h = dict(headers or {})
        r = self._send(method, url, h)
        self._sleep_for_rate_limit_if_needed(r)

        # If 403 is rate-limit, the wait above already ran; retry once.
        if r.status_code == 403 and r.headers.get("X-RateLimit-Remaining") == "0":
            r = self._send(method, url, h)
        return r

    def get_page(self, path: str) -> tuple[Any, str | None]:
        """GET one page of JSON; return it with the ``rel="next"`` URL, if any."""
        url = path if path.startswith("http") else f"{self._base_url}{path}"

        extra_headers: dict[str, str] = {}
        etag = self._etag_by_url.get(url)
        if etag:
            extra_headers["If-None-Match"] = etag

        r = self._request("GET", url, headers=extra_headers)

        if r.status_code == 304:
            if url in self._response_cache_by_url:
                return self._response_cache_by_url[url]
            # Cache was lost; retry without condition.
            r = self._request("GET", url, headers={})

        if r.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error {r.status_code} for {url}: {r.text[:200]}",
                status_code=r.status_code,
                url=url,
            )

        try:
            data = r.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub API returned a non-JSON body for {url}: {r.text[:200]}",
                status_code=r.status_code,
                url=url,
            ) from exc
        next_url = _next_link(r.headers.get("Link"))
        new_etag = r.headers.get("ETag")
        if new_etag:
            self._etag_by_url[url] = new_etag
            self._response_cache_by_url[url] = (data, next_url)
        return data, next_url

    def get_json(self, path: str) -> Any:
        data, _next = self.get_page(path)
        return data

    def _paginate(self, path: str, key: str) -> Iterator[dict[str, Any]]:
        """Yield items of ``key`` across every page, following Link headers."""
        url: str | None = path
        while url:
            data, url = self.get_page(url)
            items = data.get(key) if isinstance(data, dict) else None
            if not isinstance(items, list):
                return
            for item in items:
                if isinstance(item, dict):
                    yield item

    def list_check_suites(self, owner: str, repo: str, ref: str) -> list[CheckSuite]:
        path = f"/repos/{owner}/{repo}/commits/{ref}/check-suites?per_page={PER_PAGE}"
        return [_validate(CheckSuite, item, path) for item in self._paginate(path, "check_suites")]

    def iter_check_runs_for_suite(self, owner: str, repo: str, suite_id: int) -> Iterator[CheckRun]:
        path = f"/repos/{owner}/{repo}/check-suites/{suite_id}/check-runs?per_page={PER_PAGE}"
        for item in self._paginate(path, "check_runs"):
            yield _validate(CheckRun, item, path)

    def list_check_runs_for_suite(self, owner: str, repo: str, suite_id: int) -> list[CheckRun]:
        return list(self.iter_check_runs_for_suite(owner, repo, suite_id))

    def list_commit_statuses(self, owner: str, repo: str, ref: str) -> list[CommitStatus]:
        """All statuses of the combined status, newest first.

        The combined status endpoint does not send Link headers reliably, so
        pages are requested until one comes back short.
        """
        out: list[CommitStatus] = []
        page = 1
        while True:
            path = f"/repos/{owner}/{repo}/commits/{ref}/status?per_page={PER_PAGE}&page={page}"
            data = self.get_json(path)
            statuses = data.get("statuses") if isinstance(data, dict) else None
            if not isinstance(statuses, list):
                break
            out.extend(_validate(CommitStatus, item, path) for item in statuses if isinstance(item, dict))
            if len(statuses) < PER_PAGE:
                break
            page += 1
        return out

    def get_workflow_run(self, owner: str, repo: str, run_id: int) -> WorkflowRun:
        path = f"/repos/{owner}/{repo}/actions/runs/{run_id}"
        return _validate(WorkflowRun, self.get_json(path), path)
