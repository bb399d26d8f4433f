"""
GitHub REST API client for Issuescope.

Fetches open issues from a repository one page at a time.
Uses GITHUB_TOKEN environment variable for authentication.

Supports:
- Creation-time ordering with an optional 'since' lower bound
- Pull request detection (the issues endpoint returns both)
- Fail-closed parsing of issue records
"""

from __future__ import annotations

import os
from typing import Any

import requests

from . import __version__
from .store import Issue


GITHUB_API_BASE = "https://api.github.com"
DEFAULT_PER_PAGE = 100
DEFAULT_TIMEOUT = 30.0


class GitHubAPIError(Exception):
    """Error from GitHub API."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GitHubAPIError):
    """Rate limit exceeded."""
    def __init__(self, reset_time: int | None = None):
        super().__init__("GitHub API rate limit exceeded", 403)
        self.reset_time = reset_time


class RepositoryNotFoundError(GitHubAPIError):
    """Repository does not exist (or is not visible to the token)."""
    def __init__(self, repo: str):
        super().__init__(f"Repository not found: {repo}", 404)
        self.repo = repo


class IssueParseError(ValueError):
    """Upstream issue record is missing required fields or has bad types."""


def is_pull_request(item: dict[str, Any]) -> bool:
    """The issues endpoint also lists PRs; they carry a 'pull_request' key."""
    if not isinstance(item, dict):
        raise IssueParseError(f"Expected an issue object, got {type(item).__name__}")
    return "pull_request" in item


def _require(item: dict[str, Any], key: str, kind: type) -> Any:
    value = item.get(key)
    # bool is an int subclass; never accept it as an id
    if value is None or not isinstance(value, kind) or isinstance(value, bool):
        raise IssueParseError(
            f"Issue record {item.get('id', '?')} has missing or invalid '{key}'"
        )
    return value


def parse_issue(repo: str, item: dict[str, Any]) -> Issue:
    """Map a raw GitHub issue payload onto an Issue, rejecting malformed records."""
    if not isinstance(item, dict):
        raise IssueParseError(f"Expected an issue object, got {type(item).__name__}")

    body = item.get("body")
    if body is not None and not isinstance(body, str):
        raise IssueParseError(f"Issue record {item.get('id', '?')} has invalid 'body'")

    return Issue(
        repo=repo,
        id=_require(item, "id", int),
        number=_require(item, "number", int),
        title=_require(item, "title", str),
        body=body or "",
        url=_require(item, "html_url", str),
        created_at=_require(item, "created_at", str),
    )


class GitHubClient:
    """GitHub REST API client for paged issue listing."""

    def __init__(
        self,
        token: str | None = None,
        api_base: str = GITHUB_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        if self.token:
            self.session.headers["Authorization"] = f"token {self.token}"

        self.session.headers["Accept"] = "application/vnd.github.v3+json"
        self.session.headers["User-Agent"] = f"issuescope/{__version__}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Make a single API request; non-2xx responses become GitHubAPIError."""
        url = f"{self.api_base}{endpoint}"

        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GitHubAPIError(f"Request failed: {e}") from e

        # Check rate limit
        if response.status_code == 403:
            remaining = response.headers.get("X-RateLimit-Remaining")
            if remaining == "0":
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                raise RateLimitError(reset_time)

        if response.status_code != 200:
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {response.text}",
                response.status_code
            )

        return response

    def list_open_issues_page(
        self,
        repo: str,
        page: int,
        per_page: int = DEFAULT_PER_PAGE,
        since: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of open issues (and PRs), newest created first.

        Args:
            repo: Full repository name (owner/repo)
            page: 1-based page number
            per_page: Page size (GitHub caps this at 100)
            since: Optional ISO-8601 lower bound

        Returns:
            Raw issue payloads; callers filter pull requests and parse.

        Raises:
            RepositoryNotFoundError: on 404
            GitHubAPIError: on any other non-200 response or transport error
        """
        params: dict[str, Any] = {
            "state": "open",
            "per_page": per_page,
            "page": page,
            "sort": "created",
            "direction": "desc",
        }
        if since:
            params["since"] = since

        try:
            response = self._request("GET", f"/repos/{repo}/issues", params=params)
        except GitHubAPIError as e:
            if e.status_code == 404 and not isinstance(e, RepositoryNotFoundError):
                raise RepositoryNotFoundError(repo) from e
            raise

        try:
            items = response.json()
        except ValueError as e:
            raise GitHubAPIError(f"Invalid JSON from GitHub: {e}", response.status_code) from e

        if not isinstance(items, list):
            raise GitHubAPIError("Unexpected GitHub response: expected a list of issues", response.status_code)
        return items
