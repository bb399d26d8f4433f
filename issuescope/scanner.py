"""
Incremental issue scanner.

Brings the local cache up to date with a repository's open issues:
- First scan walks pages newest-first with no lower bound
- Later scans pass the previous scan time as GitHub's 'since' bound
- Every page is written through before the next one is requested
- Page count is capped so a stale cache never walks unbounded history
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Literal

from loguru import logger

from .github import (
    DEFAULT_PER_PAGE,
    GitHubAPIError,
    GitHubClient,
    RepositoryNotFoundError,
    is_pull_request,
    parse_issue,
)
from .store import ScanState, Store


DEFAULT_MAX_PAGES = 10

ScanStatus = Literal["first_scan", "updated", "no_changes"]


def format_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScanResult:
    """Outcome of one completed scan."""
    repo: str
    status: ScanStatus
    new_fetched: int  # Issues written this pass
    issues_fetched: int  # Total cached issues after the pass
    last_scanned_at: str
    pages_fetched: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class IssueScanner:
    """Runs incremental scans of one repository at a time against a Store."""

    def __init__(
        self,
        store: Store,
        client: GitHubClient,
        per_page: int = DEFAULT_PER_PAGE,
        max_pages: int = DEFAULT_MAX_PAGES,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if per_page < 1 or max_pages < 1:
            raise ValueError("per_page and max_pages must be positive")
        self.store = store
        self.client = client
        self.per_page = per_page
        self.max_pages = max_pages
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _repo_lock(self, repo: str) -> Iterator[None]:
        """Serialize scans of the same repo; different repos never contend."""
        with self._locks_guard:
            lock = self._locks.setdefault(repo, threading.Lock())
        with lock:
            yield

    def scan(self, repo: str) -> ScanResult:
        """
        Scan a repository's open issues into the store.

        Raises:
            RepositoryNotFoundError: first page returned 404; nothing written
            GitHubAPIError: unexpected upstream response mid-scan; earlier
                pages stay committed, scan metadata is not updated
            IssueParseError: upstream returned a malformed issue record
        """
        with self._repo_lock(repo):
            return self._scan(repo)

    def _scan(self, repo: str) -> ScanResult:
        previous = self.store.get_scan_state(repo)
        is_first_scan = previous is None
        since = previous.last_scanned_at if previous else None

        if is_first_scan:
            logger.info("scan.start repo={} mode=first", repo)
        else:
            logger.info("scan.start repo={} mode=incremental since={}", repo, since)

        new_fetched = 0
        pages_fetched = 0
        page = 1

        while page <= self.max_pages:
            try:
                items = self.client.list_open_issues_page(
                    repo, page=page, per_page=self.per_page, since=since
                )
            except RepositoryNotFoundError as e:
                if page == 1:
                    logger.warning("scan.not_found repo={}", repo)
                    raise
                raise GitHubAPIError(f"GitHub API: 404 on page {page}", 404) from e
            pages_fetched += 1

            issues = [parse_issue(repo, item) for item in items if not is_pull_request(item)]
            if not issues:
                logger.debug("scan.page repo={} page={} empty after filtering", repo, page)
                break

            written = self.store.upsert_issues(repo, issues)
            new_fetched += written
            logger.info(
                "scan.page repo={} page={} issues={} total_new={}",
                repo, page, written, new_fetched,
            )

            # Short page means the upstream result set is exhausted
            if len(items) < self.per_page:
                break
            page += 1
        else:
            logger.info("scan.cap_reached repo={} max_pages={}", repo, self.max_pages)

        final_count = self.store.count_issues(repo)
        now = format_timestamp(self._clock())
        self.store.put_scan_state(ScanState(repo=repo, last_scanned_at=now, total_issues=final_count))

        status: ScanStatus
        if is_first_scan:
            status = "first_scan"
        elif new_fetched > 0:
            status = "updated"
        else:
            status = "no_changes"

        logger.info(
            "scan.done repo={} status={} new={} cached={} pages={}",
            repo, status, new_fetched, final_count, pages_fetched,
        )
        return ScanResult(
            repo=repo,
            status=status,
            new_fetched=new_fetched,
            issues_fetched=final_count,
            last_scanned_at=now,
            pages_fetched=pages_fetched,
        )
