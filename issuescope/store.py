"""
SQLite database storage for Issuescope.

Schema:
- issues: Cached open issues, keyed by (repo, upstream id)
- repo_scans: One row of scan metadata per repository
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Generator, Iterable

from .config import DB_FILENAME, get_issuescope_dir


SCHEMA = """
-- Cached issues; 'number' is the human-facing #ID, 'id' is GitHub's internal id
CREATE TABLE IF NOT EXISTS issues (
    repo TEXT NOT NULL,
    id INTEGER NOT NULL,
    number INTEGER NOT NULL,
    title TEXT NOT NULL,
    body TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (repo, id)
);

-- Scan metadata (overwritten after every completed scan)
CREATE TABLE IF NOT EXISTS repo_scans (
    repo TEXT PRIMARY KEY,
    last_scanned_at TEXT,
    total_issues INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_issues_repo_created ON issues(repo, created_at);
"""


@dataclass
class Issue:
    """Stored issue."""
    repo: str
    id: int
    number: int
    title: str
    body: str
    url: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScanState:
    """Stored scan metadata for one repository."""
    repo: str
    last_scanned_at: str | None
    total_issues: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Store:
    """SQLite storage manager for Issuescope."""

    def __init__(self, db_path: Path | None = None):
        if db_path is None:
            db_path = get_issuescope_dir() / DB_FILENAME
        self.db_path = Path(db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Ensure database schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connection.

        Commits only when the block completes; an exception leaves the
        transaction uncommitted so it is discarded on close.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # Issues
    # =========================================================================

    def upsert_issues(self, repo: str, issues: Iterable[Issue]) -> int:
        """Insert or overwrite issues as one transaction. Returns rows written."""
        rows = [
            (repo, issue.id, issue.number, issue.title, issue.body or "", issue.url, issue.created_at)
            for issue in issues
        ]
        if not rows:
            return 0
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO issues (repo, id, number, title, body, url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(repo, id) DO UPDATE SET
                    number = excluded.number,
                    title = excluded.title,
                    body = excluded.body,
                    url = excluded.url,
                    created_at = excluded.created_at
                """,
                rows,
            )
        return len(rows)

    def count_issues(self, repo: str) -> int:
        """Count cached issues for a repo."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM issues WHERE repo = ?",
                (repo,)
            ).fetchone()
            return int(row[0]) if row else 0

    def get_issues(self, repo: str) -> list[Issue]:
        """All cached issues for a repo, newest created first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM issues WHERE repo = ? ORDER BY created_at DESC, id DESC",
                (repo,)
            ).fetchall()
            return [Issue(**dict(row)) for row in rows]

    # =========================================================================
    # Scan metadata
    # =========================================================================

    def get_scan_state(self, repo: str) -> ScanState | None:
        """Get scan metadata for a repo, or None if never scanned."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM repo_scans WHERE repo = ?",
                (repo,)
            ).fetchone()
            return ScanState(**dict(row)) if row else None

    def put_scan_state(self, state: ScanState) -> None:
        """Insert or overwrite scan metadata for a repo."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO repo_scans (repo, last_scanned_at, total_issues)
                VALUES (?, ?, ?)
                ON CONFLICT(repo) DO UPDATE SET
                    last_scanned_at = excluded.last_scanned_at,
                    total_issues = excluded.total_issues
                """,
                (state.repo, state.last_scanned_at, state.total_issues)
            )

    def list_scan_states(self) -> list[ScanState]:
        """List scan metadata for every scanned repo."""
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM repo_scans ORDER BY repo").fetchall()
            return [ScanState(**dict(row)) for row in rows]
