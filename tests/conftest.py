from __future__ import annotations

import pytest

from issuescope.github import GitHubAPIError
from issuescope.store import Store


@pytest.fixture
def store(tmp_path) -> Store:
    return Store(db_path=tmp_path / "issues.db")


@pytest.fixture
def transport_error() -> GitHubAPIError:
    return GitHubAPIError("GitHub API error: 500 - boom", 500)
