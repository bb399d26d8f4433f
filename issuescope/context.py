"""
Context window construction for issue analysis.

Turns every cached issue of a repository into a bounded text buffer:
newest issues first, bodies cut short and whitespace-collapsed, and
whole fragments only until the character budget is reached.
"""

from __future__ import annotations

import re

from .store import Issue, Store


DEFAULT_MAX_CHARS = 12000
DEFAULT_BODY_CHARS = 200

_WHITESPACE_RE = re.compile(r"\s+")


class CacheEmptyError(LookupError):
    """No cached issues for a repository."""
    def __init__(self, repo: str):
        super().__init__(f"No issues found in cache for {repo}. Please scan first.")
        self.repo = repo


def render_issue(issue: Issue, body_chars: int = DEFAULT_BODY_CHARS) -> str:
    body = _WHITESPACE_RE.sub(" ", (issue.body or "")[:body_chars])
    return f"[ID: #{issue.number}] Title: {issue.title}\nBody: {body}...\n\n"


def build_context(
    store: Store,
    repo: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    body_chars: int = DEFAULT_BODY_CHARS,
) -> str:
    """
    Build the prompt context for a repository's cached issues.

    The first fragment that would push the buffer past max_chars is dropped
    and accumulation stops, so the result is a prefix of whole fragments.

    Raises:
        CacheEmptyError: if the repository has no cached issues
    """
    issues = store.get_issues(repo)
    if not issues:
        raise CacheEmptyError(repo)

    parts: list[str] = []
    length = 0
    for issue in issues:
        fragment = render_issue(issue, body_chars=body_chars)
        if length + len(fragment) > max_chars:
            break
        parts.append(fragment)
        length += len(fragment)

    return "".join(parts)
