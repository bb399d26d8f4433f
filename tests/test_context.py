from __future__ import annotations

import pytest

from issuescope.context import CacheEmptyError, build_context, render_issue

from tests._fakes import make_issue


REPO = "owner/repo"


def test_render_issue_format():
    issue = make_issue(REPO, 102, body="Crash when\n\n  saving   files")

    assert render_issue(issue) == "[ID: #102] Title: Issue 102\nBody: Crash when saving files...\n\n"


def test_render_issue_cuts_body_before_collapsing():
    body = "a" * 150 + " " * 100 + "tail"
    fragment = render_issue(make_issue(REPO, 1, body=body))

    assert fragment == "[ID: #1] Title: Issue 1\nBody: " + "a" * 150 + " ...\n\n"
    assert "tail" not in fragment


def test_render_issue_empty_body():
    assert render_issue(make_issue(REPO, 1, body="")) == "[ID: #1] Title: Issue 1\nBody: ...\n\n"


def test_build_context_empty_cache_raises(store):
    with pytest.raises(CacheEmptyError, match="Please scan first"):
        build_context(store, REPO)


def test_small_corpus_included_newest_first(store):
    store.upsert_issues(REPO, [make_issue(REPO, n) for n in range(1, 6)])

    context = build_context(store, REPO)

    expected = "".join(render_issue(make_issue(REPO, n)) for n in range(5, 0, -1))
    assert context == expected


def test_budget_keeps_only_whole_fragments(store):
    issues = [make_issue(REPO, n, body="x" * 500) for n in range(1, 301)]
    store.upsert_issues(REPO, issues)
    fragments = [render_issue(i) for i in sorted(issues, key=lambda i: i.created_at, reverse=True)]
    assert sum(len(f) for f in fragments) > 12000

    context = build_context(store, REPO)

    assert len(context) <= 12000
    included = 0
    while context.startswith("".join(fragments[:included + 1])):
        included += 1
    assert context == "".join(fragments[:included])
    assert len(context) + len(fragments[included]) > 12000


def test_first_oversized_fragment_stops_accumulation(store):
    store.upsert_issues(REPO, [
        make_issue(REPO, 3, body="newest", created_at="2024-03-01T00:00:00Z"),
        make_issue(REPO, 2, body="middle", created_at="2024-02-01T00:00:00Z"),
        make_issue(REPO, 1, body="oldest", created_at="2024-01-01T00:00:00Z"),
    ])
    first = render_issue(make_issue(REPO, 3, body="newest"))

    context = build_context(store, REPO, max_chars=len(first) + 5)

    assert context == first


def test_custom_body_chars(store):
    store.upsert_issues(REPO, [make_issue(REPO, 1, body="abcdefghij")])

    assert "Body: abc...\n" in build_context(store, REPO, body_chars=3)
