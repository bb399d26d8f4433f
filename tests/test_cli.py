from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from issuescope.cli import main
from issuescope.llm import LLMError
from issuescope.store import Store

from tests._fakes import FakeGitHub, issue_payload, make_issue


@pytest.fixture
def repo_root(tmp_path, monkeypatch):
    for var in ("ISSUESCOPE_DB", "GITHUB_TOKEN", "LLM_URL", "LLM_MODEL", "LLM_API_KEY", "PORT"):
        monkeypatch.delenv(var, raising=False)
    with patch("issuescope.cli.get_repo_root", return_value=tmp_path):
        yield tmp_path


def _store(repo_root) -> Store:
    return Store(db_path=repo_root / ".issuescope" / "issues.db")


def test_cli_help_lists_commands():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("init", "scan", "analyze", "repos", "serve"):
        assert command in result.output


def test_init_creates_config_and_database(repo_root):
    result = CliRunner().invoke(main, ["init"])

    assert result.exit_code == 0
    assert (repo_root / "issuescope.yml").exists()
    assert (repo_root / ".issuescope" / "issues.db").exists()
    assert ".issuescope/" in (repo_root / ".gitignore").read_text()


def test_init_keeps_existing_config(repo_root):
    (repo_root / "issuescope.yml").write_text("scan:\n  max_pages: 2\n")

    result = CliRunner().invoke(main, ["init"])

    assert "Skipped" in result.output
    assert (repo_root / "issuescope.yml").read_text() == "scan:\n  max_pages: 2\n"


def test_scan_json_output(repo_root):
    upstream = FakeGitHub([issue_payload(n) for n in range(1, 4)])
    with patch("issuescope.cli.GitHubClient", return_value=upstream):
        result = CliRunner().invoke(main, ["scan", "owner/repo", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["status"] == "first_scan"
    assert data["new_fetched"] == 3
    assert _store(repo_root).count_issues("owner/repo") == 3


def test_scan_human_output(repo_root):
    upstream = FakeGitHub([issue_payload(n) for n in range(1, 4)])
    with patch("issuescope.cli.GitHubClient", return_value=upstream):
        runner = CliRunner()
        runner.invoke(main, ["scan", "owner/repo"])
        result = runner.invoke(main, ["scan", "owner/repo"])

    assert result.exit_code == 0
    assert "No new issues" in result.output
    assert "Cached issues: 3" in result.output


def test_scan_respects_configured_page_cap(repo_root):
    (repo_root / "issuescope.yml").write_text("scan:\n  max_pages: 2\n")
    upstream = FakeGitHub([issue_payload(n) for n in range(1, 501)])
    with patch("issuescope.cli.GitHubClient", return_value=upstream):
        result = CliRunner().invoke(main, ["scan", "owner/repo", "--json"])

    assert json.loads(result.output)["issues_fetched"] == 200
    assert len(upstream.calls) == 2


def test_scan_not_found_exits_nonzero(repo_root):
    with patch("issuescope.cli.GitHubClient", return_value=FakeGitHub(repo="other/repo")):
        result = CliRunner().invoke(main, ["scan", "owner/repo"])

    assert result.exit_code == 1
    assert "Repository not found" in result.output


def test_analyze_prints_answer(repo_root):
    _store(repo_root).upsert_issues("owner/repo", [make_issue("owner/repo", 1)])
    with patch("issuescope.cli.LLMClient") as llm_cls:
        llm_cls.from_config.return_value.analyze.return_value = "One open crash report (#1)."
        result = CliRunner().invoke(main, ["analyze", "owner/repo", "What is open?"])

    assert result.exit_code == 0
    assert "One open crash report (#1)." in result.output


def test_analyze_without_cache_exits_nonzero(repo_root):
    result = CliRunner().invoke(main, ["analyze", "owner/repo", "What is open?"])

    assert result.exit_code == 1
    assert "Please scan first" in result.output


def test_analyze_llm_failure_exits_nonzero(repo_root):
    _store(repo_root).upsert_issues("owner/repo", [make_issue("owner/repo", 1)])
    with patch("issuescope.cli.LLMClient") as llm_cls:
        llm_cls.from_config.return_value.analyze.side_effect = LLMError("LLM Analysis failed: timeout")
        result = CliRunner().invoke(main, ["analyze", "owner/repo", "What is open?"])

    assert result.exit_code == 1
    assert "timeout" in result.output


def test_repos_lists_scanned(repo_root):
    assert "No repositories scanned yet" in CliRunner().invoke(main, ["repos"]).output

    with patch("issuescope.cli.GitHubClient", return_value=FakeGitHub([issue_payload(1)])):
        CliRunner().invoke(main, ["scan", "owner/repo"])
    result = CliRunner().invoke(main, ["repos", "--json"])

    assert [(r["repo"], r["total_issues"]) for r in json.loads(result.output)] == [("owner/repo", 1)]


def test_serve_uses_config_port(repo_root):
    (repo_root / "issuescope.yml").write_text("server:\n  port: 8123\n")
    with patch("issuescope.web.server.run_server") as run_server:
        result = CliRunner().invoke(main, ["serve"])

    assert result.exit_code == 0
    run_server.assert_called_once_with(host="127.0.0.1", port=8123)
