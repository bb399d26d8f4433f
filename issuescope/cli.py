"""
Issuescope CLI - Cache open GitHub issues and analyze them with a local LLM.

Commands:
    init     - Initialize Issuescope in current repository
    scan     - Fetch open issues for a repository (incremental after the first run)
    analyze  - Ask the LLM a question about a repository's cached issues
    repos    - List scanned repositories
    serve    - Run the HTTP API
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load .env file from current directory or repo root
load_dotenv()  # Loads from current directory
load_dotenv(Path.cwd() / ".env")  # Explicit current dir

from . import __version__
from .config import (
    CONFIG_FILENAME,
    IssuescopeConfig,
    ensure_issuescope_dir,
    get_repo_root,
)
from .context import CacheEmptyError
from .github import GitHubAPIError, GitHubClient, IssueParseError, RepositoryNotFoundError
from .llm import LLMClient, LLMError, analyze_repo
from .scanner import IssueScanner
from .store import Store


SAMPLE_CONFIG = """\
# Issuescope Configuration

# SQLite cache location (relative to this file); default: .issuescope/issues.db
# db_path: .issuescope/issues.db

github:
  api_base: https://api.github.com
  timeout: 30          # Seconds per request
  # token is read from GITHUB_TOKEN

# Scan bounds
scan:
  per_page: 100        # GitHub maximum
  max_pages: 10        # Safety cap per scan (at most 1000 issues per run)

# Prompt context budget
context:
  max_chars: 12000     # ~3k-4k tokens for most local models
  body_chars: 200      # Issue body characters per entry

# Local LLM (any OpenAI-compatible server) via LiteLLM
# LLM_URL / LLM_MODEL / LLM_API_KEY environment variables override these
llm:
  model: openai/local-model
  base_url: http://localhost:1234/v1   # LM Studio
  # base_url: http://localhost:11434/v1 # Ollama
  api_key: lm-studio   # Ignored by local servers but must not be empty
  temperature: 0.7

server:
  host: 127.0.0.1
  port: 3000
"""


def _load() -> tuple[IssuescopeConfig, Store]:
    repo_root = get_repo_root()
    config = IssuescopeConfig.load(repo_root)
    return config, Store(db_path=config.get_db_path(repo_root))


@click.group()
@click.version_option(version=__version__)
def main():
    """Issuescope - Cache open GitHub issues and analyze them with a local LLM."""
    pass


@main.command()
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize Issuescope in the current repository."""
    repo_root = get_repo_root()
    click.echo(f"Initializing Issuescope in: {repo_root}")

    issuescope_dir = ensure_issuescope_dir(repo_root)
    click.echo(f"  Created: {issuescope_dir}")

    config_path = repo_root / CONFIG_FILENAME
    if not config_path.exists() or force:
        config_path.write_text(SAMPLE_CONFIG)
        click.echo(f"  Created: {config_path}")
    else:
        click.echo(f"  Skipped: {config_path} (already exists)")

    config = IssuescopeConfig.load(repo_root)
    store = Store(db_path=config.get_db_path(repo_root))
    click.echo(f"  Database: {store.db_path}")

    gitignore_path = repo_root / ".gitignore"
    gitignore_entry = "\n# Issuescope\n.issuescope/\n.env\n"
    if gitignore_path.exists():
        content = gitignore_path.read_text()
        if ".issuescope" not in content:
            with open(gitignore_path, "a") as f:
                f.write(gitignore_entry)
            click.echo(f"  Updated: {gitignore_path}")
    else:
        gitignore_path.write_text(gitignore_entry)
        click.echo(f"  Created: {gitignore_path}")

    click.echo("\nIssuescope initialized! Next steps:")
    click.echo("  1. Set GITHUB_TOKEN environment variable (optional, raises rate limits)")
    click.echo("  2. Start a local LLM server (LM Studio or Ollama)")
    click.echo("  3. Run: issuescope scan owner/repo")
    click.echo("  4. Run: issuescope analyze owner/repo \"What are the main themes?\"")


@main.command()
@click.argument("repo")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(repo: str, as_json: bool):
    """Fetch open issues for REPO (owner/name).

    The first scan walks newest issues first; later scans only fetch
    issues since the previous scan. Each run fetches at most
    scan.max_pages pages.

    Examples:

        issuescope scan octocat/hello-world
        issuescope scan octocat/hello-world --json
    """
    config, store = _load()
    client = GitHubClient(
        token=config.github.token,
        api_base=config.github.api_base,
        timeout=config.github.timeout,
    )
    scanner = IssueScanner(
        store,
        client,
        per_page=config.scan.per_page,
        max_pages=config.scan.max_pages,
    )

    try:
        result = scanner.scan(repo)
    except RepositoryNotFoundError:
        click.echo(f"❌ Repository not found: {repo}", err=True)
        sys.exit(1)
    except (GitHubAPIError, IssueParseError) as e:
        click.echo(f"❌ Scan failed: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    labels = {
        "first_scan": "First scan",
        "updated": "Updated",
        "no_changes": "No new issues",
    }
    click.echo(f"📦 {repo}: {labels[result.status]}")
    click.echo(f"  New issues fetched: {result.new_fetched}")
    click.echo(f"  Cached issues: {result.issues_fetched}")
    click.echo(f"  Pages fetched: {result.pages_fetched}")
    click.echo(f"  Last scanned at: {result.last_scanned_at}")


@main.command()
@click.argument("repo")
@click.argument("question")
def analyze(repo: str, question: str):
    """Ask the local LLM QUESTION about REPO's cached issues.

    Example:

        issuescope analyze octocat/hello-world "Which bugs look most urgent?"
    """
    config, store = _load()
    llm = LLMClient.from_config(config.llm)

    try:
        result = analyze_repo(store, llm, repo, question, config.context)
    except CacheEmptyError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except LLMError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(result.analysis)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def repos(as_json: bool):
    """List scanned repositories."""
    _, store = _load()
    states = store.list_scan_states()

    if as_json:
        click.echo(json.dumps([s.to_dict() for s in states], indent=2))
        return

    if not states:
        click.echo("No repositories scanned yet. Run: issuescope scan owner/repo")
        return

    click.echo(f"{'Repository':<40} {'Issues':>7}  Last scanned")
    click.echo("─" * 72)
    for state in states:
        click.echo(f"{state.repo:<40} {state.total_issues:>7}  {state.last_scanned_at or 'never'}")


@main.command()
@click.option("--host", default=None, help="Bind host (default from config)")
@click.option("--port", default=None, type=int, help="Bind port (default from config / PORT)")
def serve(host: str | None, port: int | None):
    """Run the HTTP API (POST /scan, POST /analyze)."""
    from .web.server import run_server

    config = IssuescopeConfig.load(get_repo_root())
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    click.echo(f"Server running on http://{bind_host}:{bind_port}")
    click.echo(f"LLM endpoint: {config.llm.base_url}")
    run_server(host=bind_host, port=bind_port)


if __name__ == "__main__":
    main()
