"""
Configuration management for Issuescope.

Loads and validates:
- issuescope.yml: Main configuration (GitHub, scan limits, context budget, LLM, server)
- Environment overrides (GITHUB_TOKEN, LLM_URL, PORT, ...), usually from .env
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "issuescope.yml"
DB_FILENAME = "issues.db"


@dataclass
class GitHubConfig:
    """Upstream GitHub API settings."""
    api_base: str = "https://api.github.com"
    token: str | None = None  # Read from GITHUB_TOKEN when unset
    timeout: float = 30.0


@dataclass
class ScanConfig:
    """Bounds for a single scan."""
    per_page: int = 100
    max_pages: int = 10  # Safety cap against unbounded history walks


@dataclass
class ContextConfig:
    """Context window budget for analysis prompts."""
    max_chars: int = 12000  # ~3k-4k tokens for most local models
    body_chars: int = 200


@dataclass
class LLMConfig:
    """LLM configuration using LiteLLM against a local OpenAI-compatible server."""
    model: str = "openai/local-model"
    # 'http://localhost:11434/v1' (Ollama) or 'http://localhost:1234/v1' (LM Studio)
    base_url: str = "http://localhost:1234/v1"
    api_key: str = "lm-studio"  # Ignored by local servers but must not be empty
    temperature: float = 0.7
    max_tokens: int | None = None


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class IssuescopeConfig:
    """Complete Issuescope configuration."""
    db_path: str | None = None  # Defaults to .issuescope/issues.db under the repo root
    github: GitHubConfig = field(default_factory=GitHubConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def get_db_path(self, repo_root: Path | None = None) -> Path:
        """Resolve the database path, relative paths against the repo root."""
        if self.db_path:
            path = Path(self.db_path).expanduser()
            if not path.is_absolute():
                path = (repo_root or get_repo_root()) / path
            return path.resolve()
        return get_issuescope_dir(repo_root) / DB_FILENAME

    @classmethod
    def load(cls, repo_root: Path, environ: dict[str, str] | None = None) -> "IssuescopeConfig":
        """Load configuration from repo root directory, then apply env overrides."""
        config = cls()

        config_path = repo_root / CONFIG_FILENAME
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"{config_path} must contain a mapping")
            config = cls._parse_main_config(data)

        config._apply_env(os.environ if environ is None else environ)
        return config

    @classmethod
    def _parse_main_config(cls, data: dict[str, Any]) -> "IssuescopeConfig":
        """Parse main configuration dictionary."""
        config = cls()
        config.db_path = data.get("db_path")

        github_data = data.get("github") or {}
        config.github = GitHubConfig(
            api_base=github_data.get("api_base", "https://api.github.com"),
            token=github_data.get("token"),
            timeout=float(github_data.get("timeout", 30.0)),
        )

        scan_data = data.get("scan") or {}
        config.scan = ScanConfig(
            per_page=int(scan_data.get("per_page", 100)),
            max_pages=int(scan_data.get("max_pages", 10)),
        )

        context_data = data.get("context") or {}
        config.context = ContextConfig(
            max_chars=int(context_data.get("max_chars", 12000)),
            body_chars=int(context_data.get("body_chars", 200)),
        )

        llm_data = data.get("llm") or {}
        config.llm = LLMConfig(
            model=llm_data.get("model", "openai/local-model"),
            base_url=llm_data.get("base_url", "http://localhost:1234/v1"),
            api_key=llm_data.get("api_key", "lm-studio"),
            temperature=float(llm_data.get("temperature", 0.7)),
            max_tokens=llm_data.get("max_tokens"),
        )

        server_data = data.get("server") or {}
        config.server = ServerConfig(
            host=server_data.get("host", "127.0.0.1"),
            port=int(server_data.get("port", 3000)),
        )

        return config

    def _apply_env(self, environ: Any) -> None:
        """Environment variables win over file values."""
        if environ.get("GITHUB_TOKEN"):
            self.github.token = environ["GITHUB_TOKEN"]
        if environ.get("GITHUB_API_URL"):
            self.github.api_base = environ["GITHUB_API_URL"]
        if environ.get("LLM_URL"):
            self.llm.base_url = environ["LLM_URL"]
        if environ.get("LLM_MODEL"):
            self.llm.model = environ["LLM_MODEL"]
        if environ.get("LLM_API_KEY"):
            self.llm.api_key = environ["LLM_API_KEY"]
        if environ.get("PORT"):
            self.server.port = int(environ["PORT"])
        if environ.get("ISSUESCOPE_DB"):
            self.db_path = environ["ISSUESCOPE_DB"]


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()


def get_issuescope_dir(repo_root: Path | None = None) -> Path:
    """Get the .issuescope directory path."""
    if repo_root is None:
        repo_root = get_repo_root()
    return repo_root / ".issuescope"


def ensure_issuescope_dir(repo_root: Path | None = None) -> Path:
    """Ensure .issuescope directory exists and return its path."""
    issuescope_dir = get_issuescope_dir(repo_root)
    issuescope_dir.mkdir(parents=True, exist_ok=True)
    return issuescope_dir
