"""
Web server bootstrap for the Issuescope API.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env so GITHUB_TOKEN / LLM_URL are available when the server is
# started directly (e.g. uvicorn issuescope.web.server:create_server_app).
load_dotenv()
load_dotenv(Path.cwd() / ".env")

import uvicorn
from fastapi import FastAPI
from loguru import logger

from ..config import IssuescopeConfig, get_repo_root
from ..github import GitHubClient
from ..llm import LLMClient
from ..scanner import IssueScanner
from ..store import Store
from .api import create_app


LOG_FILE = Path.home() / ".issuescope" / "server.log"


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward Loguru sinks."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_file: Path = LOG_FILE) -> None:
    """Configure loguru to intercept uvicorn/fastapi logs and write to file/console."""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default loguru handler
    logger.remove()

    # Add console handler
    logger.add(sys.stderr, level="INFO", colorize=True, format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>")

    # Add file handler
    logger.add(str(log_file), level="DEBUG", rotation="10 MB", retention="1 week", format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}")

    # Intercept standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Intercept uvicorn loggers
    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"):
        logging_logger = logging.getLogger(logger_name)
        logging_logger.handlers = [InterceptHandler()]
        logging_logger.propagate = False


def build_app(config: IssuescopeConfig, repo_root: Path | None = None) -> FastAPI:
    """Wire one Store, scanner and LLM client into the API app."""
    store = Store(db_path=config.get_db_path(repo_root))
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
    llm = LLMClient.from_config(config.llm)
    logger.info("server.store db={}", store.db_path)
    logger.info("server.llm base_url={} model={}", config.llm.base_url, config.llm.model)
    return create_app(store, scanner, llm, context_config=config.context)


def create_server_app() -> FastAPI:
    setup_logging()
    logger.info("Starting issuescope API server...")
    repo_root = get_repo_root()
    return build_app(IssuescopeConfig.load(repo_root), repo_root)


def run_server(host: str, port: int) -> None:
    uvicorn.run("issuescope.web.server:create_server_app", host=host, port=port, log_level="info", factory=True)
