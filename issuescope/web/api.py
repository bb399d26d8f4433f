"""
FastAPI transport layer for Issuescope scans and analysis.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from loguru import logger
from pydantic import BaseModel, Field

from ..config import ContextConfig
from ..context import CacheEmptyError
from ..github import GitHubAPIError, IssueParseError, RepositoryNotFoundError
from ..llm import LLMClient, LLMError, analyze_repo
from ..scanner import IssueScanner
from ..store import Store


STATIC_DIR = Path(__file__).parent / "static"


class ScanRequest(BaseModel):
    repo: str = Field(min_length=1)


class AnalyzeRequest(BaseModel):
    repo: str = Field(min_length=1)
    prompt: str = Field(min_length=1)


def create_app(
    store: Store,
    scanner: IssueScanner,
    llm: LLMClient,
    context_config: ContextConfig | None = None,
    static_dir: Path = STATIC_DIR,
) -> FastAPI:
    app = FastAPI(title="issuescope", version="0.1.0")
    context_config = context_config or ContextConfig()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/scan")
    def scan(payload: ScanRequest) -> dict[str, Any]:
        logger.info("api.scan repo={}", payload.repo)
        try:
            result = scanner.scan(payload.repo)
        except RepositoryNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Repository not found") from exc
        except (GitHubAPIError, IssueParseError) as exc:
            logger.error("api.scan failed repo={} error={}", payload.repo, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {**result.to_dict(), "cached_successfully": True}

    @app.post("/analyze")
    def analyze(payload: AnalyzeRequest) -> dict[str, Any]:
        logger.info("api.analyze repo={} prompt={!r}", payload.repo, payload.prompt)
        try:
            result = analyze_repo(store, llm, payload.repo, payload.prompt, context_config)
        except CacheEmptyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except LLMError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return result.to_dict()

    @app.get("/repos")
    def list_repos() -> dict[str, Any]:
        return {"items": [state.to_dict() for state in store.list_scan_states()]}

    @app.get("/", include_in_schema=False)
    def index() -> FileResponse:
        index_path = static_dir / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI assets not found")
        return FileResponse(index_path)

    return app
