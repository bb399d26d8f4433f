"""
LLM interface for Issuescope using LiteLLM.

Talks to a locally hosted, OpenAI-compatible completion server
(LM Studio, Ollama, llama.cpp server, ...) and answers free-text
questions about a repository's cached issues.

See: https://docs.litellm.ai/docs/providers/openai_compatible
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger

from .config import ContextConfig, LLMConfig
from .context import build_context
from .store import Store

# Suppress LiteLLM's verbose logging
logging.getLogger("LiteLLM").setLevel(logging.WARNING)


SYSTEM_PROMPT = (
    "You are a technical assistant. Analyze the following GitHub issues and "
    "answer the user's question. Reference issue numbers (e.g. #102) where relevant."
)


class LLMError(RuntimeError):
    """Completion request failed or returned nothing."""


def build_user_prompt(context: str, question: str) -> str:
    return f"Issues List:\n{context}\n\nUser Question: {question}"


@dataclass
class AnalysisResult:
    """LLM answer for one analyze request."""
    repo: str
    analysis: str
    context_chars: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LLMClient:
    """LiteLLM-based client for a local OpenAI-compatible server."""

    def __init__(
        self,
        model: str = "openai/local-model",
        base_url: str | None = "http://localhost:1234/v1",
        api_key: str | None = "lm-studio",
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ):
        self.model = model
        self.base_url = base_url
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._litellm = None

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        return cls(
            model=config.model,
            base_url=config.base_url,
            api_key=config.api_key,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

    def _get_litellm(self):
        """Lazy import LiteLLM."""
        if self._litellm is None:
            try:
                import litellm
                self._litellm = litellm
            except ImportError:
                raise ImportError(
                    "LiteLLM is required for analysis. "
                    "Install with: pip install litellm"
                )
        return self._litellm

    def analyze(self, context: str, question: str) -> str:
        """Ask the model a question about the given issues context."""
        litellm = self._get_litellm()

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(context, question)},
            ],
            "temperature": self.temperature,
        }
        if self.base_url:
            kwargs["api_base"] = self.base_url
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens

        try:
            response = litellm.completion(**kwargs)
            content = response.choices[0].message.content
        except Exception as e:
            logger.error("llm.completion failed model={} error={}", self.model, e)
            raise LLMError(f"LLM Analysis failed: {e}") from e

        if not content:
            raise LLMError("LLM Analysis failed: empty completion")
        return content


def analyze_repo(
    store: Store,
    llm: LLMClient,
    repo: str,
    question: str,
    context_config: ContextConfig | None = None,
) -> AnalysisResult:
    """
    Build the bounded issues context for a repo and ask the LLM about it.

    Raises:
        CacheEmptyError: if the repo has never been scanned (or has no issues)
        LLMError: if the completion fails
    """
    context_config = context_config or ContextConfig()
    context = build_context(
        store,
        repo,
        max_chars=context_config.max_chars,
        body_chars=context_config.body_chars,
    )
    logger.info("analyze.start repo={} context_chars={}", repo, len(context))
    analysis = llm.analyze(context, question)
    return AnalysisResult(repo=repo, analysis=analysis, context_chars=len(context))
