"""
Language Model Clients

CompletionService wraps an OpenAI-compatible chat endpoint (OpenRouter by
default) behind one `complete()` call that either returns the full reply or
yields text deltas. WebSearchService asks an online search model for
jurisdiction-specific material and degrades to "" on any failure.
"""

import os
import logging
from typing import Iterator, Optional, Union

from .config import AdvisorConfig, get_config
from .legal_patterns import LLM_PROMPTS

logger = logging.getLogger(__name__)


class CompletionService:
    """
    Chat completions over the openai SDK.

    Usage:
        llm = CompletionService()
        text = llm.complete(messages, temperature=0.1, max_tokens=100)
        for delta in llm.complete(messages, stream=True):
            ...
    """

    def __init__(self, config: Optional[AdvisorConfig] = None, client=None):
        self.config = config or get_config()
        self._client = client

    def _get_client(self):
        """Get or create the cached OpenAI client."""
        if self._client is None:
            from openai import OpenAI
            api_key = self.config.api_key or os.getenv("OPENROUTER_API_KEY")
            if not api_key:
                raise RuntimeError("Completion client not initialized. Check OPENROUTER_API_KEY.")
            self._client = OpenAI(
                base_url=self.config.base_url,
                api_key=api_key,
                timeout=120.0,
            )
        return self._client

    def complete(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        stream: bool = False,
        **params,
    ) -> Union[str, Iterator[str]]:
        """
        Run a chat completion.

        Args:
            messages: OpenAI-style message dicts
            model: Model id (defaults to config.chat_model)
            stream: When True, return an iterator of text deltas
            **params: Passed through (temperature, max_tokens, ...)

        Returns:
            The reply text, or an iterator of deltas when streaming
        """
        model = model or self.config.chat_model
        client = self._get_client()

        if stream:
            # Create eagerly so connection errors surface at the call site
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                stream=True,
                **params,
            )
            return self._iter_deltas(response)

        response = client.chat.completions.create(
            model=model,
            messages=messages,
            **params,
        )
        content = response.choices[0].message.content
        return content or ""

    @staticmethod
    def _iter_deltas(response) -> Iterator[str]:
        """Yield non-empty text deltas; closing this iterator closes the HTTP stream."""
        try:
            for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        finally:
            close = getattr(response, "close", None)
            if close is not None:
                close()


class WebSearchService:
    """Online legal search through a search-grounded model (perplexity/sonar)."""

    def __init__(self, completion_service: CompletionService, config: Optional[AdvisorConfig] = None):
        self.llm = completion_service
        self.config = config or get_config()

    def search(self, query: str) -> str:
        try:
            text = self.llm.complete(
                [
                    {"role": "system", "content": LLM_PROMPTS["web_search_system"]},
                    {"role": "user", "content": f"Moroccan law: {query}"},
                ],
                model=self.config.web_search_model,
                max_tokens=800,
            )
            return (text or "").strip()
        except Exception as e:
            logger.warning(f"Web search failed: {e}")
            return ""
