"""
Embedding Service for the Legal Advisor

Turns text into vectors through an external provider, fronted by the LRU
embedding cache so repeated text never reaches the API twice.

Architecture:
    BaseEmbeddingService      -- shared cache-through embed / embed_batch
        OpenAIEmbeddingService    -- OpenAI-compatible endpoint (OpenRouter by default)
        VoyageEmbeddingService    -- Voyage AI voyage-law-2 / voyage-multilingual-2
"""

import os
import logging
from typing import Optional

from .config import AdvisorConfig, get_config
from .embedding_cache import EmbeddingCache, get_embedding_cache

logger = logging.getLogger(__name__)


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Subclasses implement:
    - _init_client(): create the provider client (leave None when unconfigured)
    - _embed_uncached(texts): call the provider for a list of texts

    And set:
    - _provider_name: human-readable provider name for error messages
    - _env_var_name: environment variable holding the API key
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""

    def __init__(
        self,
        config: Optional[AdvisorConfig] = None,
        cache: Optional[EmbeddingCache] = None,
        model: Optional[str] = None,
    ):
        self.config = config or get_config()
        self.cache = cache if cache is not None else get_embedding_cache(self.config.embedding_cache_size)
        self.model = model or self.config.embedding_model
        self._client = None
        self._init_client()

    def _init_client(self):
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _embed_uncached(self, texts: list[str]) -> list[list[float]]:
        raise NotImplementedError("Subclasses must implement _embed_uncached()")

    def _require_client(self):
        if not self._client:
            raise RuntimeError(
                f"{self._provider_name} client not initialized. "
                f"Check {self._env_var_name}."
            )

    def embed(self, text: str) -> list[float]:
        """
        Embed a single text, consulting the cache first.

        Args:
            text: Query or passage to embed

        Returns:
            Embedding vector
        """
        cached = self.cache.get(text)
        if cached is not None:
            return cached

        self._require_client()
        vectors = self._embed_uncached([text])
        if not vectors:
            raise RuntimeError(f"{self._provider_name} returned no embedding")

        self.cache.set(text, vectors[0])
        return vectors[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed several texts, sending only cache misses to the provider.

        Output order matches input order.
        """
        if not texts:
            return []

        results: list[Optional[list[float]]] = [None] * len(texts)
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cached = self.cache.get(text)
            if cached is not None:
                results[i] = cached
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            self._require_client()
            logger.info(
                f"Embedding {len(uncached_texts)}/{len(texts)} uncached texts"
                f" with {self._provider_name}"
            )
            vectors = self._embed_uncached(uncached_texts)
            if len(vectors) != len(uncached_texts):
                raise RuntimeError(
                    f"{self._provider_name} returned {len(vectors)} embeddings"
                    f" for {len(uncached_texts)} texts"
                )
            for idx, vector in zip(uncached_indices, vectors):
                self.cache.set(texts[idx], vector)
                results[idx] = vector

        return results


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embeddings through an OpenAI-compatible endpoint.

    Defaults to OpenRouter with openai/text-embedding-3-small (1536 dims),
    which handles the corpus' Arabic and French text well.
    """

    _provider_name = "OpenAI-compatible"
    _env_var_name = "OPENROUTER_API_KEY"

    def _init_client(self):
        api_key = self.config.api_key or os.getenv("OPENROUTER_API_KEY")

        if not api_key:
            logger.warning(
                "OPENROUTER_API_KEY not found. Embeddings will fail. "
                "Set the environment variable or use a different provider."
            )
            return

        from openai import OpenAI
        self._client = OpenAI(base_url=self.config.base_url, api_key=api_key)
        logger.info(f"Embedding client initialized with model {self.model}")

    def _embed_uncached(self, texts: list[str]) -> list[list[float]]:
        try:
            response = self._client.embeddings.create(model=self.model, input=texts)
        except Exception as e:
            logger.error(f"{self._provider_name} embedding failed: {e}")
            raise

        data = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in data]


class VoyageEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using Voyage AI.

    voyage-law-2 is tuned for legal text; voyage-multilingual-2 is the better
    pick when the stored corpus is mostly Arabic.
    """

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"

    def __init__(self, config=None, cache=None, model: Optional[str] = None):
        super().__init__(config=config, cache=cache, model=model or "voyage-law-2")

    def _init_client(self):
        api_key = os.getenv("VOYAGE_API_KEY")

        if not api_key:
            logger.warning(
                "VOYAGE_API_KEY not found. Embeddings will fail. "
                "Get your API key at https://dash.voyageai.com/"
            )
            return

        import voyageai
        self._client = voyageai.Client(api_key=api_key)
        logger.info(f"Voyage AI client initialized with model {self.model}")

    def _embed_uncached(self, texts: list[str]) -> list[list[float]]:
        try:
            response = self._client.embed(
                texts=texts,
                model=self.model,
                input_type="query",
            )
        except Exception as e:
            logger.error(f"{self._provider_name} embedding failed: {e}")
            raise
        return response.embeddings


def get_embedding_service(
    provider: Optional[str] = None,
    config: Optional[AdvisorConfig] = None,
) -> BaseEmbeddingService:
    """
    Factory function to get the configured embedding service.

    Args:
        provider: "openai" (default) or "voyage"; falls back to config.embedding_provider
        config: Optional configuration. Uses the process config if not provided.
    """
    config = config or get_config()
    provider = (provider or config.embedding_provider).lower()

    if provider == "voyage":
        model = config.embedding_model if config.embedding_model.startswith("voyage") else None
        return VoyageEmbeddingService(config=config, model=model)
    if provider == "openai":
        return OpenAIEmbeddingService(config=config)

    raise ValueError(f"Unknown embedding provider: {provider}")
