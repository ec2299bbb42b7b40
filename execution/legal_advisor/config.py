"""
Runtime Configuration for the Legal Advisor Core

All tunables live here: model names, provider endpoints, the embedding cache
capacity, the relevance floor, and the context budget. Values come from the
environment (a local .env file is honoured), falling back to the defaults below.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass
class RouterConfig:
    """Retrieval breadth, broadening and confidence thresholds for the query router.

    The confidence and broadening thresholds were tuned empirically against
    text-embedding-3-small scores on the Moroccan law corpus.
    """
    complex_retrieval_limit: int = 8
    simple_retrieval_limit: int = 5
    complex_broaden_below: int = 4
    simple_broaden_below: int = 2
    complex_context_limit: int = 6
    simple_context_limit: int = 4
    high_confidence_above: float = 0.49
    medium_confidence_above: float = 0.45


@dataclass
class AdvisorConfig:
    """Top-level configuration consumed by the retrieval and pipeline modules."""
    # Retrieval
    embedding_cache_size: int = 500
    min_relevance_score: float = 0.35
    max_context_tokens: int = 3500
    candidate_multiplier: float = 1.5

    # Providers
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    embedding_provider: str = "openai"
    embedding_model: str = "openai/text-embedding-3-small"

    # Models
    chat_model: str = "google/gemini-3-flash-preview"
    classifier_model: str = "google/gemini-2.0-flash-001"
    web_search_model: str = "perplexity/sonar"
    contract_model: str = "google/gemini-3-flash-preview"

    # History windows (number of turns forwarded to the model)
    casual_history_turns: int = 10
    legal_history_turns: int = 6
    contract_history_turns: int = 10

    # Vector store
    database_url: Optional[str] = None
    vector_table: str = "legal_documents"

    router: RouterConfig = field(default_factory=RouterConfig)

    @property
    def max_context_chars(self) -> int:
        """Character budget for the prompt context (~3.5 chars per token for mixed-script text)."""
        return int(self.max_context_tokens * 3.5)

    @classmethod
    def from_env(cls) -> "AdvisorConfig":
        """Build a config from environment variables."""
        defaults = cls()
        return cls(
            embedding_cache_size=_env_int("EMBEDDING_CACHE_SIZE", defaults.embedding_cache_size),
            min_relevance_score=_env_float("MIN_RELEVANCE_SCORE", defaults.min_relevance_score),
            max_context_tokens=_env_int("MAX_CONTEXT_TOKENS", defaults.max_context_tokens),
            api_key=os.getenv("OPENROUTER_API_KEY"),
            base_url=os.getenv("OPENROUTER_BASE_URL", defaults.base_url),
            embedding_provider=os.getenv("EMBEDDING_PROVIDER", defaults.embedding_provider),
            embedding_model=os.getenv("EMBEDDING_MODEL", defaults.embedding_model),
            chat_model=os.getenv("CHAT_MODEL", defaults.chat_model),
            classifier_model=os.getenv("CLASSIFIER_MODEL", defaults.classifier_model),
            web_search_model=os.getenv("WEB_SEARCH_MODEL", defaults.web_search_model),
            contract_model=os.getenv("CONTRACT_MODEL", defaults.contract_model),
            database_url=os.getenv("POSTGRES_URL") or os.getenv("DATABASE_URL"),
            vector_table=os.getenv("VECTOR_TABLE", defaults.vector_table),
        )


_config: Optional[AdvisorConfig] = None


def get_config() -> AdvisorConfig:
    """Return the process-wide configuration, loading it from the environment once."""
    global _config
    if _config is None:
        _config = AdvisorConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (for testing)."""
    global _config
    _config = None
