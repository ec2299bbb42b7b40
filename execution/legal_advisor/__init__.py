"""
Legal Advisor - Retrieval-grounded legal assistant for Moroccan law

This package provides:
- Cached query embeddings and category-aware vector retrieval
- Intent classification and domain routing with broadening fallback
- A streaming advice pipeline (classify, retrieve, answer)
- A two-phase contract pipeline (draft, then compliance audit)
"""

from .advisor import LegalAdvisor, AdviceGenerationError
from .contract_builder import ContractBuilder, ContractSession
from .embedding_cache import EmbeddingCache
from .retriever import VectorRetriever, RetrievedDocument
from .query_router import QueryRouter

__all__ = [
    "LegalAdvisor",
    "AdviceGenerationError",
    "ContractBuilder",
    "ContractSession",
    "EmbeddingCache",
    "VectorRetriever",
    "RetrievedDocument",
    "QueryRouter",
]
