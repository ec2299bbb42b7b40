"""
Vector Retriever for the Legal Corpus

Embeds a query (through the cached embedding service), runs a
category-filtered nearest-neighbour search, converts cosine distance into a
[0, 1] similarity score, and keeps only documents above the relevance floor.

Retrieval is degradable: any embedding or database failure is logged and
turned into an empty result list so the answer can still be generated.
"""

import math
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from .config import AdvisorConfig, get_config
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    """A single scored passage from the corpus."""
    id: str
    text: str
    source_file: str
    category: str
    document_name: str
    score: float
    subcategory: Optional[str] = None
    document_type: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict, index: int, score: float) -> "RetrievedDocument":
        """Build a document from a vector-store row; rows without an id get doc_<index>."""
        return cls(
            id=str(row.get("id") or f"doc_{index}"),
            text=row.get("text") or "",
            source_file=row.get("source_file") or "",
            category=row.get("category") or "",
            subcategory=row.get("subcategory") or None,
            document_name=row.get("document_name") or row.get("source_file") or "",
            document_type=row.get("document_type") or None,
            score=score,
        )


def distance_to_score(distance: float) -> float:
    """Cosine distance (0 = identical, 2 = opposite) to a similarity clamped at 0."""
    return max(0.0, 1.0 - distance)


class VectorRetriever:
    """
    Similarity search over the legal corpus.

    Usage:
        retriever = VectorRetriever(embedding_service, vector_store)
        docs = retriever.search("حقوق الحضانة", limit=5, categories=["الأسرية"])
    """

    def __init__(
        self,
        embedding_service,
        vector_store,
        config: Optional[AdvisorConfig] = None,
    ):
        self.embeddings = embedding_service
        self.store = vector_store
        self.config = config or get_config()

    def search(
        self,
        query: str,
        limit: int,
        categories: Optional[list[str]] = None,
        min_score: Optional[float] = None,
    ) -> list[RetrievedDocument]:
        """
        Retrieve up to `limit` documents scoring at least `min_score`.

        Args:
            query: Natural-language query
            limit: Maximum number of documents to return
            categories: Exact category labels to restrict to (None or [] = all)
            min_score: Relevance floor (defaults to config.min_relevance_score)

        Returns:
            Documents sorted by descending score. Never raises.
        """
        if limit <= 0:
            return []
        if self.store is None:
            logger.warning("Vector store not configured, skipping retrieval")
            return []

        threshold = self.config.min_relevance_score if min_score is None else min_score
        # Over-fetch so the relevance filter still leaves enough documents
        candidates = math.ceil(limit * self.config.candidate_multiplier)

        try:
            query_vector = self.embeddings.embed(query)
            rows = self.store.search(
                query_vector,
                limit=candidates,
                categories=list(categories) if categories else None,
            )
        except Exception as e:
            logger.error(f"Retrieval failed for query '{query[:50]}': {e}")
            get_metrics_collector().record_error(type(e).__name__)
            return []

        documents = []
        for index, row in enumerate(rows):
            try:
                distance = float(row.get("_distance", 1.0))
            except (TypeError, ValueError):
                logger.warning(f"Skipping candidate {row.get('id')!r}: bad distance {row.get('_distance')!r}")
                continue
            score = distance_to_score(distance)
            if score < threshold:
                continue
            documents.append(RetrievedDocument.from_row(row, index, score))

        documents.sort(key=lambda doc: doc.score, reverse=True)
        documents = documents[:limit]

        logger.debug(
            f"Retrieved {len(documents)}/{len(rows)} documents "
            f"(categories={categories or 'all'}, min_score={threshold})"
        )
        get_metrics_collector().record_retrieval(len(documents))
        return documents
