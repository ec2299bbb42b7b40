"""
Query Router

Maps a classified intent to a retrieval plan and runs it: casual messages
skip retrieval entirely, legal questions search the categories of their
domain and fall back to an unfiltered search when the narrow search
under-delivers. The mean score of what survives sets a confidence bucket.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import AdvisorConfig, get_config
from .intent_classifier import CasualIntent
from .legal_patterns import DOMAIN_TO_CATEGORIES
from .retriever import RetrievedDocument

logger = logging.getLogger(__name__)


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


@dataclass
class RouteResult:
    needs_rag: bool
    sources: list[RetrievedDocument] = field(default_factory=list)
    searched_categories: Optional[list[str]] = None
    confidence: Confidence = Confidence.NONE


def categories_for_domain(domain: str) -> list[str]:
    """Category labels for a legal domain ([] means search everything)."""
    return list(DOMAIN_TO_CATEGORIES.get(domain, []))


def merge_unique(primary: list[RetrievedDocument], extra: list[RetrievedDocument]) -> list[RetrievedDocument]:
    """Primary docs first, then extra docs whose id was not already seen."""
    seen = {doc.id for doc in primary}
    merged = list(primary)
    for doc in extra:
        if doc.id not in seen:
            seen.add(doc.id)
            merged.append(doc)
    return merged


class QueryRouter:
    """
    Usage:
        router = QueryRouter(retriever)
        result = router.route(LegalIntent("family", "complex"), "kafala procedure")
    """

    def __init__(self, retriever, config: Optional[AdvisorConfig] = None):
        self.retriever = retriever
        self.config = config or get_config()

    def confidence_for(self, sources: list[RetrievedDocument]) -> Confidence:
        if not sources:
            return Confidence.NONE
        thresholds = self.config.router
        mean_score = sum(doc.score for doc in sources) / len(sources)
        if mean_score > thresholds.high_confidence_above:
            return Confidence.HIGH
        if mean_score > thresholds.medium_confidence_above:
            return Confidence.MEDIUM
        if mean_score > 0:
            return Confidence.LOW
        return Confidence.NONE

    def route(self, intent, query: str) -> RouteResult:
        if isinstance(intent, CasualIntent):
            return RouteResult(needs_rag=False, sources=[])

        try:
            return self._route_legal(intent, query)
        except Exception as e:
            logger.error(f"Routing failed, continuing without sources: {e}")
            return RouteResult(needs_rag=True, sources=[], confidence=Confidence.NONE)

    def _route_legal(self, intent, query: str) -> RouteResult:
        thresholds = self.config.router
        is_complex = intent.complexity == "complex"
        retrieval_limit = thresholds.complex_retrieval_limit if is_complex else thresholds.simple_retrieval_limit
        broaden_below = thresholds.complex_broaden_below if is_complex else thresholds.simple_broaden_below
        context_limit = thresholds.complex_context_limit if is_complex else thresholds.simple_context_limit

        categories = categories_for_domain(intent.domain)

        if categories:
            sources = self.retriever.search(query, limit=retrieval_limit, categories=categories)
            if len(sources) < broaden_below:
                logger.info(
                    f"Only {len(sources)} results in {intent.domain} categories, broadening search"
                )
                broad = self.retriever.search(query, limit=retrieval_limit)
                sources = merge_unique(sources, broad)
        else:
            sources = self.retriever.search(query, limit=retrieval_limit)

        sources = sources[:context_limit]
        confidence = self.confidence_for(sources)

        logger.info(
            f"Routed {intent.domain}/{intent.complexity}: "
            f"{len(sources)} sources, confidence={confidence.value}"
        )
        return RouteResult(
            needs_rag=True,
            sources=sources,
            searched_categories=categories or None,
            confidence=confidence,
        )
