"""
Prompt Context Builder

Formats retrieved documents into the labelled blocks the language model
sees, within a character budget. Blocks are never split: the first block
that would overflow the budget ends the context.
"""

import logging
from typing import Optional

from .config import get_config
from .legal_patterns import NO_DOCUMENTS_CONTEXT

logger = logging.getLogger(__name__)

# Mixed Arabic/French text averages about 3.5 characters per token
CHARS_PER_TOKEN = 3.5


def format_source(index: int, doc) -> str:
    """Format one document as a numbered [Source i] block (1-based)."""
    category = doc.category
    if doc.subcategory:
        category = f"{category} > {doc.subcategory}"

    return (
        f"[Source {index}]: {doc.document_name} ({doc.document_type or 'Legal Text'})\n"
        f"Category: {category}\n"
        f"Relevance: {doc.score:.2f}\n"
        f"---\n"
        f"{doc.text}\n"
        f"---\n"
        f"\n"
    )


def build_context(sources, max_context_tokens: Optional[int] = None) -> str:
    """
    Build the prompt context for a list of retrieved documents.

    Args:
        sources: RetrievedDocument list, already in rank order
        max_context_tokens: Token budget (defaults to config.max_context_tokens)

    Returns:
        The concatenated blocks, or NO_DOCUMENTS_CONTEXT when there are no sources
    """
    if not sources:
        return NO_DOCUMENTS_CONTEXT

    if max_context_tokens is None:
        max_context_tokens = get_config().max_context_tokens
    budget = int(max_context_tokens * CHARS_PER_TOKEN)

    parts = []
    used = 0
    for i, doc in enumerate(sources, start=1):
        block = format_source(i, doc)
        if used + len(block) > budget:
            logger.debug(f"Context budget reached after {i - 1}/{len(sources)} sources")
            break
        parts.append(block)
        used += len(block)

    if not parts:
        return NO_DOCUMENTS_CONTEXT
    return "".join(parts)
