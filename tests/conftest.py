"""
Shared fixtures and test utilities for Legal Advisor tests.

Provides mock services, sample data, and reusable fixtures so that all tests
can run without API keys, databases, or external network access.
"""

import sys
import hashlib
from pathlib import Path

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")


# ---------------------------------------------------------------------------
# Sample corpus rows (as returned by VectorStore.search)
# ---------------------------------------------------------------------------

SAMPLE_ROWS = [
    {
        "id": "fam-001",
        "text": "المادة 166: تستمر الحضانة إلى بلوغ سن الرشد القانوني للذكر والأنثى على حد سواء.",
        "source_file": "moudawana.pdf",
        "category": "الأسرية",
        "subcategory": "الحضانة",
        "document_name": "مدونة الأسرة",
        "document_type": "Code",
        "_distance": 0.42,
    },
    {
        "id": "fam-002",
        "text": "Article 171: La garde est confiée en premier lieu à la mère, puis au père.",
        "source_file": "code_famille_fr.pdf",
        "category": "famille",
        "subcategory": None,
        "document_name": "Code de la famille",
        "document_type": None,
        "_distance": 0.48,
    },
    {
        "id": "civ-001",
        "text": "Article 230: Les obligations contractuelles valablement formées tiennent lieu de loi.",
        "source_file": "doc.pdf",
        "category": "civil",
        "subcategory": "obligations",
        "document_name": "Dahir des obligations et des contrats",
        "document_type": "Dahir",
        "_distance": 0.50,
    },
    {
        "id": "lab-001",
        "text": "Article 35: Le licenciement d'un salarié doit reposer sur un motif valable.",
        "source_file": "code_travail.pdf",
        "category": "travail",
        "subcategory": None,
        "document_name": "Code du travail",
        "document_type": "Code",
        "_distance": 0.55,
    },
    {
        "id": "far-001",
        "text": "Unrelated administrative circular.",
        "source_file": "circular.pdf",
        "category": "administratif",
        "subcategory": None,
        "document_name": "Circulaire",
        "document_type": None,
        "_distance": 0.90,
    },
]


def make_doc(doc_id, score, category="civil", text=None, **kwargs):
    """Build a RetrievedDocument with sensible defaults."""
    from execution.legal_advisor.retriever import RetrievedDocument
    return RetrievedDocument(
        id=doc_id,
        text=text if text is not None else f"Text of {doc_id}",
        source_file=kwargs.pop("source_file", f"{doc_id}.pdf"),
        category=category,
        document_name=kwargs.pop("document_name", f"Document {doc_id}"),
        score=score,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=8, fail=False):
        self._dimensions = dimensions
        self.fail = fail
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding provider down")
        return self._deterministic_embedding(text)

    def embed_batch(self, texts):
        return [self.embed(t) for t in texts]

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i) % 1000) / 1000.0 for i in range(self._dimensions)]


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


# ---------------------------------------------------------------------------
# Mock vector store (no database needed)
# ---------------------------------------------------------------------------

class MockVectorStore:
    """In-memory stand-in for VectorStore.search with exact category filtering."""

    def __init__(self, rows=None, fail=False):
        self.rows = list(SAMPLE_ROWS if rows is None else rows)
        self.fail = fail
        self.calls = []

    def search(self, query_embedding, limit=10, categories=None):
        self.calls.append({"limit": limit, "categories": categories})
        if self.fail:
            raise ConnectionError("database unreachable")
        rows = [
            dict(r) for r in self.rows
            if not categories or r.get("category") in categories
        ]
        rows.sort(key=lambda r: r["_distance"])
        return rows[:limit]

    def is_available(self):
        return not self.fail


@pytest.fixture
def mock_vector_store():
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Mock completion service
# ---------------------------------------------------------------------------

class MockStream:
    """Iterator of text deltas that records whether it was closed."""

    def __init__(self, chunks, fail_after=None):
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self.closed = False
        self.consumed = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise StopIteration
        if self._fail_after is not None and self.consumed >= self._fail_after:
            raise RuntimeError("stream interrupted")
        if self.consumed >= len(self._chunks):
            raise StopIteration
        chunk = self._chunks[self.consumed]
        self.consumed += 1
        return chunk

    def close(self):
        self.closed = True


class MockCompletionService:
    """
    Scripted CompletionService.

    `replies` is consumed by non-streaming calls in order (a string, or an
    exception instance to raise); `streams` is consumed by streaming calls
    (a list of text chunks, a MockStream, or an exception instance).
    """

    def __init__(self, replies=None, streams=None):
        self.replies = list(replies or [])
        self.streams = list(streams or [])
        self.calls = []
        self.opened_streams = []

    def complete(self, messages, model=None, stream=False, **params):
        self.calls.append({"messages": messages, "model": model, "stream": stream, "params": params})
        if stream:
            item = self.streams.pop(0) if self.streams else ["ok"]
            if isinstance(item, Exception):
                raise item
            mock_stream = item if isinstance(item, MockStream) else MockStream(item)
            self.opened_streams.append(mock_stream)
            return mock_stream

        item = self.replies.pop(0) if self.replies else ""
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def streaming_calls(self):
        return [c for c in self.calls if c["stream"]]

    @property
    def plain_calls(self):
        return [c for c in self.calls if not c["stream"]]


@pytest.fixture
def mock_llm():
    return MockCompletionService()


# ---------------------------------------------------------------------------
# Mock retriever (records every search)
# ---------------------------------------------------------------------------

class MockRetriever:
    """Retriever stub: `results` maps a categories tuple (or None) to documents."""

    def __init__(self, results=None, default=None):
        self.results = results or {}
        self.default = default or []
        self.calls = []

    def search(self, query, limit, categories=None, min_score=None):
        self.calls.append({"query": query, "limit": limit, "categories": categories})
        key = tuple(categories) if categories else None
        return list(self.results.get(key, self.default))[:limit]


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    from execution.legal_advisor.config import AdvisorConfig
    return AdvisorConfig(api_key="test-key")


# ---------------------------------------------------------------------------
# Singleton resets between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_metrics_singleton():
    """Reset the MetricsCollector singleton between tests."""
    import execution.legal_advisor.metrics as metrics_mod
    metrics_mod.MetricsCollector._instance = None
    metrics_mod._collector = None
    yield
    metrics_mod.MetricsCollector._instance = None
    metrics_mod._collector = None


@pytest.fixture(autouse=True)
def reset_process_singletons():
    """Reset the cached config and the shared embedding cache between tests."""
    import execution.legal_advisor.config as config_mod
    import execution.legal_advisor.embedding_cache as cache_mod
    config_mod.reset_config()
    cache_mod._cache = None
    yield
    config_mod.reset_config()
    cache_mod._cache = None
