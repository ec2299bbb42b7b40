"""
Tests for execution/legal_advisor/retriever.py

Covers: distance-to-score conversion, relevance floor, ordering, limit and
        over-fetch, category pass-through, degradation to [] on failures,
        and RetrievedDocument construction.
"""

import pytest

from tests.conftest import MockEmbeddingService, MockVectorStore


def _retriever(config, store=None, embeddings=None):
    from execution.legal_advisor.retriever import VectorRetriever
    return VectorRetriever(
        embeddings or MockEmbeddingService(),
        store if store is not None else MockVectorStore(),
        config,
    )


def _row(doc_id, distance, category="civil"):
    return {
        "id": doc_id, "text": f"text {doc_id}", "source_file": f"{doc_id}.pdf",
        "category": category, "subcategory": None,
        "document_name": doc_id.upper(), "document_type": None,
        "_distance": distance,
    }


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class TestDistanceToScore:

    def test_identical_vectors_score_one(self):
        from execution.legal_advisor.retriever import distance_to_score
        assert distance_to_score(0.0) == 1.0

    def test_score_clamped_at_zero(self):
        from execution.legal_advisor.retriever import distance_to_score
        assert distance_to_score(1.7) == 0.0

    def test_linear_in_between(self):
        from execution.legal_advisor.retriever import distance_to_score
        assert distance_to_score(0.4) == pytest.approx(0.6)


# ---------------------------------------------------------------------------
# Search behaviour
# ---------------------------------------------------------------------------

class TestSearch:

    def test_drops_results_below_min_score(self, config):
        store = MockVectorStore(rows=[_row("a", 0.3), _row("b", 0.7), _row("c", 0.6)])
        docs = _retriever(config, store).search("q", limit=5)
        # min_relevance_score 0.35 keeps a (0.7) and c (0.4), drops b (0.3)
        assert [d.id for d in docs] == ["a", "c"]
        assert all(d.score >= config.min_relevance_score for d in docs)

    def test_explicit_min_score_overrides_config(self, config):
        store = MockVectorStore(rows=[_row("a", 0.3), _row("b", 0.45)])
        docs = _retriever(config, store).search("q", limit=5, min_score=0.6)
        assert [d.id for d in docs] == ["a"]

    def test_sorted_by_descending_score(self, config):
        rows = [_row("far", 0.6), _row("near", 0.1), _row("mid", 0.3)]

        class UnsortedStore(MockVectorStore):
            def search(self, query_embedding, limit=10, categories=None):
                self.calls.append({"limit": limit, "categories": categories})
                return [dict(r) for r in self.rows]

        docs = _retriever(config, UnsortedStore(rows=rows)).search("q", limit=5)
        scores = [d.score for d in docs]
        assert scores == sorted(scores, reverse=True)
        assert docs[0].id == "near"

    def test_never_more_than_limit(self, config):
        store = MockVectorStore(rows=[_row(f"d{i}", 0.1 + i * 0.01) for i in range(20)])
        docs = _retriever(config, store).search("q", limit=4)
        assert len(docs) == 4

    def test_requests_one_and_a_half_times_limit(self, config):
        store = MockVectorStore()
        _retriever(config, store).search("q", limit=5)
        assert store.calls[0]["limit"] == 8  # ceil(5 * 1.5)

    def test_fewer_survivors_returned_as_is(self, config):
        store = MockVectorStore(rows=[_row("only", 0.2)])
        docs = _retriever(config, store).search("q", limit=5)
        assert [d.id for d in docs] == ["only"]

    def test_categories_passed_to_store(self, config):
        store = MockVectorStore()
        docs = _retriever(config, store).search("الحضانة", limit=5, categories=["الأسرية", "famille"])
        assert store.calls[0]["categories"] == ["الأسرية", "famille"]
        assert {d.category for d in docs} <= {"الأسرية", "famille"}

    def test_no_categories_is_unfiltered(self, config):
        store = MockVectorStore()
        _retriever(config, store).search("q", limit=5, categories=[])
        assert store.calls[0]["categories"] is None

    def test_zero_limit_skips_search(self, config):
        store = MockVectorStore()
        assert _retriever(config, store).search("q", limit=0) == []
        assert store.calls == []


# ---------------------------------------------------------------------------
# Degradation
# ---------------------------------------------------------------------------

class TestDegradation:

    def test_store_failure_returns_empty(self, config):
        docs = _retriever(config, MockVectorStore(fail=True)).search("q", limit=5)
        assert docs == []

    def test_embedding_failure_returns_empty(self, config):
        store = MockVectorStore()
        docs = _retriever(config, store, MockEmbeddingService(fail=True)).search("q", limit=5)
        assert docs == []
        assert store.calls == []

    def test_rows_with_bad_distance_skipped(self, config):
        bad = _row("bad", 0.1)
        bad["_distance"] = None
        odd = _row("odd", 0.1)
        odd["_distance"] = "n/a"

        class RawStore(MockVectorStore):
            def search(self, query_embedding, limit=10, categories=None):
                return [dict(r) for r in self.rows]

        docs = _retriever(config, RawStore(rows=[bad, odd, _row("ok", 0.2)])).search("q", limit=5)
        assert [d.id for d in docs] == ["ok"]

    def test_missing_store_returns_empty(self, config):
        from execution.legal_advisor.retriever import VectorRetriever
        retriever = VectorRetriever(MockEmbeddingService(), None, config)
        assert retriever.search("q", limit=5) == []

    def test_failure_recorded_in_metrics(self, config):
        from execution.legal_advisor.metrics import get_metrics_collector
        _retriever(config, MockVectorStore(fail=True)).search("q", limit=5)
        assert get_metrics_collector().get_metrics().errors_by_type["ConnectionError"] == 1


# ---------------------------------------------------------------------------
# RetrievedDocument
# ---------------------------------------------------------------------------

class TestRetrievedDocument:

    def test_missing_id_gets_positional_fallback(self):
        from execution.legal_advisor.retriever import RetrievedDocument
        row = _row("x", 0.2)
        row["id"] = None
        doc = RetrievedDocument.from_row(row, 3, 0.8)
        assert doc.id == "doc_3"

    def test_document_name_falls_back_to_source_file(self):
        from execution.legal_advisor.retriever import RetrievedDocument
        row = _row("x", 0.2)
        row["document_name"] = None
        doc = RetrievedDocument.from_row(row, 0, 0.8)
        assert doc.document_name == "x.pdf"

    def test_is_frozen(self):
        from dataclasses import FrozenInstanceError
        from execution.legal_advisor.retriever import RetrievedDocument
        doc = RetrievedDocument.from_row(_row("x", 0.2), 0, 0.8)
        with pytest.raises(FrozenInstanceError):
            doc.score = 1.0

    def test_to_dict(self):
        from execution.legal_advisor.retriever import RetrievedDocument
        doc = RetrievedDocument.from_row(_row("x", 0.2), 0, 0.8)
        data = doc.to_dict()
        assert data["id"] == "x"
        assert data["score"] == 0.8
        assert data["subcategory"] is None
