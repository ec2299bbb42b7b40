"""
Tests for execution/legal_advisor/context_builder.py

Covers: block format, empty sentinel, budget enforcement without splitting
        blocks, and determinism.
"""

from tests.conftest import make_doc


class TestFormat:

    def test_single_block_format(self):
        from execution.legal_advisor.context_builder import build_context
        doc = make_doc(
            "a", 0.8765, category="الأسرية", text="Article 166 ...",
            document_name="مدونة الأسرة", document_type="Code", subcategory="الحضانة",
        )
        assert build_context([doc]) == (
            "[Source 1]: مدونة الأسرة (Code)\n"
            "Category: الأسرية > الحضانة\n"
            "Relevance: 0.88\n"
            "---\n"
            "Article 166 ...\n"
            "---\n"
            "\n"
        )

    def test_defaults_for_missing_type_and_subcategory(self):
        from execution.legal_advisor.context_builder import build_context
        context = build_context([make_doc("a", 0.5, category="civil")])
        assert "(Legal Text)" in context
        assert "Category: civil\n" in context

    def test_sources_numbered_in_order(self):
        from execution.legal_advisor.context_builder import build_context
        context = build_context([make_doc("a", 0.9), make_doc("b", 0.8), make_doc("c", 0.7)])
        assert context.index("[Source 1]: Document a") < context.index("[Source 2]: Document b")
        assert "[Source 3]: Document c" in context


class TestEmpty:

    def test_empty_list_returns_sentinel(self):
        from execution.legal_advisor.context_builder import build_context
        from execution.legal_advisor.legal_patterns import NO_DOCUMENTS_CONTEXT
        assert build_context([]) == NO_DOCUMENTS_CONTEXT
        assert NO_DOCUMENTS_CONTEXT

    def test_first_block_over_budget_returns_sentinel(self):
        from execution.legal_advisor.context_builder import build_context
        from execution.legal_advisor.legal_patterns import NO_DOCUMENTS_CONTEXT
        assert build_context([make_doc("a", 0.5, text="z" * 50)], max_context_tokens=10) == NO_DOCUMENTS_CONTEXT


class TestBudget:

    def test_length_within_budget(self):
        from execution.legal_advisor.context_builder import build_context
        docs = [make_doc(f"d{i}", 0.5, text="x" * 300) for i in range(10)]
        context = build_context(docs, max_context_tokens=300)
        assert len(context) <= int(300 * 3.5)

    def test_stops_before_overflowing_block(self):
        from execution.legal_advisor.context_builder import build_context, format_source
        docs = [make_doc(f"d{i}", 0.5, text="x" * 300) for i in range(10)]
        block_len = len(format_source(1, docs[0]))
        tokens = int((block_len * 2 + 10) / 3.5)
        context = build_context(docs, max_context_tokens=tokens)
        assert context.count("[Source ") == 2
        # Blocks are whole: the context ends with the block terminator
        assert context.endswith("---\n\n")

    def test_later_smaller_block_not_used_after_overflow(self):
        from execution.legal_advisor.context_builder import build_context
        docs = [
            make_doc("small", 0.9, text="a"),
            make_doc("huge", 0.8, text="b" * 5000),
            make_doc("tiny", 0.7, text="c"),
        ]
        context = build_context(docs, max_context_tokens=200)
        assert "Document small" in context
        assert "Document huge" not in context
        assert "Document tiny" not in context

    def test_default_budget_from_config(self, monkeypatch):
        monkeypatch.setenv("MAX_CONTEXT_TOKENS", "100")
        from execution.legal_advisor.context_builder import build_context
        docs = [make_doc(f"d{i}", 0.5, text="y" * 200) for i in range(5)]
        assert len(build_context(docs)) <= 350


class TestDeterminism:

    def test_idempotent(self):
        from execution.legal_advisor.context_builder import build_context
        docs = [make_doc("a", 0.81, text="Article 1"), make_doc("b", 0.52, text="المادة 2")]
        assert build_context(docs) == build_context(docs)
