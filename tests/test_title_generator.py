"""
Tests for execution/legal_advisor/title_generator.py
"""

from tests.conftest import MockCompletionService


class TestCleanTitle:

    def test_strips_quotes_and_whitespace(self):
        from execution.legal_advisor.title_generator import clean_title
        assert clean_title('  "Bail commercial à Casablanca"\n') == "Bail commercial à Casablanca"
        assert clean_title("«الطلاق للشقاق»") == "الطلاق للشقاق"

    def test_truncated_to_fifty_chars(self):
        from execution.legal_advisor.title_generator import clean_title
        assert len(clean_title("x" * 80)) == 50

    def test_empty_reply_gets_default(self):
        from execution.legal_advisor.title_generator import DEFAULT_TITLE, clean_title
        assert clean_title("") == DEFAULT_TITLE
        assert clean_title('""') == DEFAULT_TITLE


class TestTitleGenerator:

    def test_generate_uses_classifier_model(self, config):
        from execution.legal_advisor.title_generator import TitleGenerator
        llm = MockCompletionService(replies=["Licenciement abusif"])
        assert TitleGenerator(llm, config).generate("mon patron m'a renvoyé") == "Licenciement abusif"
        call = llm.calls[0]
        assert call["model"] == config.classifier_model
        assert call["params"] == {"temperature": 0.3, "max_tokens": 20}

    def test_failure_returns_default(self, config):
        from execution.legal_advisor.title_generator import DEFAULT_TITLE, TitleGenerator
        llm = MockCompletionService(replies=[RuntimeError("down")])
        assert TitleGenerator(llm, config).generate("q") == DEFAULT_TITLE
