"""
Tests for execution/legal_advisor/intent_classifier.py

Covers: the regex pre-filter (EN/FR/AR/Darija), classifier reply parsing,
        fallbacks on bad replies or call failures, and the completion call
        parameters.
"""

import pytest

from tests.conftest import MockCompletionService


# ---------------------------------------------------------------------------
# Pre-filter
# ---------------------------------------------------------------------------

class TestObviouslyCasual:

    @pytest.mark.parametrize("query", [
        "hi", "Hello", "HEY!", "salut", "Bonjour", "مرحبا", "السلام عليكم",
        "who are you?", "What's your name", "qui es-tu", "شكون نت",
        "thanks", "Thank you", "merci", "شكرا",
    ])
    def test_matches_casual_messages(self, query):
        from execution.legal_advisor.intent_classifier import is_obviously_casual
        assert is_obviously_casual(query)

    @pytest.mark.parametrize("query", [
        "hi, my landlord kept my deposit",
        "bonjour, comment divorcer ?",
        "ما هي حقوق العامل",
        "thanks to my employer I lost my job, what can I do",
        "",
    ])
    def test_legal_or_empty_messages_not_matched(self, query):
        from execution.legal_advisor.intent_classifier import is_obviously_casual
        assert not is_obviously_casual(query)

    def test_subtype_reported(self):
        from execution.legal_advisor.intent_classifier import casual_subtype
        assert casual_subtype("merci") == "thanks"
        assert casual_subtype("who are you") == "identity"
        assert casual_subtype("yo") == "greeting"


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------

class TestParseIntent:

    def test_casual_reply(self):
        from execution.legal_advisor.intent_classifier import CasualIntent, parse_intent
        assert parse_intent('{"type":"casual","subtype":"thanks"}') == CasualIntent("thanks")

    def test_legal_reply_with_surrounding_text(self):
        from execution.legal_advisor.intent_classifier import LegalIntent, parse_intent
        raw = 'Sure! ```json\n{"type": "legal", "domain": "family", "complexity": "complex"}\n```'
        assert parse_intent(raw) == LegalIntent("family", "complex")

    def test_unknown_complexity_normalized_to_simple(self):
        from execution.legal_advisor.intent_classifier import parse_intent
        intent = parse_intent('{"type":"legal","domain":"tax","complexity":"medium"}')
        assert intent.complexity == "simple"
        assert intent.domain == "tax"

    def test_missing_domain_defaults_to_other(self):
        from execution.legal_advisor.intent_classifier import parse_intent
        assert parse_intent('{"type":"legal"}').domain == "other"

    def test_casual_with_unknown_subtype_is_chitchat(self):
        from execution.legal_advisor.intent_classifier import parse_intent
        assert parse_intent('{"type":"casual","subtype":"joke"}').subtype == "chitchat"

    @pytest.mark.parametrize("raw", ["", "no json here", "{not: valid}", None])
    def test_garbage_falls_back(self, raw):
        from execution.legal_advisor.intent_classifier import FALLBACK_INTENT, parse_intent
        assert parse_intent(raw) == FALLBACK_INTENT

    def test_to_dict_has_type_discriminator(self):
        from execution.legal_advisor.intent_classifier import CasualIntent, LegalIntent
        assert CasualIntent("greeting").to_dict() == {"subtype": "greeting", "type": "casual"}
        assert LegalIntent("labor", "complex").to_dict() == {
            "domain": "labor", "complexity": "complex", "type": "legal",
        }


# ---------------------------------------------------------------------------
# IntentClassifier
# ---------------------------------------------------------------------------

class TestIntentClassifier:

    def test_classify_calls_llm_with_low_temperature(self, config):
        from execution.legal_advisor.intent_classifier import IntentClassifier, LegalIntent
        llm = MockCompletionService(replies=['{"type":"legal","domain":"labor","complexity":"simple"}'])
        intent = IntentClassifier(llm, config).classify("licenciement abusif")

        assert intent == LegalIntent("labor", "simple")
        call = llm.calls[0]
        assert call["model"] == config.classifier_model
        assert call["params"] == {"temperature": 0.1, "max_tokens": 100}
        assert call["messages"][-1] == {"role": "user", "content": "licenciement abusif"}

    def test_llm_failure_falls_back_to_legal_other(self, config):
        from execution.legal_advisor.intent_classifier import IntentClassifier, LegalIntent
        llm = MockCompletionService(replies=[TimeoutError("slow")])
        assert IntentClassifier(llm, config).classify("q") == LegalIntent("other", "simple")
