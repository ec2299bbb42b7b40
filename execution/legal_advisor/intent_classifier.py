"""
Intent Classification

Decides whether a message is casual conversation or a legal question, and
for legal questions which domain and how complex. A regex pre-filter catches
obvious greetings, identity questions and thanks without any LLM call; every
other message goes through one short, low-temperature completion.

Classification never fails: an unusable model reply falls back to a simple
legal question in the "other" domain, so the user still gets a grounded answer.
"""

import re
import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Union

from .config import AdvisorConfig, get_config
from .legal_patterns import CASUAL_PATTERNS, LLM_PROMPTS

logger = logging.getLogger(__name__)

CASUAL_SUBTYPES = ("greeting", "identity", "chitchat", "thanks")
COMPLEXITIES = ("simple", "complex")

_JSON_OBJECT = re.compile(r"\{[^{}]*\}", re.DOTALL)
# Trailing punctuation users add to short messages ("hi!", "merci.", "شكرا؟")
_TRAILING_PUNCT = re.compile(r"[\s!?.,،؟…]+$")


@dataclass(frozen=True)
class CasualIntent:
    subtype: str = "greeting"
    type: str = "casual"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LegalIntent:
    domain: str = "other"
    complexity: str = "simple"
    type: str = "legal"

    @property
    def is_complex(self) -> bool:
        return self.complexity == "complex"

    def to_dict(self) -> dict:
        return asdict(self)


Intent = Union[CasualIntent, LegalIntent]

FALLBACK_INTENT = LegalIntent(domain="other", complexity="simple")


def casual_subtype(query: str) -> Optional[str]:
    """Return the casual subtype the pre-filter matches, or None."""
    text = _TRAILING_PUNCT.sub("", query.strip())
    if not text:
        return None
    for subtype, patterns in CASUAL_PATTERNS.items():
        if any(pattern.search(text) for pattern in patterns):
            return subtype
    return None


def is_obviously_casual(query: str) -> bool:
    """True when the message is a bare greeting, identity question or thanks."""
    return casual_subtype(query) is not None


def parse_intent(raw: str) -> Intent:
    """
    Parse the classifier reply into an Intent.

    The first {...} object in the reply is used; anything unusable yields
    FALLBACK_INTENT.
    """
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        logger.warning(f"Intent classifier returned no JSON: {raw[:100] if raw else raw!r}")
        return FALLBACK_INTENT

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Intent classifier JSON parse failed: {e}")
        return FALLBACK_INTENT

    if data.get("type") == "casual":
        subtype = data.get("subtype")
        if subtype not in CASUAL_SUBTYPES:
            subtype = "chitchat"
        return CasualIntent(subtype=subtype)

    domain = data.get("domain") or "other"
    complexity = data.get("complexity")
    if complexity not in COMPLEXITIES:
        complexity = "simple"
    return LegalIntent(domain=domain, complexity=complexity)


class IntentClassifier:
    """LLM-backed intent classifier."""

    def __init__(self, completion_service, config: Optional[AdvisorConfig] = None):
        self.llm = completion_service
        self.config = config or get_config()

    def classify(self, query: str) -> Intent:
        messages = [
            {"role": "system", "content": LLM_PROMPTS["intent_classifier"]},
            {"role": "user", "content": query},
        ]
        try:
            raw = self.llm.complete(
                messages,
                model=self.config.classifier_model,
                temperature=0.1,
                max_tokens=100,
            )
        except Exception as e:
            logger.warning(f"Intent classification failed, defaulting to legal/other: {e}")
            return FALLBACK_INTENT

        intent = parse_intent(raw)
        logger.info(f"Classified intent: {intent.to_dict()}")
        return intent
