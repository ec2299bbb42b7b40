"""
Legal Advice Streaming Pipeline

One user question in, a sequence of StreamEvents out:

    [Step "Analyzing..."] -> IntentDetected
    casual: Citation([]) -> Token* -> Done
    legal:  Step "Scanning..." -> (router || web search)
            -> [Step found] -> [Step enriching] -> Citation -> Token* -> Done

The generator is lazy. Closing it early (client disconnect) closes the
in-flight completion stream.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .config import AdvisorConfig, get_config
from .context_builder import build_context
from .events import Citation, Done, IntentDetected, Step, StreamEvent, Token
from .intent_classifier import CasualIntent, is_obviously_casual
from .legal_patterns import (
    ARABIC_SCRIPT,
    DEEP_QUERY_KEYWORDS,
    DEEP_QUERY_WORD_COUNT,
    DEPTH_INSTRUCTIONS,
    FRENCH_MARKERS,
    LANGUAGE_NAMES,
    LLM_PROMPTS,
    STEP_MESSAGES,
)
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)

WEB_SOURCE_ID = "web_search"


class AdviceGenerationError(Exception):
    """The advice completion failed after the stream started."""


@dataclass(frozen=True)
class ImageInput:
    """A base64-encoded image attached to the question."""
    data: str
    mime_type: str = "image/png"

    def to_content_part(self) -> dict:
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{self.mime_type};base64,{self.data}"},
        }


def analyze_complexity(query: str) -> str:
    """'deep' for long or scenario-style questions, otherwise 'basic'."""
    if len(query.split()) > DEEP_QUERY_WORD_COUNT:
        return "deep"
    lowered = query.lower()
    if any(keyword in lowered for keyword in DEEP_QUERY_KEYWORDS):
        return "deep"
    return "basic"


def detect_language(text: str) -> str:
    """Rough reply-language guess: 'ar', 'fr' or 'en'."""
    if ARABIC_SCRIPT.search(text):
        return "ar"
    if FRENCH_MARKERS.search(text):
        return "fr"
    return "en"


def history_messages(history: Iterable, turns: int) -> list[dict]:
    """Last `turns` history entries as role/content dicts (accepts dicts or models)."""
    messages = []
    for item in list(history)[-turns:] if turns > 0 else []:
        if isinstance(item, dict):
            role, content = item.get("role"), item.get("content")
        else:
            role, content = getattr(item, "role", None), getattr(item, "content", None)
        if role and content is not None:
            messages.append({"role": role, "content": content})
    return messages


def user_content(text: str, images: list[ImageInput]):
    """Plain text, or multimodal parts (images first) when images are attached."""
    if not images:
        return text
    parts = [image.to_content_part() for image in images]
    parts.append({"type": "text", "text": text})
    return parts


def compose_question(query: str, context_parts: list[str]) -> str:
    if not context_parts:
        return f"Question: {query}"
    context = "\n\n---\n\n".join(context_parts)
    return f"Context:\n{context}\n\n---\n\nQuestion: {query}"


class LegalAdvisor:
    """
    Usage:
        advisor = LegalAdvisor(llm, classifier, router, web_search)
        for event in advisor.stream_advice("ما هي شروط الطلاق؟"):
            send(event.to_sse())
    """

    def __init__(
        self,
        completion_service,
        intent_classifier,
        router,
        web_search=None,
        config: Optional[AdvisorConfig] = None,
    ):
        self.llm = completion_service
        self.classifier = intent_classifier
        self.router = router
        self.web_search = web_search
        self.config = config or get_config()

    def stream_advice(
        self,
        query: str,
        history: Iterable = (),
        images: Iterable[ImageInput] = (),
    ) -> Iterator[StreamEvent]:
        """
        Stream the answer to one question.

        Raises:
            AdviceGenerationError: the completion failed; a final error Step
                has already been yielded.
        """
        with get_metrics_collector().track_turn("advice", query) as tracker:
            yield from self._stream(query, list(history), list(images), tracker)

    def _system_suffix(self, query: str) -> str:
        depth = DEPTH_INSTRUCTIONS[analyze_complexity(query)]
        language = LANGUAGE_NAMES[detect_language(query)]
        return f"{depth}\nReply language: {language}."

    def _stream(self, query, history, images, tracker) -> Iterator[StreamEvent]:
        if is_obviously_casual(query):
            intent = CasualIntent(subtype="greeting")
            tracker.set_intent(intent.type)
            yield IntentDetected(intent=intent.to_dict())
            try:
                yield from self._casual(query, history, images)
            except Exception as e:
                yield from self._fail(e)
            yield Done()
            return

        try:
            yield Step(message=STEP_MESSAGES["analyzing"])
            intent = self.classifier.classify(query)
            tracker.set_intent(intent.type)
            yield IntentDetected(intent=intent.to_dict())

            if isinstance(intent, CasualIntent):
                yield from self._casual(query, history, images)
            else:
                yield from self._legal(intent, query, history, images, tracker)
        except Exception as e:
            yield from self._fail(e)

        yield Done()

    def _fail(self, error: Exception) -> Iterator[StreamEvent]:
        logger.error(f"Advice generation failed: {type(error).__name__}: {error}")
        yield Step(message=STEP_MESSAGES["generation_error"])
        raise AdviceGenerationError("Failed to generate response.") from error

    def _casual(self, query, history, images) -> Iterator[StreamEvent]:
        yield Citation(sources=[])
        messages = [
            {"role": "system", "content": LLM_PROMPTS["casual_system"] + self._system_suffix(query)},
            *history_messages(history, self.config.casual_history_turns),
            {"role": "user", "content": user_content(query, images)},
        ]
        yield from self._stream_tokens(messages)

    def _legal(self, intent, query, history, images, tracker) -> Iterator[StreamEvent]:
        yield Step(message=STEP_MESSAGES["scanning"])

        with ThreadPoolExecutor(max_workers=2) as executor:
            route_future = executor.submit(self.router.route, intent, query)
            web_future = executor.submit(self._search_web, query)
            route_result = route_future.result()
            web_text = web_future.result()

        sources = route_result.sources
        tracker.set_sources(len(sources))

        context_parts = []
        citations = [doc.to_dict() for doc in sources]
        if sources:
            yield Step(message=STEP_MESSAGES["found_references"].format(count=len(sources)))
            context_parts.append(build_context(sources, self.config.max_context_tokens))
        if web_text:
            yield Step(message=STEP_MESSAGES["web_enrichment"])
            context_parts.append(f"[Online Legal Sources]:\n{web_text}")
            citations.append({
                "id": WEB_SOURCE_ID,
                "document_name": "Online Legal Sources",
                "document_type": "Web Search",
                "category": "web",
                "text": web_text,
            })

        yield Citation(sources=citations)

        messages = [
            {"role": "system", "content": LLM_PROMPTS["legal_system"] + self._system_suffix(query)},
            *history_messages(history, self.config.legal_history_turns),
            {"role": "user", "content": user_content(compose_question(query, context_parts), images)},
        ]
        yield from self._stream_tokens(messages)

    def _search_web(self, query: str) -> str:
        if self.web_search is None:
            return ""
        return self.web_search.search(query)

    def _stream_tokens(self, messages: list[dict]) -> Iterator[StreamEvent]:
        stream = self.llm.complete(messages, model=self.config.chat_model, stream=True)
        try:
            for delta in stream:
                if delta:
                    yield Token(text=delta)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
