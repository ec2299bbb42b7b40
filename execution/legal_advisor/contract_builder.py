"""
Contract Drafting Pipeline

Two phases per user message:

    Phase 1 (draft):  3 concurrent retrieval passes -> streamed drafting completion.
                      The model answers in <response>...</response> (chat text,
                      streamed as tokens) and <contract>...</contract> (HTML,
                      never streamed).
    Phase 2 (audit):  3 concurrent compliance retrieval passes -> one JSON review
                      -> ReviewResult + HtmlUpdate(version + 1).

The session is a read-only snapshot; persisting the new version is the
caller's job.
"""

import re
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .config import AdvisorConfig, get_config
from .context_builder import build_context
from .events import (
    Done,
    Error,
    HtmlUpdate,
    ReviewIssue,
    ReviewResult,
    Sources,
    Step,
    StreamEvent,
    Token,
)
from .legal_patterns import (
    COMPLIANCE_QUERIES,
    CONTRACT_LANGUAGE_INSTRUCTIONS,
    CONTRACT_TYPE_CATEGORIES,
    LLM_PROMPTS,
    NO_COMPLIANCE_CONTEXT,
    STEP_MESSAGES,
)
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)

DRAFT_PRIMARY_LIMIT = 10
DRAFT_SECONDARY_LIMIT = 8
DRAFT_TERTIARY_LIMIT = 5
DRAFT_MAX_SOURCES = 15
COMPLIANCE_MAX_SOURCES = 12

SEVERITIES = ("critical", "warning", "info")
REVIEW_FALLBACK_SUMMARY = "Review completed, but the detailed results could not be parsed."
GENERATION_ERROR = "An error occurred during contract generation."

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


@dataclass
class ContractSession:
    """Snapshot of the contract being edited."""
    html_content: str = ""
    version: int = 0
    contract_type: str = "custom"
    language: str = "fr"
    messages: list = field(default_factory=list)


@dataclass
class ReviewOutcome:
    issues: list[ReviewIssue] = field(default_factory=list)
    corrected_contract: str = ""
    summary: str = ""

    @property
    def critical_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "critical")


# =============================================================================
# Tag extraction
# =============================================================================

def extract_tag_content(text: str, tag: str) -> str:
    """Content of the first <tag>...</tag> region (case-insensitive), stripped."""
    match = re.search(rf"<{tag}>([\s\S]*?)</{tag}>", text, re.IGNORECASE)
    return match.group(1).strip() if match else ""


def _partial_suffix(text: str, markers: tuple) -> int:
    """Length of the longest suffix of text that is a proper prefix of any marker."""
    lowered = text.lower()
    longest = 0
    for marker in markers:
        for size in range(min(len(marker) - 1, len(lowered)), longest, -1):
            if marker.startswith(lowered[-size:]):
                longest = size
                break
    return longest


class TagStreamExtractor:
    """
    Incremental splitter for <response>/<contract> model output.

    feed() returns the slice of new text that belongs to a <response> region.
    Only the unresolved tail (at most one partial tag) is kept between calls,
    so the accumulated output is never rescanned. Text inside <contract> is
    dropped no matter how the tags are split across chunks.
    """

    RESPONSE_OPEN = "<response>"
    RESPONSE_CLOSE = "</response>"
    CONTRACT_OPEN = "<contract>"
    CONTRACT_CLOSE = "</contract>"

    def __init__(self):
        self.state = "outside"
        self._pending = ""
        self.streamed = False

    def feed(self, chunk: str) -> str:
        self._pending += chunk
        out = []

        while self._pending:
            lowered = self._pending.lower()

            if self.state == "outside":
                starts = [
                    (lowered.find(self.RESPONSE_OPEN), "response", self.RESPONSE_OPEN),
                    (lowered.find(self.CONTRACT_OPEN), "contract", self.CONTRACT_OPEN),
                ]
                starts = [s for s in starts if s[0] != -1]
                if not starts:
                    keep = _partial_suffix(self._pending, (self.RESPONSE_OPEN, self.CONTRACT_OPEN))
                    self._pending = self._pending[len(self._pending) - keep:] if keep else ""
                    break
                idx, state, marker = min(starts)
                self.state = state
                self._pending = self._pending[idx + len(marker):]

            elif self.state == "response":
                idx = lowered.find(self.RESPONSE_CLOSE)
                if idx != -1:
                    out.append(self._pending[:idx])
                    self._pending = self._pending[idx + len(self.RESPONSE_CLOSE):]
                    self.state = "outside"
                    continue
                keep = _partial_suffix(self._pending, (self.RESPONSE_CLOSE,))
                cut = len(self._pending) - keep
                out.append(self._pending[:cut])
                self._pending = self._pending[cut:]
                break

            else:  # contract
                idx = lowered.find(self.CONTRACT_CLOSE)
                if idx != -1:
                    self._pending = self._pending[idx + len(self.CONTRACT_CLOSE):]
                    self.state = "outside"
                    continue
                keep = _partial_suffix(self._pending, (self.CONTRACT_CLOSE,))
                self._pending = self._pending[len(self._pending) - keep:] if keep else ""
                break

        text = "".join(out)
        if text:
            self.streamed = True
        return text

    def flush(self) -> str:
        """Release text held back inside an unterminated <response> region."""
        text = self._pending if self.state == "response" else ""
        self._pending = ""
        if text:
            self.streamed = True
        return text


# =============================================================================
# Review parsing
# =============================================================================

def parse_review_response(text: str) -> ReviewOutcome:
    """
    Parse the audit reply (bare JSON or JSON in a fenced code block).

    Unknown severities become "info"; malformed JSON yields no issues and a
    generic summary.
    """
    match = _FENCED_JSON.search(text or "")
    raw = match.group(1).strip() if match else (text or "").strip()

    try:
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    except ValueError as e:
        logger.warning(f"Failed to parse review JSON: {e}")
        return ReviewOutcome(summary=REVIEW_FALLBACK_SUMMARY)

    issues = []
    raw_issues = parsed.get("issues")
    for item in raw_issues if isinstance(raw_issues, list) else []:
        if not isinstance(item, dict):
            continue
        severity = item.get("severity")
        issues.append(ReviewIssue(
            clause=str(item.get("clause") or ""),
            severity=severity if severity in SEVERITIES else "info",
            description=str(item.get("description") or ""),
            law_reference=str(item.get("lawReference") or item.get("law_reference") or ""),
        ))

    corrected = parsed.get("correctedContract")
    summary = parsed.get("summary")
    if summary is not None and not isinstance(summary, str):
        logger.warning(f"Review summary has type {type(summary).__name__}, using fallback")
        summary = REVIEW_FALLBACK_SUMMARY

    return ReviewOutcome(
        issues=issues,
        corrected_contract=corrected if isinstance(corrected, str) else "",
        summary=summary or "Review completed.",
    )


def dedup_documents(result_lists) -> list:
    """Merge result lists in order, keeping the first document per id."""
    seen = set()
    merged = []
    for results in result_lists:
        for doc in results:
            key = doc.id or f"{doc.source_file}_{doc.text[:50]}"
            if key in seen:
                continue
            seen.add(key)
            merged.append(doc)
    return merged


# =============================================================================
# Pipeline
# =============================================================================

class ContractBuilder:
    """
    Usage:
        builder = ContractBuilder(llm, retriever)
        session = ContractSession(contract_type="rental", language="fr")
        for event in builder.stream_contract("Bail pour un appartement à Rabat", session):
            send(event.to_sse())
    """

    def __init__(self, completion_service, retriever, config: Optional[AdvisorConfig] = None):
        self.llm = completion_service
        self.retriever = retriever
        self.config = config or get_config()

    def stream_contract(self, message: str, session: ContractSession) -> Iterator[StreamEvent]:
        with get_metrics_collector().track_turn("contract", message) as tracker:
            try:
                yield from self._stream(message, session, tracker)
            except Exception as e:
                logger.error(f"Contract pipeline error: {type(e).__name__}: {e}")
                get_metrics_collector().record_error(type(e).__name__)
                tracker.mark_failed(str(e))
                yield Error(message=GENERATION_ERROR)
                yield Done()

    def _run_searches(self, searches: list[tuple]) -> list[list]:
        """Run (query, limit, categories) searches concurrently; results in submission order."""
        with ThreadPoolExecutor(max_workers=len(searches)) as executor:
            futures = [
                executor.submit(self.retriever.search, query, limit, categories)
                for query, limit, categories in searches
            ]
            results = []
            for future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.warning(f"Contract retrieval pass failed: {e}")
                    results.append([])
        return results

    def retrieve_legal_context(self, contract_type: str, message: str) -> list:
        categories = CONTRACT_TYPE_CATEGORIES.get(contract_type, CONTRACT_TYPE_CATEGORIES["custom"])
        searches = []
        if categories["primary"]:
            searches.append((message, DRAFT_PRIMARY_LIMIT, categories["primary"]))
        searches.append((message, DRAFT_SECONDARY_LIMIT, categories["secondary"]))
        searches.append((message, DRAFT_TERTIARY_LIMIT, None))

        merged = dedup_documents(self._run_searches(searches))
        merged.sort(key=lambda doc: doc.score, reverse=True)
        logger.info(f"Contract retrieval: {len(merged)} unique references, using top {DRAFT_MAX_SOURCES}")
        return merged[:DRAFT_MAX_SOURCES]

    def retrieve_compliance_context(self, contract_type: str) -> list:
        searches = [
            (template.format(contract_type=contract_type), limit, None)
            for _, template, limit in COMPLIANCE_QUERIES
        ]
        merged = dedup_documents(self._run_searches(searches))
        merged.sort(key=lambda doc: doc.score, reverse=True)
        return merged[:COMPLIANCE_MAX_SOURCES]

    def _language_instruction(self, language: str) -> str:
        return CONTRACT_LANGUAGE_INSTRUCTIONS.get(language, CONTRACT_LANGUAGE_INSTRUCTIONS["en"])

    def _drafting_messages(self, message: str, session: ContractSession, sources: list) -> list[dict]:
        system = LLM_PROMPTS["contract_drafting"].format(
            language_instruction=self._language_instruction(session.language),
            legal_context=build_context(sources, self.config.max_context_tokens),
        )
        messages = [{"role": "system", "content": system}]

        turns = self.config.contract_history_turns
        for item in session.messages[-turns:] if turns > 0 else []:
            role = item.get("role") if isinstance(item, dict) else getattr(item, "role", None)
            content = item.get("content") if isinstance(item, dict) else getattr(item, "content", None)
            if role and content is not None:
                messages.append({"role": role, "content": content})

        user_content = message
        if session.html_content:
            user_content = (
                "CURRENT CONTRACT HTML (modify this if the user asks for edits):\n"
                f"```html\n{session.html_content}\n```\n\n"
                f"USER REQUEST: {message}"
            )
        messages.append({"role": "user", "content": user_content})
        return messages

    def _stream(self, message: str, session: ContractSession, tracker) -> Iterator[StreamEvent]:
        logger.info(
            f"Contract stream: type={session.contract_type} language={session.language} "
            f"version={session.version} has_html={bool(session.html_content)}"
        )

        # Phase 1: draft
        yield Step(message=STEP_MESSAGES["contract_searching"])
        sources = self.retrieve_legal_context(session.contract_type, message)
        tracker.set_sources(len(sources))
        if sources:
            yield Step(message=STEP_MESSAGES["found_references"].format(count=len(sources)))
        else:
            yield Step(message=STEP_MESSAGES["contract_no_references"])
        yield Sources(docs=[doc.to_dict() for doc in sources])

        messages = self._drafting_messages(message, session, sources)
        yield Step(message=STEP_MESSAGES["contract_drafting"])

        extractor = TagStreamExtractor()
        parts = []
        stream = self.llm.complete(messages, model=self.config.contract_model, stream=True)
        try:
            for delta in stream:
                parts.append(delta)
                text = extractor.feed(delta)
                if text:
                    yield Token(text=text)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        tail = extractor.flush()
        if tail:
            yield Token(text=tail)

        full_text = "".join(parts)
        chat_response = extract_tag_content(full_text, "response")
        contract_html = extract_tag_content(full_text, "contract")

        if not chat_response and not contract_html:
            logger.warning("No <response>/<contract> tags in drafting output, using full text as chat")
            if not extractor.streamed:
                yield Token(text=full_text)
            yield Done()
            return

        if chat_response and not extractor.streamed:
            yield Token(text=chat_response)

        if not contract_html:
            logger.info("Chat-only reply, no contract HTML")
            yield Done()
            return

        # Phase 2: audit
        yield Step(message=STEP_MESSAGES["contract_reviewing"])
        compliance_sources = self.retrieve_compliance_context(session.contract_type)
        compliance_context = (
            build_context(compliance_sources, self.config.max_context_tokens)
            if compliance_sources else NO_COMPLIANCE_CONTEXT
        )
        logger.info(f"Compliance retrieval: {len(compliance_sources)} references")

        review_text = self.llm.complete(
            [
                {
                    "role": "system",
                    "content": LLM_PROMPTS["contract_review"].format(
                        language_instruction=self._language_instruction(session.language),
                        compliance_context=compliance_context,
                    ),
                },
                {
                    "role": "user",
                    "content": (
                        f"Review this contract:\n```html\n{contract_html}\n```\n\n"
                        f"Contract Type: {session.contract_type}\nLanguage: {session.language}"
                    ),
                },
            ],
            model=self.config.contract_model,
        )
        review = parse_review_response(review_text)
        logger.info(f"Review complete: {len(review.issues)} issues ({review.critical_count} critical)")

        yield ReviewResult(issues=review.issues, summary=review.summary)
        yield HtmlUpdate(html=review.corrected_contract or contract_html, version=session.version + 1)

        if review.critical_count:
            yield Step(message=STEP_MESSAGES["contract_critical"].format(count=review.critical_count))
        elif review.issues:
            yield Step(message=STEP_MESSAGES["contract_minor"].format(count=len(review.issues)))
        else:
            yield Step(message=STEP_MESSAGES["contract_clean"])
        yield Done()
