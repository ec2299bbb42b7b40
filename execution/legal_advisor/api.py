"""
FastAPI Backend for the Legal Advisor

Streams legal advice and contract drafts as Server-Sent Events. Each frame
is `data: <json>\\n\\n` with the event kind in the `type` field; every stream
ends with a `done` or `error` frame so clients never wait on a dead stream.

Run with: uvicorn execution.legal_advisor.api:app --host 0.0.0.0 --port 8000
"""

import os
import logging
from typing import Iterator, Optional

from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .advisor import AdviceGenerationError
from .api_models import (
    AdviceRequest,
    ContractStreamRequest,
    HealthResponse,
    TitleRequest,
    TitleResponse,
)
from .config import AdvisorConfig, get_config
from .events import StreamEvent, error_frame
from .metrics import get_metrics_collector

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

app = FastAPI(
    title="Legal Advisor API",
    description="Streaming legal advice and contract drafting grounded in Moroccan law",
    version=API_VERSION,
)

# Configure CORS: use CORS_ORIGINS env var (comma-separated) or default to localhost
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Service Container - builds and caches the pipeline collaborators
# =============================================================================

class ServiceContainer:
    """Lazily wires config, store, embeddings, LLM and pipelines.

    Any collaborator can be injected up front (tests pass mocks).
    """

    def __init__(
        self,
        config: Optional[AdvisorConfig] = None,
        store=None,
        embeddings=None,
        llm=None,
        web_search=None,
    ):
        self._config = config
        self._store = store
        self._embeddings = embeddings
        self._llm = llm
        self._web_search = web_search
        self._retriever = None
        self._advisor = None
        self._contract_builder = None
        self._title_generator = None

    def get_config(self) -> AdvisorConfig:
        if self._config is None:
            self._config = get_config()
        return self._config

    def get_store(self):
        if self._store is None:
            from .vector_store import VectorStore, VectorStoreConfig
            config = self.get_config()
            # Connects on first search; retrieval degrades to [] if the DB is down
            self._store = VectorStore(VectorStoreConfig(
                connection_string=config.database_url,
                table_name=config.vector_table,
            ))
        return self._store

    def get_embeddings(self):
        if self._embeddings is None:
            from .embeddings import get_embedding_service
            self._embeddings = get_embedding_service(config=self.get_config())
        return self._embeddings

    def get_llm(self):
        if self._llm is None:
            from .llm import CompletionService
            self._llm = CompletionService(self.get_config())
        return self._llm

    def get_web_search(self):
        if self._web_search is None:
            from .llm import WebSearchService
            self._web_search = WebSearchService(self.get_llm(), self.get_config())
        return self._web_search

    def get_retriever(self):
        if self._retriever is None:
            from .retriever import VectorRetriever
            self._retriever = VectorRetriever(
                self.get_embeddings(), self.get_store(), self.get_config(),
            )
        return self._retriever

    def get_advisor(self):
        if self._advisor is None:
            from .advisor import LegalAdvisor
            from .intent_classifier import IntentClassifier
            from .query_router import QueryRouter

            config = self.get_config()
            self._advisor = LegalAdvisor(
                completion_service=self.get_llm(),
                intent_classifier=IntentClassifier(self.get_llm(), config),
                router=QueryRouter(self.get_retriever(), config),
                web_search=self.get_web_search(),
                config=config,
            )
        return self._advisor

    def get_contract_builder(self):
        if self._contract_builder is None:
            from .contract_builder import ContractBuilder
            self._contract_builder = ContractBuilder(
                self.get_llm(), self.get_retriever(), self.get_config(),
            )
        return self._contract_builder

    def get_title_generator(self):
        if self._title_generator is None:
            from .title_generator import TitleGenerator
            self._title_generator = TitleGenerator(self.get_llm(), self.get_config())
        return self._title_generator


_container = ServiceContainer()


# =============================================================================
# SSE helpers
# =============================================================================

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_frames(events: Iterator[StreamEvent]) -> Iterator[str]:
    """Serialize pipeline events; a pipeline failure becomes a final error frame."""
    try:
        for event in events:
            yield event.to_sse()
    except AdviceGenerationError as e:
        logger.error(f"Stream: advice generation failed: {e.__cause__ or e}")
        yield error_frame("Failed to generate response.")
    except Exception as e:
        logger.error(f"Stream: pipeline failed: {type(e).__name__}: {e}")
        yield error_frame()
    finally:
        # Client disconnects land here too; closing propagates to the completion stream
        close = getattr(events, "close", None)
        if close is not None:
            close()


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint."""
    config = _container.get_config()
    try:
        db_status = "connected" if _container.get_store().is_available() else "disconnected"
    except Exception as e:
        logger.warning(f"Health check: database disconnected: {e}")
        db_status = "disconnected"

    from .embedding_cache import get_embedding_cache
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        database=db_status,
        embedding_cache_size=get_embedding_cache().size,
        completion_model=config.chat_model,
    )


@app.get("/api/v1/metrics")
def metrics():
    collector = get_metrics_collector()
    data = collector.get_metrics_dict()
    data["uptime_seconds"] = round(collector.get_uptime().total_seconds(), 1)
    return data


@app.post("/api/v1/chat/stream")
def chat_stream(request: AdviceRequest):
    """Streaming legal advice.

    Event types: step, intent, citation, token, done (error on failure).
    """
    advisor = _container.get_advisor()
    events = advisor.stream_advice(
        request.query,
        history=request.history,
        images=[image.to_input() for image in request.images],
    )
    return StreamingResponse(
        sse_frames(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.post("/api/v1/contracts/stream")
def contract_stream(request: ContractStreamRequest):
    """Streaming contract drafting and compliance review.

    Event types: step, sources, token, review, html_update, error, done.
    """
    builder = _container.get_contract_builder()
    events = builder.stream_contract(request.message, request.session.to_session())
    return StreamingResponse(
        sse_frames(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.post("/api/v1/chat/title", response_model=TitleResponse)
def chat_title(request: TitleRequest):
    title = _container.get_title_generator().generate(request.message)
    return TitleResponse(title=title)
