"""Explicit construction of the service graph from configuration.

``build_service`` creates one circuit breaker per external dependency
(embedding provider, generative provider, vector database, file storage) and
injects them; the returned service owns them for its whole lifetime.
"""
from __future__ import annotations

from typing import Optional

from .application.chunking import TextChunker
from .application.embedding import EmbeddingOrchestrator
from .application.service import DocumentQAService
from .application.use_cases.answer_question import AnswerQuestionUseCase
from .application.use_cases.search_chunks import SearchChunksUseCase
from .application.use_cases.sync_source import SyncSourceUseCase
from .application.use_cases.ingest_document import IngestDocumentUseCase
from .application.vector_index import VectorIndex
from .domain.interfaces import EmbeddingService, GenerationService, VectorStore
from .infrastructure import config
from .infrastructure.logging import get_logger
from .infrastructure.memory.store import InMemoryVectorStore
from .infrastructure.offline import CannedGenerationService, HashEmbeddingService
from .infrastructure.ollama.client import OllamaEmbeddingService, OllamaGenerationService
from .infrastructure.qdrant.client import QdrantVectorStore
from .infrastructure.resilience import CircuitBreaker, RetryPolicy

logger = get_logger("document_qa.bootstrap")


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.retry_attempts(),
        base_delay=config.retry_base_delay(),
        max_delay=config.retry_max_delay(),
    )


def make_breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        name=name,
        failure_threshold=config.breaker_threshold(),
        recovery_timeout=config.breaker_recovery_seconds(),
    )


def build_store() -> VectorStore:
    if config.vector_backend() == "memory":
        return InMemoryVectorStore()
    return QdrantVectorStore()


def build_service(
    *,
    offline: Optional[bool] = None,
    store: Optional[VectorStore] = None,
    embedder: Optional[EmbeddingService] = None,
    generator: Optional[GenerationService] = None,
) -> DocumentQAService:
    """Wire the pipeline from environment configuration.

    Args:
        offline: Skip live model providers; offline providers answer instead.
            Defaults to ``DOCQA_OFFLINE``.
        store: Vector store override (e.g. ``InMemoryVectorStore``).
        embedder / generator: Provider overrides.
    """
    offline = config.offline_mode() if offline is None else offline
    dim = config.vector_size()
    policy = default_retry_policy()
    breakers = {name: make_breaker(name) for name in ("embedding", "generation", "vector-db", "file-storage")}

    live_embedder = embedder if embedder is not None else (None if offline else OllamaEmbeddingService())
    live_generator = generator if generator is not None else (None if offline else OllamaGenerationService())

    embeddings = EmbeddingOrchestrator(
        provider=live_embedder,
        dimension=dim,
        fallback=HashEmbeddingService(dim),
        policy=policy,
        breaker=breakers["embedding"],
        max_workers=config.embed_workers(),
    )
    index = VectorIndex(
        store=store if store is not None else build_store(),
        collection=config.collection_name(),
        dimension=dim,
        policy=policy,
        breaker=breakers["vector-db"],
        max_workers=config.upsert_workers(),
    )
    lo, hi = config.chunk_size_bounds()
    chunker = TextChunker(config.chunk_size(), config.chunk_overlap(), lo, hi)
    answerer = AnswerQuestionUseCase(
        embeddings,
        index,
        generator=live_generator,
        fallback=CannedGenerationService(),
        relevance_threshold=config.answer_relevance_threshold(),
        max_context_length=config.max_context_length(),
        policy=policy,
        breaker=breakers["generation"],
    )
    searcher = SearchChunksUseCase(embeddings, index, default_threshold=config.search_relevance_threshold())
    ingester = IngestDocumentUseCase(chunker, embeddings, index)
    syncer = SyncSourceUseCase(
        ingester,
        policy=policy,
        breaker=breakers["file-storage"],
    )
    logger.info(
        "Service ready | collection=%s | dim=%d | embedder=%s | offline=%s",
        index.collection,
        dim,
        embeddings.model_name,
        offline,
    )
    return DocumentQAService(
        chunker,
        embeddings,
        index,
        answerer,
        searcher,
        ingester=ingester,
        syncer=syncer,
        breakers=breakers,
        default_max_results=config.max_results(),
    )
