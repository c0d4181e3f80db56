from __future__ import annotations

import math
import time
from typing import Callable, List, Optional

from ..dto import QueryRequest
from ..embedding import EmbeddingOrchestrator
from ..vector_index import VectorIndex
from ...domain.errors import (
    CircuitOpenError,
    ConfigurationError,
    ContractError,
    DocumentQAError,
    ErrorKind,
    GenerationError,
)
from ...domain.interfaces import GenerationService
from ...domain.models import Answer, SearchHit
from ...infrastructure.logging import get_logger
from ...infrastructure.resilience import CircuitBreaker, RetryPolicy, guarded_call

logger = get_logger("document_qa.answer")

MAX_CONTEXT_LENGTH = 4000
CONTEXT_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "\n...[truncated]"


def build_context(contents: List[str], max_length: int = MAX_CONTEXT_LENGTH) -> str:
    """Join ranked chunk contents as ``[i] text`` blocks, cut at ``max_length`` characters."""
    context = ""
    for i, chunk in enumerate(contents, start=1):
        if not chunk:
            continue
        if len(context) >= max_length:
            # Full already; the remaining chunks are left out.
            return context + TRUNCATION_MARKER
        if context:
            context += CONTEXT_SEPARATOR
        context += f"[{i}] {chunk}"
        if len(context) > max_length:
            return context[:max_length] + TRUNCATION_MARKER
    return context


def estimate_tokens(text: Optional[str]) -> int:
    """Rough token estimate, ~4 characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


class AnswerQuestionUseCase:
    """Use-case: retrieve relevant chunks and answer a question from them.

    Hits scoring below ``relevance_threshold`` are dropped before the context
    is assembled. Generation failures degrade to the ``fallback`` generator;
    embedding and search failures surface as ``DocumentQAError``, except an
    open circuit or a dimension mismatch, which propagate unchanged.
    """

    def __init__(
        self,
        embeddings: EmbeddingOrchestrator,
        index: VectorIndex,
        generator: Optional[GenerationService],
        fallback: Optional[GenerationService] = None,
        relevance_threshold: float = 0.3,
        max_context_length: int = MAX_CONTEXT_LENGTH,
        policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._emb = embeddings
        self._index = index
        self._generator = generator
        self._fallback = fallback
        self.relevance_threshold = float(relevance_threshold)
        self.max_context_length = int(max_context_length)
        self._policy = policy
        self._breaker = breaker
        self._sleep = sleep

    def execute(self, req: QueryRequest) -> Answer:
        if not str(req.query or "").strip():
            raise ContractError("Query is required", code=ErrorKind.INVALID_INPUT, details={"missing": ["query"]})
        started = time.monotonic()
        hits = self._retrieve(req)
        sources = [h for h in hits if h.score >= self.relevance_threshold]
        logger.info(
            "Retrieval | hits=%d | relevant=%d | threshold=%.2f",
            len(hits),
            len(sources),
            self.relevance_threshold,
        )
        context = build_context([h.content for h in sources], self.max_context_length)
        text, model = self._generate(req.query, context)
        tokens = estimate_tokens(req.query) + estimate_tokens(text) + sum(estimate_tokens(s.content) for s in sources)
        return Answer(
            query=req.query,
            answer=text,
            sources=sources,
            confidence="high" if sources else "low",
            model=model,
            tokens_used=tokens,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )

    def _retrieve(self, req: QueryRequest) -> List[SearchHit]:
        try:
            vector = self._emb.embed(req.query)
            return self._index.search(vector, limit=int(req.max_results), filter=req.filter)
        except (CircuitOpenError, ConfigurationError):
            raise
        except Exception as exc:
            logger.error("Retrieval failed | cause=%s", exc)
            raise DocumentQAError("Failed to perform document Q&A", cause=exc) from exc

    def _generate(self, question: str, context: str) -> tuple[str, str]:
        if self._generator is not None:
            generator = self._generator
            try:
                text = guarded_call(
                    lambda: generator.generate(question, context),
                    self._policy,
                    self._breaker,
                    sleep=self._sleep,
                    label="generate",
                )
                return text, getattr(generator, "name", type(generator).__name__)
            except Exception as exc:
                if self._fallback is None:
                    raise GenerationError("Failed to generate answer", cause=exc) from exc
                logger.warning("Generation failed, using offline answer | cause=%s", exc)
        if self._fallback is None:
            raise GenerationError("No generation provider configured")
        return self._fallback.generate(question, context), getattr(self._fallback, "name", "offline")
