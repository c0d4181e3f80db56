from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from ..domain.errors import ConfigurationError, EmbeddingError, ErrorKind
from ..domain.interfaces import EmbeddingService
from ..domain.models import Vector
from ..domain.vectors import l2_normalize
from ..infrastructure.logging import get_logger
from ..infrastructure.resilience import CircuitBreaker, RetryPolicy, guarded_call

logger = get_logger("document_qa.embedding")


class EmbeddingOrchestrator:
    """Turns chunk contents and queries into L2-normalized vectors of a fixed dimension.

    The live ``provider`` is called through ``breaker`` and ``policy``; when it
    is absent or keeps failing, the ``fallback`` provider answers instead.
    Without a fallback the failure surfaces as ``EmbeddingError``.
    """

    def __init__(
        self,
        provider: Optional[EmbeddingService],
        dimension: int,
        fallback: Optional[EmbeddingService] = None,
        policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
        max_workers: int = 4,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if provider is None and fallback is None:
            raise ConfigurationError("No embedding provider configured")
        self._provider = provider
        self._fallback = fallback
        self.dimension = int(dimension)
        self._policy = policy
        self._breaker = breaker
        self._max_workers = max(1, int(max_workers))
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        active = self._provider or self._fallback
        return getattr(active, "name", type(active).__name__)

    def check_dimension(self, expected: int) -> int:
        """Probe the active provider once and compare with the index size.

        Raises:
            ConfigurationError: When the provider emits another dimension.
        """
        if self._provider is not None:
            try:
                probed = guarded_call(self._provider.get_dimension, self._policy, self._breaker, sleep=self._sleep, label="embed.probe")
            except ConfigurationError:
                raise
            except Exception as exc:
                if self._fallback is None:
                    raise EmbeddingError("Embedding dimension probe failed", cause=exc) from exc
                logger.warning("Embedding probe failed, using offline dimension | cause=%s", exc)
                probed = self._fallback.get_dimension()
        else:
            probed = self._fallback.get_dimension()  # type: ignore[union-attr]
        if int(probed) != int(expected) or self.dimension != int(expected):
            raise ConfigurationError(
                f"Embedding dimension {probed} does not match index dimension {expected}",
                details={"embedding_dim": probed, "index_dim": expected, "configured_dim": self.dimension},
            )
        return int(probed)

    def embed(self, text: str) -> Vector:
        """Embed one text and return its unit-length vector (zero stays zero)."""
        vec = self._embed_raw(text)
        if vec.dim != self.dimension or len(vec.values) != self.dimension:
            raise ConfigurationError(
                f"Embedding dimension {vec.dim} does not match index dimension {self.dimension}",
                details={"embedding_dim": vec.dim, "index_dim": self.dimension},
            )
        return Vector(values=l2_normalize(vec.values), dim=vec.dim)

    def embed_many(self, texts: List[str]) -> List[Vector]:
        """Embed texts on a bounded pool; results keep the input order."""
        if not texts:
            return []
        if len(texts) == 1 or self._max_workers == 1:
            return [self.embed(t) for t in texts]
        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(texts))) as pool:
            return list(pool.map(self.embed, texts))

    def _embed_raw(self, text: str) -> Vector:
        if self._provider is not None:
            provider = self._provider
            try:
                return guarded_call(
                    lambda: self._first(provider.embed_texts([text])),
                    self._policy,
                    self._breaker,
                    sleep=self._sleep,
                    label="embed",
                )
            except ConfigurationError:
                raise
            except Exception as exc:
                if self._fallback is None:
                    raise EmbeddingError("Failed to generate embedding", cause=exc) from exc
                logger.warning("Embedding provider failed, falling back | provider=%s | cause=%s", self.model_name, exc)
        return self._first(self._fallback.embed_texts([text]))  # type: ignore[union-attr]

    @staticmethod
    def _first(vectors: List[Vector]) -> Vector:
        if not vectors:
            raise EmbeddingError("Provider returned no vectors", code=ErrorKind.EMBEDDING_ERROR)
        return vectors[0]
