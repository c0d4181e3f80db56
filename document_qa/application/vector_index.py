from __future__ import annotations

import hashlib
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from ..domain.errors import (
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    ProviderError,
    VectorStoreError,
    error_code,
)
from ..domain.interfaces import VectorStore
from ..domain.models import Chunk, Document, Point, SearchHit, Vector
from ..domain.vectors import is_normalized, l2_normalize
from ..infrastructure.logging import get_logger
from ..infrastructure.resilience import CircuitBreaker, RetryPolicy, guarded_call

logger = get_logger("document_qa.vector_index")

T = TypeVar("T")

# Fixed 1s between attempts. A failed read-back raises TEMPORARY_FAILURE so it
# is retried, while a rejected write (VECTOR_DB_ERROR) is not.
UPSERT_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=1.0, multiplier=1.0, jitter=0.0)


def point_id(document_id: str, chunk_index: int) -> int:
    """Stable unsigned 64-bit id for ``(document_id, chunk_index)``."""
    key = f"{document_id}_{chunk_index}".encode("utf-8")
    return int.from_bytes(hashlib.blake2b(key, digest_size=8).digest(), "big")


def build_payload(chunk: Chunk, document: Document) -> Dict[str, Any]:
    now = datetime.now(timezone.utc).isoformat(timespec="seconds")
    return {
        "document_id": document.id,
        "document_name": document.name or "",
        "chunk_index": chunk.index,
        "total_chunks": chunk.total_chunks,
        "start_offset": chunk.start_offset,
        "end_offset": chunk.end_offset,
        "content": chunk.content,
        "metadata": {
            "file_size": document.size or len(document.content.encode("utf-8")),
            "created_at": document.created_at or now,
            "updated_at": document.updated_at or now,
            "source_id": document.source_id or "",
            "mime_type": document.mime_type or "text/plain",
        },
    }


def build_point(chunk: Chunk, vector: Vector, document: Document) -> Point:
    return Point(id=point_id(document.id, chunk.index), vector=vector, payload=build_payload(chunk, document))


@dataclass
class UpsertReport:
    """Per-point outcome of a batch upsert."""
    stored: List[int] = field(default_factory=list)
    failed: Dict[int, Dict[str, Any]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {"stored": len(self.stored), "failed": len(self.failed), "errors": {str(k): v for k, v in self.failed.items()}}


class VectorIndex:
    """Adapter over one vector-store collection with fixed dimension and cosine metric.

    Every store call passes through the vector-database circuit breaker and a
    retry policy; writes are verified by reading each point back.
    """

    def __init__(
        self,
        store: VectorStore,
        collection: str,
        dimension: int,
        policy: Optional[RetryPolicy] = None,
        upsert_policy: RetryPolicy = UPSERT_RETRY_POLICY,
        breaker: Optional[CircuitBreaker] = None,
        max_workers: int = 4,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self.collection = collection
        self.dimension = int(dimension)
        self._policy = policy
        self._upsert_policy = upsert_policy
        self._breaker = breaker
        self._max_workers = max(1, int(max_workers))
        self._sleep = sleep

    def _guard(self, fn: Callable[[], T], label: str, policy: Optional[RetryPolicy] = None) -> T:
        try:
            return guarded_call(fn, policy or self._policy, self._breaker, sleep=self._sleep, label=label)
        except (CircuitOpenError, ConfigurationError, VectorStoreError):
            raise
        except Exception as exc:
            raise VectorStoreError(f"Vector database call failed: {label}", cause=exc) from exc

    # --- lifecycle ---

    def ensure(self, recreate: bool = False) -> None:
        """Create the collection once; a size mismatch is fatal unless ``recreate``."""
        self._guard(
            lambda: self._store.ensure_collection(self.collection, self.dimension, "Cosine", recreate),
            "ensure_collection",
        )

    def reset(self) -> Dict[str, int]:
        """Drop and recreate the collection empty, reporting what was removed."""
        documents, vectors = self._census()
        self._guard(lambda: self._store.drop_collection(self.collection), "drop_collection")
        self._guard(
            lambda: self._store.ensure_collection(self.collection, self.dimension, "Cosine", False),
            "ensure_collection",
        )
        logger.info("Index reset | collection=%s | documents=%d | vectors=%d", self.collection, documents, vectors)
        return {"removed_documents": documents, "removed_vectors": vectors}

    def stats(self) -> Dict[str, Any]:
        documents, vectors = self._census()
        exists = self._guard(lambda: self._store.get_collection_dim(self.collection), "get_collection") is not None
        return {
            "total_documents": documents,
            "total_vectors": vectors,
            "collections": 1 if exists else 0,
            "collection": self.collection,
            "dimension": self.dimension,
            "last_updated": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }

    def _census(self) -> Tuple[int, int]:
        def scan() -> Tuple[int, int]:
            docs = set()
            vectors = 0
            for payload in self._store.scroll_payloads(self.collection):
                vectors += 1
                if payload.get("document_id"):
                    docs.add(payload["document_id"])
            return len(docs), vectors

        return self._guard(scan, "scroll")

    # --- writes ---

    def upsert_points(self, points: Sequence[Point]) -> UpsertReport:
        """Write points concurrently, each with its own sequential retries.

        Returns:
            UpsertReport: Stored ids in input order and failures keyed by id.
        """
        for p in points:
            if p.vector.dim != self.dimension:
                raise ConfigurationError(
                    f"Point {p.id} has dimension {p.vector.dim}, index expects {self.dimension}",
                    details={"point_id": p.id, "dim": p.vector.dim, "index_dim": self.dimension},
                )
        report = UpsertReport()
        if not points:
            return report
        workers = min(self._max_workers, len(points))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(self._upsert_one, points))
        for p, err in zip(points, outcomes):
            if err is None:
                report.stored.append(p.id)
            else:
                report.failed[p.id] = err
        if report.failed:
            logger.warning(
                "Upsert partial | collection=%s | stored=%d | failed=%d",
                self.collection,
                len(report.stored),
                len(report.failed),
            )
        return report

    def upsert(self, points: Sequence[Point]) -> int:
        """Write and verify every point; returns the count written.

        Raises:
            VectorStoreError: When any point could not be stored after retries.
        """
        report = self.upsert_points(points)
        if not report.ok:
            raise VectorStoreError(
                "Failed to store vectors in database",
                details={"report": report.to_dict()},
            )
        return len(report.stored)

    def _upsert_one(self, point: Point) -> Optional[Dict[str, Any]]:
        normalized = point
        if not is_normalized(point.vector.values) and any(point.vector.values):
            normalized = Point(id=point.id, vector=Vector(l2_normalize(point.vector.values), point.vector.dim), payload=point.payload)

        def write_and_verify() -> None:
            self._store.upsert_points(self.collection, [normalized])
            found = self._store.retrieve(self.collection, [normalized.id])
            if not any(str(it.get("id")) == str(normalized.id) for it in found):
                raise ProviderError(
                    "Point verification failed",
                    code=ErrorKind.TEMPORARY_FAILURE,
                    details={"point_id": normalized.id},
                )

        try:
            guarded_call(write_and_verify, self._upsert_policy, self._breaker, sleep=self._sleep, label="upsert")
        except Exception as exc:
            code = error_code(exc)
            logger.error("Upsert failed | collection=%s | point=%s | code=%s | cause=%s", self.collection, point.id, code, exc)
            return {
                "code": code if code == ErrorKind.CIRCUIT_OPEN.value else ErrorKind.VECTOR_DB_ERROR.value,
                "cause_code": code,
                "error": str(exc),
            }
        return None

    def delete(self, document_id: str) -> int:
        """Remove every point of ``document_id``; returns the number removed."""
        removed = self._delete_matching({"document_id": document_id})
        logger.info("Delete | collection=%s | document=%s | removed=%d", self.collection, document_id, removed)
        return removed

    def prune(self, document_id: str, keep: int, drop: Sequence[int] = ()) -> int:
        """Remove points an earlier version of ``document_id`` left behind.

        Chunk indexes from ``keep`` upward go, as do the indexes in ``drop``
        (chunks the new version failed to overwrite). Returns the number removed.
        """
        removed = self._delete_matching({"document_id": document_id, "chunk_index": {"gte": int(keep)}})
        if drop:
            removed += self._delete_matching({"document_id": document_id, "chunk_index": sorted(int(i) for i in drop)})
        if removed:
            logger.info("Prune | collection=%s | document=%s | removed=%d", self.collection, document_id, removed)
        return removed

    def _delete_matching(self, flt: Dict[str, Any]) -> int:
        removed = self._guard(lambda: self._store.count(self.collection, flt), "count")
        if removed:
            self._guard(lambda: self._store.delete_by_filter(self.collection, flt), "delete")
        return removed

    # --- reads ---

    def search(self, vector: Vector, limit: int = 5, filter: Optional[Dict[str, Any]] = None) -> List[SearchHit]:
        """Nearest neighbours by cosine similarity, best first.

        Low-score hits are kept; callers apply their own relevance threshold.
        """
        if vector.dim != self.dimension:
            raise ConfigurationError(
                f"Query vector has dimension {vector.dim}, index expects {self.dimension}",
                details={"dim": vector.dim, "index_dim": self.dimension},
            )
        query = vector if is_normalized(vector.values) else Vector(l2_normalize(vector.values), vector.dim)
        hits = self._guard(
            lambda: self._store.search(self.collection, query, limit=int(limit), with_payload=True, filter=filter or None),
            "search",
        )
        # Stable sort: equal scores keep the store's order.
        return sorted(hits, key=lambda h: h.score, reverse=True)
