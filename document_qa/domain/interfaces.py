from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
from .models import Vector, Point, SearchHit, DocumentRef

RANGE_OPERATORS = ("gt", "gte", "lt", "lte")


def is_range_condition(value: Any) -> bool:
    """True for filter values such as ``{"gte": 3}``, a numeric range on the payload key."""
    return isinstance(value, dict) and bool(value) and set(value) <= set(RANGE_OPERATORS)


class EmbeddingService(ABC):
    """Port for embedding provider (e.g., Ollama)."""

    name: str = "embedding"

    @abstractmethod
    def embed_texts(self, texts: List[str]) -> List[Vector]:
        """Embed a batch of texts into vectors.

        Raises:
            Exception: Provider/network failures should surface; use-case decides.
        """
        raise NotImplementedError

    @abstractmethod
    def get_dimension(self) -> int:
        """Return embedding dimension, probing provider if needed."""
        raise NotImplementedError


class GenerationService(ABC):
    """Port for the generative model answering a question from retrieved context."""

    name: str = "generation"

    @abstractmethod
    def generate(self, question: str, context: str) -> str:
        raise NotImplementedError


class VectorStore(ABC):
    """Port for vector storage (e.g., Qdrant).

    Filters are flat ``{payload_key: value}`` equality maps combined with AND;
    a list value matches any of its members, a ``{"gte": n}`` style map is a
    numeric range and dotted keys address nested payload fields.
    """

    @abstractmethod
    def ensure_collection(self, name: str, dim: int, distance: str = "Cosine", recreate: bool = False) -> None:
        """Ensure collection exists with expected dimension."""
        raise NotImplementedError

    @abstractmethod
    def get_collection_dim(self, name: str) -> Optional[int]:
        """Return the configured dimension, or None when the collection is missing."""
        raise NotImplementedError

    @abstractmethod
    def drop_collection(self, name: str) -> bool:
        """Delete the collection; returns False when it did not exist."""
        raise NotImplementedError

    @abstractmethod
    def upsert_points(self, name: str, points: List[Point]) -> dict:
        """Upsert list of points; returns provider response JSON."""
        raise NotImplementedError

    @abstractmethod
    def retrieve(self, name: str, ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Read points back by id; returns ``[{"id", "payload"}]`` for the ones found."""
        raise NotImplementedError

    @abstractmethod
    def search(
        self,
        name: str,
        vector: Vector,
        limit: int = 5,
        with_payload: bool = True,
        score_threshold: Optional[float] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchHit]:
        """Search similar points; returns list of SearchHit."""
        raise NotImplementedError

    @abstractmethod
    def count(self, name: str, filter: Optional[Dict[str, Any]] = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete_by_filter(self, name: str, filter: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def scroll_payloads(self, name: str, batch_size: int = 256) -> Iterator[Dict[str, Any]]:
        """Iterate over every point payload in the collection."""
        raise NotImplementedError


class DocumentSource(ABC):
    """Port for an already-authenticated file-storage provider."""

    name: str = "file-storage"

    @abstractmethod
    def list_documents(self) -> List[DocumentRef]:
        raise NotImplementedError

    @abstractmethod
    def fetch(self, document_id: str) -> Tuple[bytes, str, DocumentRef]:
        """Return raw bytes, mime type and listing entry of one document."""
        raise NotImplementedError
