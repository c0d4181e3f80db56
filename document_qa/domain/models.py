from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Document:
    """A caller-owned document to be indexed.

    Fields:
        id: Stable identifier; re-ingesting the same id supersedes prior chunks.
        name: Display name.
        content: Raw text.
        mime_type: Content-type tag reported by the source.
        size: Size in bytes of the original content.
        source_id: Identifier inside the file-storage provider, when any.
        created_at / updated_at: ISO-8601 timestamps.
    """
    id: str
    name: str
    content: str
    mime_type: str = "text/plain"
    size: int = 0
    source_id: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Chunk:
    """A contiguous, bounded slice of a document's text.

    Fields:
        document_id: Owning document.
        index: 0-based position, contiguous within the document.
        start_offset / end_offset: Character offsets into the original text.
        content: Trimmed, non-empty text of the slice.
        total_chunks: Number of chunks of the document (same for all of them).
    """
    document_id: str
    index: int
    start_offset: int
    end_offset: int
    content: str
    total_chunks: int


@dataclass(frozen=True)
class Vector:
    """Embedding vector with explicit dimension.

    Fields:
        values: The numeric embedding.
        dim: Dimension; validated against the index size.
    """
    values: List[float]
    dim: int


@dataclass(frozen=True)
class EmbeddedChunk:
    chunk: Chunk
    vector: Vector


@dataclass(frozen=True)
class Point:
    """A point to upsert into the vector store.

    Fields:
        id: Unsigned 64-bit id derived from (document_id, chunk_index).
        vector: Normalized embedding.
        payload: Chunk + document metadata.
    """
    id: int
    vector: Vector
    payload: Dict[str, Any]


@dataclass(frozen=True)
class SearchHit:
    """Vector search match returned by the index.

    Fields:
        id: Point ID.
        score: Cosine similarity; higher is better.
        payload: Returned payload.
    """
    id: str
    score: float
    payload: Dict[str, Any]

    @property
    def content(self) -> str:
        return str(self.payload.get("content", ""))

    @property
    def document_id(self) -> str:
        return str(self.payload.get("document_id", ""))

    @property
    def document_name(self) -> str:
        return str(self.payload.get("document_name", ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "score": self.score, "payload": self.payload}


@dataclass(frozen=True)
class Answer:
    query: str
    answer: str
    sources: List[SearchHit]
    confidence: str
    model: str = ""
    tokens_used: int = 0
    processing_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "answer": self.answer,
            "sources": [
                {
                    "document_id": s.document_id,
                    "document_name": s.document_name,
                    "content": s.content,
                    "score": s.score,
                }
                for s in self.sources
            ],
            "confidence": self.confidence,
            "metadata": {
                "model": self.model,
                "tokens_used": self.tokens_used,
                "processing_time_ms": self.processing_time_ms,
            },
        }


@dataclass(frozen=True)
class DocumentRef:
    """Listing entry of a file-storage provider."""
    id: str
    name: str
    mime_type: str
    size: int = 0
    modified: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChunkStatus:
    index: int
    point_id: int
    start_offset: int
    end_offset: int
    length: int
    status: str
    error: Optional[str] = None
