from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Union

from ..domain.models import ChunkStatus


@dataclass(frozen=True)
class EnsureCollectionRequest:
    recreate: bool = False


@dataclass(frozen=True)
class IngestRequest:
    document_id: str
    content: Union[str, bytes]
    mime_type: str = "text/plain"
    name: str = ""
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None
    source_id: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class IngestResult:
    document_id: str
    status: str
    chunks: List[ChunkStatus]
    total_chunks: int
    total_characters: int
    embedding_model: str
    dimensions: int
    removed_previous: int = 0
    processing_time_ms: int = 0

    @property
    def stored_chunks(self) -> int:
        return sum(1 for c in self.chunks if c.status == "stored")

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["stored_chunks"] = self.stored_chunks
        return out


@dataclass(frozen=True)
class QueryRequest:
    query: str
    max_results: int = 5
    filter: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class SearchRequest:
    query: str
    limit: int = 10
    threshold: Optional[float] = None
    filter: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class SyncResult:
    processed: int
    succeeded: int
    failed: int
    documents: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
