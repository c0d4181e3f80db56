from __future__ import annotations

from typing import List

from ..dto import SearchRequest
from ..embedding import EmbeddingOrchestrator
from ..vector_index import VectorIndex
from ...domain.errors import ContractError, ErrorKind
from ...domain.models import SearchHit


class SearchChunksUseCase:
    """Use-case: embed query string and search the index, keeping hits at or above the threshold."""

    def __init__(self, embeddings: EmbeddingOrchestrator, index: VectorIndex, default_threshold: float = 0.7) -> None:
        self._emb = embeddings
        self._index = index
        self.default_threshold = float(default_threshold)

    def execute(self, req: SearchRequest) -> List[SearchHit]:
        if not str(req.query or "").strip():
            raise ContractError("Query is required", code=ErrorKind.INVALID_INPUT, details={"missing": ["query"]})
        threshold = self.default_threshold if req.threshold is None else float(req.threshold)
        vec = self._emb.embed(req.query)
        hits = self._index.search(vec, limit=req.limit, filter=req.filter)
        return [h for h in hits if h.score >= threshold]
