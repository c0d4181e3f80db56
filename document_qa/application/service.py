from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from .chunking import TextChunker
from .dto import EnsureCollectionRequest, IngestRequest, IngestResult, QueryRequest, SearchRequest, SyncResult
from .embedding import EmbeddingOrchestrator
from .vector_index import VectorIndex
from .use_cases.answer_question import AnswerQuestionUseCase
from .use_cases.ensure_collection import EnsureCollectionUseCase
from .use_cases.ingest_document import IngestDocumentUseCase
from .use_cases.manage_index import DeleteDocumentUseCase, IndexStatsUseCase, ResetIndexUseCase
from .use_cases.search_chunks import SearchChunksUseCase
from .use_cases.sync_source import SyncSourceUseCase
from ..domain.interfaces import DocumentSource
from ..domain.models import Answer, SearchHit
from ..infrastructure.resilience import CircuitBreaker


class DocumentQAService:
    """Facade over the retrieval pipeline, called by the CLI and the agent-tool surface.

    Holds no state of its own beyond the injected collaborators; build one per
    process with ``document_qa.bootstrap.build_service`` so every caller shares
    the same circuit breakers.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embeddings: EmbeddingOrchestrator,
        index: VectorIndex,
        answerer: AnswerQuestionUseCase,
        searcher: SearchChunksUseCase,
        ingester: Optional[IngestDocumentUseCase] = None,
        syncer: Optional[SyncSourceUseCase] = None,
        breakers: Optional[Dict[str, CircuitBreaker]] = None,
        default_max_results: int = 5,
    ) -> None:
        self.chunker = chunker
        self.embeddings = embeddings
        self.index = index
        self._answerer = answerer
        self._searcher = searcher
        self._ingest = ingester or IngestDocumentUseCase(chunker, embeddings, index)
        self._syncer = syncer or SyncSourceUseCase(self._ingest)
        self.breakers = dict(breakers or {})
        self.default_max_results = int(default_max_results)

    def ensure_ready(self, recreate: bool = False) -> int:
        return EnsureCollectionUseCase(self.embeddings, self.index).execute(EnsureCollectionRequest(recreate=recreate))

    def ingest(
        self,
        document_id: str,
        content: Union[str, bytes],
        mime_type: str = "text/plain",
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        name: str = "",
    ) -> IngestResult:
        return self._ingest.execute(
            IngestRequest(
                document_id=document_id,
                content=content,
                mime_type=mime_type,
                name=name,
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
            )
        )

    def query(self, text: str, max_results: Optional[int] = None, filter: Optional[Dict[str, Any]] = None) -> Answer:
        return self._answerer.execute(
            QueryRequest(query=text, max_results=max_results or self.default_max_results, filter=filter)
        )

    def search(
        self,
        text: str,
        limit: int = 10,
        threshold: Optional[float] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchHit]:
        return self._searcher.execute(SearchRequest(query=text, limit=limit, threshold=threshold, filter=filter))

    def delete_document(self, document_id: str) -> int:
        return DeleteDocumentUseCase(self.index).execute(document_id)

    def reset_index(self) -> Dict[str, int]:
        return ResetIndexUseCase(self.index).execute()

    def stats(self) -> Dict[str, Any]:
        return IndexStatsUseCase(self.index).execute()

    def sync(self, source: DocumentSource, max_items: Optional[int] = None) -> SyncResult:
        return self._syncer.execute(source, max_items=max_items)

    def health(self) -> Dict[str, Any]:
        return {name: b.snapshot() for name, b in self.breakers.items()}
