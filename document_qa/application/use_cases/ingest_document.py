from __future__ import annotations

import time
from typing import List

from ..chunking import TextChunker
from ..dto import IngestRequest, IngestResult
from ..embedding import EmbeddingOrchestrator
from ..vector_index import VectorIndex, build_point
from ...domain.errors import ContractError, ErrorKind, VectorStoreError
from ...domain.models import ChunkStatus, Document, EmbeddedChunk, Point
from ...infrastructure.logging import get_logger

logger = get_logger("document_qa.ingest")


def decode_content(content: object) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content) if content is not None else ""


class IngestDocumentUseCase:
    """Use-case: chunk a document, embed every chunk, and store it as the document's current version.

    A failed write never loses the previous version: chunks left over from it
    are pruned only after at least one chunk of the new version is stored.
    """

    def __init__(self, chunker: TextChunker, embeddings: EmbeddingOrchestrator, index: VectorIndex) -> None:
        self._chunker = chunker
        self._emb = embeddings
        self._index = index

    def execute(self, req: IngestRequest) -> IngestResult:
        started = time.monotonic()
        if not str(req.document_id or "").strip():
            raise ContractError("documentId is required", code=ErrorKind.INVALID_INPUT, details={"missing": ["documentId"]})
        text = decode_content(req.content)
        chunks = self._chunker.chunk(text, req.document_id, req.chunk_size, req.chunk_overlap)
        document = Document(
            id=req.document_id,
            name=req.name or req.document_id,
            content=text,
            mime_type=req.mime_type or "text/plain",
            size=len(req.content) if isinstance(req.content, bytes) else len(text.encode("utf-8")),
            source_id=req.source_id,
            created_at=req.created_at,
            updated_at=req.updated_at,
        )
        logger.info("Ingest request | document=%s | chars=%d | chunks=%d", req.document_id, len(text), len(chunks))

        vectors = self._emb.embed_many([c.content for c in chunks])
        embedded = [EmbeddedChunk(chunk=c, vector=v) for c, v in zip(chunks, vectors)]
        points: List[Point] = [build_point(e.chunk, e.vector, document) for e in embedded]
        # Point ids depend only on (document, chunk index), so writing the new
        # version overwrites the previous one in place.
        report = self._index.upsert_points(points)

        statuses = [
            ChunkStatus(
                index=c.index,
                point_id=p.id,
                start_offset=c.start_offset,
                end_offset=c.end_offset,
                length=len(c.content),
                status="failed" if p.id in report.failed else "stored",
                error=(report.failed.get(p.id) or {}).get("code"),
            )
            for c, p in zip(chunks, points)
        ]
        if not report.stored:
            raise VectorStoreError(
                "Failed to store vectors in database",
                details={"document_id": req.document_id, "report": report.to_dict()},
            )
        failed_indexes = [s.index for s in statuses if s.status == "failed"]
        removed = self._index.prune(req.document_id, keep=len(chunks), drop=failed_indexes)
        status = "ok" if report.ok else "partial"
        elapsed = int((time.monotonic() - started) * 1000)
        logger.info(
            "Ingest completed | document=%s | status=%s | stored=%d/%d | ms=%d",
            req.document_id,
            status,
            len(report.stored),
            len(points),
            elapsed,
        )
        return IngestResult(
            document_id=req.document_id,
            status=status,
            chunks=statuses,
            total_chunks=len(chunks),
            total_characters=len(text),
            embedding_model=self._emb.model_name,
            dimensions=self._emb.dimension,
            removed_previous=removed,
            processing_time_ms=elapsed,
        )
