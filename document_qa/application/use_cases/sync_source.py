from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional, Any

from ..dto import IngestRequest, SyncResult
from .ingest_document import IngestDocumentUseCase
from ...domain.errors import error_code
from ...domain.interfaces import DocumentSource
from ...infrastructure.logging import get_logger
from ...infrastructure.resilience import CircuitBreaker, RetryPolicy, guarded_call

logger = get_logger("document_qa.sync")


class SyncSourceUseCase:
    """Use-case: ingest every document listed by a file-storage provider.

    Each document is fetched through the file-storage breaker and retry policy
    and ingested independently; the result carries one status entry per
    document, failures included.
    """

    def __init__(
        self,
        ingest: IngestDocumentUseCase,
        policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._ingest = ingest
        self._policy = policy
        self._breaker = breaker
        self._sleep = sleep

    def execute(self, source: DocumentSource, max_items: Optional[int] = None) -> SyncResult:
        refs = guarded_call(source.list_documents, self._policy, self._breaker, sleep=self._sleep, label="source.list")
        if max_items:
            refs = refs[: int(max_items)]
        logger.info("Sync request | source=%s | candidates=%d", getattr(source, "name", "source"), len(refs))
        entries: List[Dict[str, Any]] = []
        for ref in refs:
            try:
                raw, mime_type, meta = guarded_call(
                    lambda: source.fetch(ref.id), self._policy, self._breaker, sleep=self._sleep, label="source.fetch"
                )
                result = self._ingest.execute(
                    IngestRequest(
                        document_id=ref.id,
                        content=raw,
                        mime_type=mime_type,
                        name=meta.name,
                        source_id=str(meta.meta.get("source", ref.id)),
                        updated_at=meta.modified,
                    )
                )
                entries.append(
                    {
                        "document_id": ref.id,
                        "status": result.status,
                        "chunks": result.total_chunks,
                        "stored_chunks": result.stored_chunks,
                    }
                )
            except Exception as exc:
                logger.error("Sync failed | document=%s | cause=%s", ref.id, exc)
                entries.append({"document_id": ref.id, "status": "failed", "code": error_code(exc), "error": str(exc)})
        failed = sum(1 for e in entries if e["status"] == "failed")
        logger.info("Sync completed | processed=%d | failed=%d", len(entries), failed)
        return SyncResult(processed=len(entries), succeeded=len(entries) - failed, failed=failed, documents=entries)
