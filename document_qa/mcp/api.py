from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence, Union

from ..application.service import DocumentQAService
from ..bootstrap import build_service
from ..domain.errors import ContractError, ErrorKind, error_code
from ..infrastructure.logging import get_logger

logger = get_logger("document_qa.mcp.api")


def _error(exc: BaseException) -> Dict[str, Any]:
    out: Dict[str, Any] = {"status": "error", "error": str(exc), "code": error_code(exc)}
    details = getattr(exc, "details", None)
    if details:
        out["details"] = details
    return out


def _tool(name: str, fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Run one agent tool; every failure becomes a structured error payload."""
    try:
        return {"status": "ok", **fn()}
    except Exception as exc:
        logger.error("Tool failed | tool=%s | code=%s | error=%s", name, error_code(exc), exc)
        return _error(exc)


def _document_filter(document_ids: Optional[Sequence[str]]) -> Optional[Dict[str, Any]]:
    ids = [str(d).strip() for d in (document_ids or []) if str(d).strip()]
    if not ids:
        return None
    return {"document_id": ids[0] if len(ids) == 1 else ids}


def document_chunk_and_embed(
    document_id: str,
    content: Union[str, bytes],
    mime_type: str = "text/plain",
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
    name: str = "",
    service: Optional[DocumentQAService] = None,
) -> Dict[str, Any]:
    """Chunk a document, embed every chunk and store the vectors (replaces previous chunks)."""

    def _run() -> Dict[str, Any]:
        svc = service or build_service()
        svc.ensure_ready()
        return svc.ingest(document_id, content, mime_type, chunk_size, chunk_overlap, name=name).to_dict()

    return _tool("document_chunk_and_embed", _run)


def vector_similarity_search(
    query: str,
    limit: int = 10,
    threshold: Optional[float] = None,
    document_id: Optional[str] = None,
    service: Optional[DocumentQAService] = None,
) -> Dict[str, Any]:
    def _run() -> Dict[str, Any]:
        svc = service or build_service()
        hits = svc.search(query, limit=limit, threshold=threshold, filter=_document_filter([document_id] if document_id else None))
        return {"query": query, "results": [h.to_dict() for h in hits], "count": len(hits)}

    return _tool("vector_similarity_search", _run)


def document_qa_query(
    query: str,
    max_results: Optional[int] = None,
    document_ids: Optional[Sequence[str]] = None,
    service: Optional[DocumentQAService] = None,
) -> Dict[str, Any]:
    """Answer a question from the indexed documents, with cited sources and a confidence flag."""

    def _run() -> Dict[str, Any]:
        svc = service or build_service()
        answer = svc.query(query, max_results=max_results, filter=_document_filter(document_ids))
        return answer.to_dict()

    return _tool("document_qa_query", _run)


def delete_document(document_id: str, service: Optional[DocumentQAService] = None) -> Dict[str, Any]:
    def _run() -> Dict[str, Any]:
        svc = service or build_service()
        return {"document_id": document_id, "deleted_chunks": svc.delete_document(document_id)}

    return _tool("delete_document", _run)


def reset_knowledge_base(confirm: bool = False, service: Optional[DocumentQAService] = None) -> Dict[str, Any]:
    """Drop every document and vector; requires ``confirm=True``."""

    def _run() -> Dict[str, Any]:
        if not confirm:
            raise ContractError("Reset requires confirm=true", code=ErrorKind.INVALID_INPUT)
        svc = service or build_service()
        return svc.reset_index()

    return _tool("reset_knowledge_base", _run)


def vector_stats(service: Optional[DocumentQAService] = None) -> Dict[str, Any]:
    def _run() -> Dict[str, Any]:
        svc = service or build_service()
        return {**svc.stats(), "breakers": svc.health()}

    return _tool("vector_stats", _run)
