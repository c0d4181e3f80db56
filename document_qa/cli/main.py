from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..application.service import DocumentQAService
from ..bootstrap import build_service
from ..domain.errors import ContractError, ErrorKind, error_code
from ..infrastructure.logging import configure_logging, get_logger
from ..infrastructure.memory.store import InMemoryVectorStore
from ..ingestion.local_source import DEFAULT_PATTERNS, LocalDirectorySource, guess_mime_type
from .parsers import build_parser

logger = get_logger("document_qa.cli")


def _print(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


def _parse_filters(raw: Sequence[str]) -> Optional[Dict[str, Any]]:
    """Turn repeated ``key=value`` flags into a payload filter (AND of equalities)."""
    out: Dict[str, Any] = {}
    for item in raw or []:
        if "=" not in item:
            raise ContractError(f"Invalid filter '{item}', expected key=value", code=ErrorKind.INVALID_INPUT)
        k, v = item.split("=", 1)
        k = k.strip()
        if not k:
            raise ContractError(f"Invalid filter '{item}', empty key", code=ErrorKind.INVALID_INPUT)
        out[k] = v.strip()
    return out or None


def run(argv: Optional[Sequence[str]] = None, service: Optional[DocumentQAService] = None) -> int:
    ap = build_parser()
    ns = ap.parse_args(list(argv or []))
    if ns.log_level:
        configure_logging(ns.log_level)

    try:
        if service is None:
            service = build_service(offline=ns.offline, store=InMemoryVectorStore() if ns.memory else None)
        return dispatch_commands(ns, service)
    except ContractError as ex:
        _print({"status": "error", "error": str(ex), "code": error_code(ex)})
        return 2
    except Exception as ex:  # keep CLI concise and user-friendly
        logger.error("Command failed | cmd=%s | error=%s: %s", ns.cmd, type(ex).__name__, ex)
        _print({"status": "error", "error": f"{type(ex).__name__}: {ex}", "code": error_code(ex)})
        return 3


def dispatch_commands(ns, service: DocumentQAService) -> int:
    """
    Dispatches CLI commands to the document Q&A service.

    Commands:
    - ensure-collection: validate the embedding dimension and create the collection
    - ingest: chunk, embed and store one document (file or inline text)
    - index-dir: ingest every matching file below a directory
    - query: answer a question with cited sources
    - search: raw similarity search over chunks
    - delete / reset / stats: index maintenance
    """
    if ns.cmd == "ensure-collection":
        dim = service.ensure_ready(recreate=bool(ns.recreate))
        _print({"status": "ok", "collection": service.index.collection, "dimension": dim})
        return 0
    if ns.cmd == "ingest":
        return ingest_document(ns, service)
    if ns.cmd == "index-dir":
        return index_directory(ns, service)
    if ns.cmd == "query":
        return answer_query(ns, service)
    if ns.cmd == "search":
        return search_chunks(ns, service)
    if ns.cmd == "delete":
        removed = service.delete_document(str(ns.id))
        _print({"status": "ok", "document_id": ns.id, "deleted_chunks": removed})
        return 0
    if ns.cmd == "reset":
        if not ns.yes:
            _print({"status": "error", "error": "Refusing to reset without --yes", "code": ErrorKind.INVALID_INPUT.value})
            return 2
        _print({"status": "ok", **service.reset_index()})
        return 0
    if ns.cmd == "stats":
        _print({"status": "ok", **service.stats(), "breakers": service.health()})
        return 0

    _print({"status": "error", "error": f"Unknown command: {ns.cmd}"})
    return 2


def ingest_document(ns, service: DocumentQAService) -> int:
    if ns.file:
        path = Path(ns.file).expanduser()
        if not path.is_file():
            raise ContractError(f"Input file '{path}' not found", code=ErrorKind.INVALID_INPUT)
        content: Any = path.read_bytes()
        mime_type = ns.mime_type or guess_mime_type(path)
        name = ns.name or path.name
    else:
        content = str(ns.text)
        mime_type = ns.mime_type or "text/plain"
        name = ns.name
    service.ensure_ready()
    result = service.ingest(
        str(ns.id),
        content,
        mime_type=mime_type,
        chunk_size=ns.chunk_size,
        chunk_overlap=ns.chunk_overlap,
        name=name,
    )
    _print({"status": "ok", **result.to_dict()})
    return 0


def index_directory(ns, service: DocumentQAService) -> int:
    """
    Ingest every file below ``--dir`` matching the patterns (default *.txt, *.md).
    Document ids are paths relative to the directory.
    """
    patterns: List[str] = list(ns.pattern or []) or list(DEFAULT_PATTERNS)
    source = LocalDirectorySource(Path(ns.dir), patterns)
    service.ensure_ready()
    logger.info("Index request | dir=%s | patterns=%s", source.root, ",".join(patterns))
    result = service.sync(source, max_items=ns.max_items)
    logger.info("Index completed | processed=%d | failed=%d", result.processed, result.failed)
    _print({"status": "ok" if not result.failed else "partial", **result.to_dict()})
    return 0


def answer_query(ns, service: DocumentQAService) -> int:
    if ns.memory:
        service.ensure_ready()
    answer = service.query(str(ns.q), max_results=ns.k, filter=_parse_filters(ns.filter))
    _print({"status": "ok", **answer.to_dict()})
    return 0


def search_chunks(ns, service: DocumentQAService) -> int:
    if ns.memory:
        service.ensure_ready()
    hits = service.search(str(ns.q), limit=int(ns.k), threshold=ns.threshold)
    _print({"status": "ok", "query": ns.q, "results": [h.to_dict() for h in hits], "count": len(hits)})
    return 0


def main() -> int:
    import sys
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
