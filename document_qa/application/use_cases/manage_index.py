from __future__ import annotations

from typing import Any, Dict

from ..vector_index import VectorIndex
from ...domain.errors import ContractError, ErrorKind
from ...infrastructure.logging import get_logger

logger = get_logger("document_qa.manage")


class DeleteDocumentUseCase:
    """Use-case: purge every chunk of one document."""

    def __init__(self, index: VectorIndex) -> None:
        self._index = index

    def execute(self, document_id: str) -> int:
        if not str(document_id or "").strip():
            raise ContractError("documentId is required", code=ErrorKind.INVALID_INPUT, details={"missing": ["documentId"]})
        return self._index.delete(document_id)


class ResetIndexUseCase:
    """Use-case: clear the whole knowledge base (drop and recreate the collection)."""

    def __init__(self, index: VectorIndex) -> None:
        self._index = index

    def execute(self) -> Dict[str, int]:
        logger.info("Knowledge base reset requested | collection=%s", self._index.collection)
        return self._index.reset()


class IndexStatsUseCase:
    def __init__(self, index: VectorIndex) -> None:
        self._index = index

    def execute(self) -> Dict[str, Any]:
        return self._index.stats()
