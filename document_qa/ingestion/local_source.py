from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Sequence, Tuple

from ..domain.errors import ContractError, ErrorKind, ProviderError
from ..domain.interfaces import DocumentSource
from ..domain.models import DocumentRef

DEFAULT_PATTERNS: Tuple[str, ...] = ("*.txt", "*.md")


def guess_mime_type(path: Path) -> str:
    if path.suffix.lower() == ".md":
        return "text/markdown"
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "text/plain"


class LocalDirectorySource(DocumentSource):
    """File-storage provider over a local directory; ids are POSIX paths relative to the root."""

    def __init__(self, root: Path, patterns: Sequence[str] = DEFAULT_PATTERNS) -> None:
        self.root = Path(root).expanduser().resolve()
        self.patterns = tuple(patterns) or DEFAULT_PATTERNS
        self.name = f"local:{self.root}"

    def _ref(self, p: Path) -> DocumentRef:
        stat = p.stat()
        return DocumentRef(
            id=p.relative_to(self.root).as_posix(),
            name=p.name,
            mime_type=guess_mime_type(p),
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(timespec="seconds"),
            meta={"source": str(p)},
        )

    def list_documents(self) -> List[DocumentRef]:
        """Load matching files (recursively) in a stable, sorted order."""
        if not self.root.is_dir():
            raise ContractError(f"Directory '{self.root}' not found", code=ErrorKind.INVALID_INPUT)
        seen = set()
        refs: List[DocumentRef] = []
        for pattern in self.patterns:
            for p in sorted(self.root.rglob(pattern)):
                if p.is_file() and p not in seen:
                    seen.add(p)
                    refs.append(self._ref(p))
        return sorted(refs, key=lambda r: r.id)

    def fetch(self, document_id: str) -> Tuple[bytes, str, DocumentRef]:
        p = (self.root / document_id).resolve()
        if self.root not in p.parents or not p.is_file():
            raise ContractError(f"Document '{document_id}' not found", code=ErrorKind.INVALID_INPUT)
        try:
            raw = p.read_bytes()
        except OSError as exc:
            raise ProviderError(f"Cannot read '{document_id}'", code=ErrorKind.TEMPORARY_FAILURE, cause=exc) from exc
        ref = self._ref(p)
        return raw, ref.mime_type, ref
