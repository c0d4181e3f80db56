from __future__ import annotations

import operator
import threading
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ...domain.errors import ConfigurationError, ErrorKind, ProviderError
from ...domain.interfaces import VectorStore, is_range_condition
from ...domain.models import Vector, Point, SearchHit
from ...domain.vectors import cosine_similarity


_MISSING = object()

_RANGE_CHECKS = {"gt": operator.gt, "gte": operator.ge, "lt": operator.lt, "lte": operator.le}


def _lookup(payload: Dict[str, Any], dotted: str) -> Any:
    cur: Any = payload
    for part in dotted.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _in_range(actual: Any, condition: Dict[str, Any]) -> bool:
    if isinstance(actual, bool) or not isinstance(actual, (int, float)):
        return False
    return all(_RANGE_CHECKS[op](actual, bound) for op, bound in condition.items())


def matches_filter(payload: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    """Every filter key must hold (AND).

    Plain values compare for equality, list values match any member, range maps
    such as ``{"gte": 2}`` compare numerically, and dotted keys reach into nested
    payload fields.
    """
    if not filter:
        return True
    for k, v in filter.items():
        actual = _lookup(payload, k)
        if is_range_condition(v):
            if not _in_range(actual, v):
                return False
        elif isinstance(v, (list, tuple, set)):
            if actual not in v:
                return False
        elif actual != v:
            return False
    return True


class InMemoryVectorStore(VectorStore):
    """Process-local vector store with exact cosine search.

    Suitable for tests and offline runs; insertion order breaks score ties.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Any]] = {}

    def _collection(self, name: str) -> Dict[str, Any]:
        col = self._collections.get(name)
        if col is None:
            raise ProviderError(f"Collection {name} does not exist", code=ErrorKind.VECTOR_DB_ERROR)
        return col

    def ensure_collection(self, name: str, dim: int, distance: str = "Cosine", recreate: bool = False) -> None:
        with self._lock:
            col = self._collections.get(name)
            if col is not None and col["dim"] != dim:
                if not recreate:
                    raise ConfigurationError(
                        f"Collection {name} has size={col['dim']}, expected={dim}",
                        details={"collection": name, "existing": col["dim"], "expected": dim},
                    )
                col = None
            if col is None:
                self._collections[name] = {"dim": int(dim), "distance": distance, "points": {}}

    def get_collection_dim(self, name: str) -> Optional[int]:
        with self._lock:
            col = self._collections.get(name)
            return None if col is None else int(col["dim"])

    def drop_collection(self, name: str) -> bool:
        with self._lock:
            return self._collections.pop(name, None) is not None

    def upsert_points(self, name: str, points: List[Point]) -> dict:
        with self._lock:
            col = self._collection(name)
            for p in points:
                if p.vector.dim != col["dim"]:
                    raise ProviderError(
                        f"Vector dimension error: expected dim: {col['dim']}, got {p.vector.dim}",
                        code=ErrorKind.VECTOR_DB_ERROR,
                    )
                # Overwrite keeps the original insertion slot.
                col["points"][p.id] = (list(p.vector.values), dict(p.payload))
        return {"status": "ok", "result": {"status": "completed", "points": len(points)}}

    def retrieve(self, name: str, ids: Sequence[int]) -> List[Dict[str, Any]]:
        with self._lock:
            points = self._collection(name)["points"]
            return [{"id": i, "payload": dict(points[i][1])} for i in ids if i in points]

    def search(
        self,
        name: str,
        vector: Vector,
        limit: int = 5,
        with_payload: bool = True,
        score_threshold: Optional[float] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchHit]:
        with self._lock:
            items = list(self._collection(name)["points"].items())
        hits: List[SearchHit] = []
        for pid, (values, payload) in items:
            if not matches_filter(payload, filter):
                continue
            score = cosine_similarity(vector.values, values)
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(SearchHit(id=str(pid), score=score, payload=dict(payload) if with_payload else {}))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[: int(limit)]

    def count(self, name: str, filter: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            col = self._collections.get(name)
            if col is None:
                return 0
            return sum(1 for _, payload in col["points"].values() if matches_filter(payload, filter))

    def delete_by_filter(self, name: str, filter: Dict[str, Any]) -> None:
        with self._lock:
            points = self._collection(name)["points"]
            for pid in [pid for pid, (_, payload) in points.items() if matches_filter(payload, filter)]:
                del points[pid]

    def scroll_payloads(self, name: str, batch_size: int = 256) -> Iterator[Dict[str, Any]]:
        with self._lock:
            col = self._collections.get(name)
            payloads = [] if col is None else [dict(p) for _, p in col["points"].values()]
        yield from payloads
