from __future__ import annotations

from contextlib import suppress
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ...domain.errors import ConfigurationError, ErrorKind
from ...domain.interfaces import VectorStore, is_range_condition
from ...domain.models import Vector, Point, SearchHit
from ..config import qdrant_url, qdrant_api_key, http_timeout_seconds
from ..http import request_json


def to_qdrant_filter(filter: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Translate a flat map into a Qdrant ``must`` filter (logical AND).

    List values become ``match.any`` and ``{"gte": n}`` style maps become ``range``.
    """
    if not filter:
        return None
    must = []
    for k, v in filter.items():
        if is_range_condition(v):
            must.append({"key": str(k), "range": dict(v)})
            continue
        match = {"any": list(v)} if isinstance(v, (list, tuple, set)) else {"value": v}
        must.append({"key": str(k), "match": match})
    return {"must": must}


class QdrantVectorStore(VectorStore):
    """Vector store adapter for Qdrant REST."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self._base = (base_url or qdrant_url()).rstrip("/")
        self._api_key = api_key if api_key is not None else qdrant_api_key()
        self._timeout = timeout if timeout is not None else http_timeout_seconds()

    def _call(self, method: str, path: str, body: Optional[Dict[str, Any]] = None, allow_404: bool = False) -> Optional[Dict[str, Any]]:
        headers = {"api-key": self._api_key} if self._api_key else None
        return request_json(
            method,
            f"{self._base}{path}",
            json=body,
            headers=headers,
            timeout=self._timeout,
            default=ErrorKind.VECTOR_DB_ERROR,
            allow_404=allow_404,
        )

    def ensure_collection(self, name: str, dim: int, distance: str = "Cosine", recreate: bool = False) -> None:
        existing = self.get_collection_dim(name)
        if existing is None:
            self._create(name, dim, distance)
            return
        if existing != dim:
            if not recreate:
                raise ConfigurationError(
                    f"Collection {name} has size={existing}, expected={dim}",
                    details={"collection": name, "existing": existing, "expected": dim},
                )
            self.drop_collection(name)
            self._create(name, dim, distance)

    def _create(self, name: str, dim: int, distance: str) -> None:
        self._call("PUT", f"/collections/{name}", {"vectors": {"size": int(dim), "distance": distance}})

    def get_collection_dim(self, name: str) -> Optional[int]:
        """Return the embedding dimension for a collection, if determinable."""
        data = self._call("GET", f"/collections/{name}", allow_404=True)
        if data is None:
            return None
        try:
            params = data["result"]["config"]["params"]["vectors"]
        except (KeyError, TypeError):
            return None
        # Single-vector config
        if isinstance(params, dict) and "size" in params:
            return int(params["size"])
        # Multi-vector config (map of name->config)
        if isinstance(params, dict):
            for v in params.values():
                if isinstance(v, dict) and v.get("size") is not None:
                    with suppress(TypeError, ValueError):
                        return int(v["size"])
        return None

    def drop_collection(self, name: str) -> bool:
        data = self._call("DELETE", f"/collections/{name}", allow_404=True)
        return data is not None

    def upsert_points(self, name: str, points: List[Point]) -> dict:
        body = {
            "points": [
                {"id": p.id, "vector": p.vector.values, "payload": p.payload}
                for p in points
            ]
        }
        return self._call("PUT", f"/collections/{name}/points?wait=true", body) or {}

    def retrieve(self, name: str, ids: Sequence[int]) -> List[Dict[str, Any]]:
        body = {"ids": list(ids), "with_payload": True, "with_vector": False}
        data = self._call("POST", f"/collections/{name}/points", body) or {}
        return [
            {"id": it.get("id"), "payload": it.get("payload") or {}}
            for it in (data.get("result") or [])
        ]

    def search(
        self,
        name: str,
        vector: Vector,
        limit: int = 5,
        with_payload: bool = True,
        score_threshold: Optional[float] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchHit]:
        body: Dict[str, Any] = {
            "vector": vector.values,
            "limit": int(limit),
            "with_vector": False,
            "with_payload": with_payload,
        }
        if score_threshold is not None:
            body["score_threshold"] = float(score_threshold)
        qfilter = to_qdrant_filter(filter)
        if qfilter:
            body["filter"] = qfilter
        data = self._call("POST", f"/collections/{name}/points/search", body) or {}
        return [
            SearchHit(
                id=str(it.get("id")),
                score=float(it.get("score", 0.0)),
                payload=it.get("payload") or {},
            )
            for it in (data.get("result") or [])
        ]

    def count(self, name: str, filter: Optional[Dict[str, Any]] = None) -> int:
        body: Dict[str, Any] = {"exact": True}
        qfilter = to_qdrant_filter(filter)
        if qfilter:
            body["filter"] = qfilter
        data = self._call("POST", f"/collections/{name}/points/count", body, allow_404=True)
        if data is None:
            return 0
        return int((data.get("result") or {}).get("count", 0))

    def delete_by_filter(self, name: str, filter: Dict[str, Any]) -> None:
        self._call("POST", f"/collections/{name}/points/delete?wait=true", {"filter": to_qdrant_filter(filter)})

    def scroll_payloads(self, name: str, batch_size: int = 256) -> Iterator[Dict[str, Any]]:
        offset: Any = None
        while True:
            body: Dict[str, Any] = {"limit": int(batch_size), "with_payload": True, "with_vector": False}
            if offset is not None:
                body["offset"] = offset
            data = self._call("POST", f"/collections/{name}/points/scroll", body, allow_404=True)
            if data is None:
                return
            result = data.get("result") or {}
            for it in result.get("points") or []:
                yield it.get("payload") or {}
            offset = result.get("next_page_offset")
            if offset is None:
                return

    def list_collections(self) -> List[str]:
        """List collection names present in Qdrant."""
        data = self._call("GET", "/collections") or {}
        cols = []
        for it in (data.get("result", {}).get("collections", []) or []):
            name = str(it.get("name", "")).strip()
            if name:
                cols.append(name)
        return sorted(set(cols))
