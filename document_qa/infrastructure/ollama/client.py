from __future__ import annotations

from typing import List, Optional

from ...domain.errors import ErrorKind, ProviderError
from ...domain.interfaces import EmbeddingService, GenerationService
from ...domain.models import Vector
from ..config import ollama_url, embed_model, llm_model, http_timeout_seconds
from ..http import request_json

ANSWER_PROMPT = """Based on the following context, please answer the question. If the answer cannot be found in the context, please say so.

Context:
{context}

Question: {question}

Answer:"""


class OllamaEmbeddingService(EmbeddingService):
    """Embedding adapter for Ollama /api/embeddings."""

    def __init__(self, base_url: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self._base = (base_url or ollama_url()).rstrip("/")
        self._model = model or embed_model()
        self._timeout = timeout if timeout is not None else http_timeout_seconds()
        self.name = f"ollama/{self._model}"

    def embed_texts(self, texts: List[str]) -> List[Vector]:
        if not texts:
            return []
        url = f"{self._base}/api/embeddings"
        out: List[Vector] = []
        for t in texts:
            data = request_json(
                "POST",
                url,
                json={"model": self._model, "prompt": t},
                timeout=self._timeout,
                default=ErrorKind.EMBEDDING_ERROR,
            ) or {}
            raw = data.get("embedding")
            if not isinstance(raw, list) or not raw:
                raise ProviderError("Ollama returned no embedding", code=ErrorKind.EMBEDDING_ERROR, details={"model": self._model})
            values = [float(x) for x in raw]
            out.append(Vector(values=values, dim=len(values)))
        return out

    def get_dimension(self) -> int:
        vecs = self.embed_texts(["probe"])
        if not vecs:
            raise ProviderError("Embedding dimension probe failed (no vectors)", code=ErrorKind.EMBEDDING_ERROR)
        return vecs[0].dim


class OllamaGenerationService(GenerationService):
    """Generation adapter for Ollama /api/generate (non-streaming)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> None:
        self._base = (base_url or ollama_url()).rstrip("/")
        self._model = model or llm_model()
        self._timeout = timeout if timeout is not None else http_timeout_seconds()
        self._temperature = temperature
        self._max_tokens = max_tokens
        self.name = f"ollama/{self._model}"

    def generate(self, question: str, context: str) -> str:
        body = {
            "model": self._model,
            "prompt": ANSWER_PROMPT.format(context=context, question=question),
            "stream": False,
            "options": {"temperature": self._temperature, "num_predict": self._max_tokens},
        }
        data = request_json(
            "POST",
            f"{self._base}/api/generate",
            json=body,
            timeout=self._timeout,
            default=ErrorKind.GENERATION_ERROR,
        ) or {}
        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise ProviderError("Ollama returned an empty completion", code=ErrorKind.GENERATION_ERROR, details={"model": self._model})
        return text.strip()
