"""Deterministic providers used when no live model is configured or reachable.

Both are pure functions of their input so the pipeline stays exercisable
without credentials: the same text always maps to the same vector, the same
question to the same answer.
"""
from __future__ import annotations

import math
from typing import List

from ..domain.interfaces import EmbeddingService, GenerationService
from ..domain.models import Vector

_HASH_MOD = 2 ** 31 - 1


def char_code_hash(text: str) -> int:
    """Position-sensitive polynomial hash over character codes."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) % _HASH_MOD
    return h


def char_code_sum(text: str) -> int:
    return sum(ord(ch) for ch in text)


class HashEmbeddingService(EmbeddingService):
    """Pseudo-embedding derived from a character-code hash of the text."""

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dim = int(dimension)
        self.name = "offline/hash-embedding"

    def embed_texts(self, texts: List[str]) -> List[Vector]:
        return [self._embed(t) for t in texts]

    def _embed(self, text: str) -> Vector:
        seed = char_code_hash(text)
        values = [
            math.sin(seed * (i + 1) * 0.1) * math.cos(seed * (i + 1) * 0.05)
            for i in range(self._dim)
        ]
        return Vector(values=values, dim=self._dim)

    def get_dimension(self) -> int:
        return self._dim


CANNED_ANSWERS = (
    'Based on the provided documents, the answer to "{q}" is that document retrieval systems use vector '
    "embeddings to find relevant information. The system converts text into numerical vectors and then finds "
    "similar vectors when a query is made.",
    'According to the information in the documents, "{q}" relates to semantic search technology. This technology '
    "allows finding documents based on meaning rather than just keywords.",
    'The documents suggest that "{q}" involves chunking text into smaller pieces before processing. This helps '
    "manage large documents and improves retrieval accuracy.",
    'From the context provided, "{q}" is addressed by using machine learning models to understand natural '
    "language. These models can interpret questions and find relevant information in a document collection.",
)


class CannedGenerationService(GenerationService):
    """Canned answer selected by the character-code sum of the question."""

    name = "offline/canned"

    def generate(self, question: str, context: str) -> str:
        q = question or "unknown query"
        return CANNED_ANSWERS[char_code_sum(q) % len(CANNED_ANSWERS)].format(q=q)
