from __future__ import annotations

from ..dto import EnsureCollectionRequest
from ..embedding import EmbeddingOrchestrator
from ..vector_index import VectorIndex


class EnsureCollectionUseCase:
    """Use-case: validate the embedding dimension, then ensure the collection exists."""

    def __init__(self, embeddings: EmbeddingOrchestrator, index: VectorIndex) -> None:
        self._emb = embeddings
        self._index = index

    def execute(self, req: EnsureCollectionRequest) -> int:
        """
        Ensures that the collection exists with the index dimension and cosine distance.

        The embedding provider is probed once; a dimension that differs from the
        index is a fatal configuration error and nothing is created.

        Args:
            req: The request object carrying the recreate flag.

        Returns:
            int: The validated dimension.
        """
        dim = self._emb.check_dimension(self._index.dimension)
        self._index.ensure(recreate=req.recreate)
        return dim
