"""
Pytest configuration and fixtures for document Q&A tests.

Provides offline providers, an in-process vector store, a fake clock and a
recording sleep so retry and breaker timing can be asserted without waiting.
"""

import os
from pathlib import Path
from typing import List

import pytest

from document_qa.application.chunking import TextChunker
from document_qa.application.embedding import EmbeddingOrchestrator
from document_qa.application.service import DocumentQAService
from document_qa.application.use_cases.answer_question import AnswerQuestionUseCase
from document_qa.application.use_cases.search_chunks import SearchChunksUseCase
from document_qa.application.vector_index import VectorIndex
from document_qa.infrastructure.memory.store import InMemoryVectorStore
from document_qa.infrastructure.offline import CannedGenerationService, HashEmbeddingService

TEST_DIM = 32


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Drop-in for ``time.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def memory_store():
    """In-process vector store."""
    return InMemoryVectorStore()


@pytest.fixture
def hash_embedder():
    return HashEmbeddingService(TEST_DIM)


@pytest.fixture
def orchestrator(hash_embedder, sleeper):
    return EmbeddingOrchestrator(provider=hash_embedder, dimension=TEST_DIM, sleep=sleeper)


@pytest.fixture
def vector_index(memory_store, sleeper):
    index = VectorIndex(memory_store, "test_chunks", TEST_DIM, sleep=sleeper)
    index.ensure()
    return index


@pytest.fixture
def offline_service(orchestrator, vector_index, sleeper):
    """Service wired with offline providers and the in-memory store."""
    answerer = AnswerQuestionUseCase(
        orchestrator,
        vector_index,
        generator=None,
        fallback=CannedGenerationService(),
        sleep=sleeper,
    )
    searcher = SearchChunksUseCase(orchestrator, vector_index)
    return DocumentQAService(TextChunker(), orchestrator, vector_index, answerer, searcher)


@pytest.fixture
def temp_documents(tmp_path):
    """Temporary directory with sample text and markdown documents."""
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "intro.txt").write_text("Vector search finds similar text. It uses embeddings.")
    (docs / "guide.md").write_text("# Guide\n\nChunking splits long documents into pieces.")
    (docs / "nested").mkdir()
    (docs / "nested" / "deep.md").write_text("# Nested\n\nNested content lives here.")
    (docs / "ignored.bin").write_bytes(b"\x00\x01")
    yield docs


@pytest.fixture
def clean_environment():
    """Clean environment variables for testing."""
    env_vars_to_clean = [
        "QDRANT_URL",
        "QDRANT_API_KEY",
        "OLLAMA_URL",
        "EMBED_MODEL",
        "LLM_MODEL",
        "CHUNK_SIZE",
        "CHUNK_OVERLAP",
        "DOCQA_COLLECTION",
        "DOCQA_VECTOR_SIZE",
        "DOCQA_VECTOR_BACKEND",
        "DOCQA_OFFLINE",
        "DOCQA_ANSWER_THRESHOLD",
        "DOCQA_SEARCH_THRESHOLD",
        "DOCQA_RETRY_ATTEMPTS",
        "DOCQA_BREAKER_THRESHOLD",
    ]

    original_env = {}
    for var in env_vars_to_clean:
        if var in os.environ:
            original_env[var] = os.environ[var]
            del os.environ[var]

    yield

    for var in env_vars_to_clean:
        os.environ.pop(var, None)
    for var, value in original_env.items():
        os.environ[var] = value


@pytest.fixture
def isolated_cwd(tmp_path, monkeypatch):
    """Run in an empty directory so no stray .env leaks into config lookups."""
    monkeypatch.chdir(tmp_path)
    return Path(tmp_path)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "cli: mark test as CLI command test"
    )
    config.addinivalue_line(
        "markers", "env: mark test as environment resolution test"
    )
