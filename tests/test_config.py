"""
Unit tests for environment and .env resolution of configuration values.
"""

import pytest

from document_qa.infrastructure import config


@pytest.mark.env
class TestEnvResolution:
    """Test process env first, then .env in CWD, then defaults."""

    def test_defaults(self, clean_environment, isolated_cwd):
        assert config.qdrant_url() == "http://localhost:6333"
        assert config.ollama_url() == "http://localhost:11434"
        assert config.collection_name() == "document_chunks"
        assert config.vector_size() == 1024
        assert config.chunk_size() == 1000
        assert config.chunk_overlap() == 200
        assert config.chunk_size_bounds() == (100, 10000)
        assert config.answer_relevance_threshold() == 0.3
        assert config.search_relevance_threshold() == 0.7
        assert config.max_context_length() == 4000
        assert config.offline_mode() is False
        assert config.qdrant_api_key() is None

    def test_dotenv_fallback(self, clean_environment, isolated_cwd):
        (isolated_cwd / ".env").write_text(
            "# comment\nQDRANT_URL='http://qdrant:6333/'\nDOCQA_VECTOR_SIZE=768\nDOCQA_OFFLINE=yes\n\nBROKEN LINE\n"
        )
        assert config.qdrant_url() == "http://qdrant:6333"
        assert config.vector_size() == 768
        assert config.offline_mode() is True

    def test_process_env_wins(self, clean_environment, isolated_cwd, monkeypatch):
        (isolated_cwd / ".env").write_text("EMBED_MODEL=from-dotenv\n")
        monkeypatch.setenv("EMBED_MODEL", "from-env")
        assert config.embed_model() == "from-env"

    def test_invalid_numbers_fall_back(self, clean_environment, isolated_cwd, monkeypatch):
        monkeypatch.setenv("CHUNK_SIZE", "large")
        monkeypatch.setenv("DOCQA_ANSWER_THRESHOLD", "high")
        assert config.chunk_size() == 1000
        assert config.answer_relevance_threshold() == 0.3

    def test_workers_and_attempts_at_least_one(self, clean_environment, isolated_cwd, monkeypatch):
        monkeypatch.setenv("DOCQA_RETRY_ATTEMPTS", "0")
        monkeypatch.setenv("DOCQA_BREAKER_THRESHOLD", "-3")
        assert config.retry_attempts() == 1
        assert config.breaker_threshold() == 1

    def test_backend_is_lowercased(self, clean_environment, isolated_cwd, monkeypatch):
        monkeypatch.setenv("DOCQA_VECTOR_BACKEND", "Memory")
        assert config.vector_backend() == "memory"
