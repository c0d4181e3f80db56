from __future__ import annotations

import contextlib
import os
from pathlib import Path
from typing import Dict, Optional


def parse_dotenv(dotenv_path: Path) -> Dict[str, str]:
    """Parse a simple .env file (KEY=VALUE per line, '#' comments, quotes stripped)."""
    env: Dict[str, str] = {}
    if dotenv_path.exists():
        with contextlib.suppress(OSError):
            for raw in dotenv_path.read_text(encoding="utf-8", errors="ignore").splitlines():
                s = raw.strip()
                if not s or s.startswith("#") or "=" not in s:
                    continue
                k, v = s.split("=", 1)
                k = k.strip()
                v = v.strip().strip('"').strip("'")
                if k:
                    env[k] = v
    return env


def env_get(name: str) -> Optional[str]:
    """Get environment value from process env, falling back to .env in CWD."""
    v = os.getenv(name)
    if v is not None and v.strip():
        return v.strip()
    v2 = parse_dotenv(Path(".env")).get(name)
    return v2.strip() if v2 is not None and v2.strip() else None


def env_str(name: str, default: str) -> str:
    return env_get(name) or default


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name, str(default)))
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(env_str(name, str(default)))
    except ValueError:
        return default


def env_flag(name: str, default: bool = False) -> bool:
    raw = env_get(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


# --- External services ---

def qdrant_url() -> str:
    return env_str("QDRANT_URL", "http://localhost:6333").rstrip("/")


def qdrant_api_key() -> Optional[str]:
    return env_get("QDRANT_API_KEY")


def collection_name() -> str:
    return env_str("DOCQA_COLLECTION", "document_chunks")


def vector_size() -> int:
    """Index dimension; must match the embedding model (mxbai-embed-large -> 1024)."""
    return env_int("DOCQA_VECTOR_SIZE", 1024)


def vector_backend() -> str:
    """``qdrant`` (default) or ``memory`` for a process-local index."""
    return env_str("DOCQA_VECTOR_BACKEND", "qdrant").lower()


def ollama_url() -> str:
    return env_str("OLLAMA_URL", "http://localhost:11434").rstrip("/")


def embed_model() -> str:
    return env_str("EMBED_MODEL", "mxbai-embed-large")


def llm_model() -> str:
    return env_str("LLM_MODEL", "llama3.2")


def offline_mode() -> bool:
    """When set, no embedding/generation provider is configured; offline providers answer."""
    return env_flag("DOCQA_OFFLINE", False)


def http_timeout_seconds() -> float:
    return env_float("DOCQA_HTTP_TIMEOUT", 15.0)


# --- Chunking ---

def chunk_size() -> int:
    return env_int("CHUNK_SIZE", 1000)


def chunk_overlap() -> int:
    return env_int("CHUNK_OVERLAP", 200)


def chunk_size_bounds() -> tuple[int, int]:
    return env_int("CHUNK_SIZE_MIN", 100), env_int("CHUNK_SIZE_MAX", 10000)


# --- Retrieval ---

def answer_relevance_threshold() -> float:
    """Minimum score for a hit to be used as answer context."""
    return env_float("DOCQA_ANSWER_THRESHOLD", 0.3)


def search_relevance_threshold() -> float:
    """Minimum score for the direct similarity-search tool."""
    return env_float("DOCQA_SEARCH_THRESHOLD", 0.7)


def max_context_length() -> int:
    return env_int("DOCQA_MAX_CONTEXT", 4000)


def max_results() -> int:
    return env_int("DOCQA_MAX_RESULTS", 5)


# --- Concurrency and resilience ---

def embed_workers() -> int:
    return max(1, env_int("DOCQA_EMBED_WORKERS", 4))


def upsert_workers() -> int:
    return max(1, env_int("DOCQA_UPSERT_WORKERS", 4))


def retry_attempts() -> int:
    return max(1, env_int("DOCQA_RETRY_ATTEMPTS", 3))


def retry_base_delay() -> float:
    return env_float("DOCQA_RETRY_BASE_DELAY", 1.0)


def retry_max_delay() -> float:
    return env_float("DOCQA_RETRY_MAX_DELAY", 10.0)


def breaker_threshold() -> int:
    return max(1, env_int("DOCQA_BREAKER_THRESHOLD", 5))


def breaker_recovery_seconds() -> float:
    return env_float("DOCQA_BREAKER_RECOVERY", 30.0)
