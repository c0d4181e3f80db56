from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Stable error kinds surfaced to callers and used by the retry policy."""

    EMPTY_DOCUMENT = "EMPTY_DOCUMENT"
    INVALID_CHUNK_SIZE = "INVALID_CHUNK_SIZE"
    INVALID_CHUNK_OVERLAP = "INVALID_CHUNK_OVERLAP"
    INVALID_INPUT = "INVALID_INPUT"
    EMBEDDING_ERROR = "EMBEDDING_ERROR"
    VECTOR_DB_ERROR = "VECTOR_DB_ERROR"
    DOCUMENT_QA_ERROR = "DOCUMENT_QA_ERROR"
    GENERATION_ERROR = "GENERATION_ERROR"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    RATE_LIMITED = "RATE_LIMITED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    TEMPORARY_FAILURE = "TEMPORARY_FAILURE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


def error_code(exc: BaseException) -> str:
    """Return the error kind of ``exc`` as a plain string (``UNKNOWN_ERROR`` when absent)."""
    code = getattr(exc, "code", None)
    if isinstance(code, ErrorKind):
        return code.value
    return str(code) if code else ErrorKind.UNKNOWN_ERROR.value


class _CodedError:
    """Mixin carrying an error kind and an opaque diagnostic payload."""

    default_code: ErrorKind = ErrorKind.UNKNOWN_ERROR

    def _init_coded(self, message: str, code: Optional[ErrorKind | str], details: Optional[Dict[str, Any]]) -> None:
        self.message = message
        self.code = ErrorKind(code) if code else self.default_code
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.message, "code": self.code.value}
        if self.details:
            out["details"] = self.details
        return out


class ContractError(_CodedError, ValueError):
    """Raised when a request violates the documented contract (input validation)."""

    default_code = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, code: Optional[ErrorKind | str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        ValueError.__init__(self, message)
        self._init_coded(message, code, details)


class ServiceError(_CodedError, RuntimeError):
    """Base for infrastructure failures; ``details['cause']`` holds the underlying message."""

    default_code = ErrorKind.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorKind | str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        RuntimeError.__init__(self, message)
        self._init_coded(message, code, details)
        self.cause = cause
        if cause is not None:
            self.details.setdefault("cause", f"{type(cause).__name__}: {cause}")
            self.details.setdefault("cause_code", error_code(cause))


class ProviderError(ServiceError):
    """Raised by adapters with a kind classified from the external response."""


class EmbeddingError(ServiceError):
    """Raised when embedding provider fails."""

    default_code = ErrorKind.EMBEDDING_ERROR


class VectorStoreError(ServiceError):
    """Raised when vector store provider fails."""

    default_code = ErrorKind.VECTOR_DB_ERROR


class GenerationError(ServiceError):
    """Raised when the generative provider fails and no fallback is configured."""

    default_code = ErrorKind.GENERATION_ERROR


class DocumentQAError(ServiceError):
    """Raised when a question cannot be answered (embedding or search failed)."""

    default_code = ErrorKind.DOCUMENT_QA_ERROR


class CircuitOpenError(ServiceError):
    """Raised without calling the dependency while its circuit breaker is open."""

    default_code = ErrorKind.CIRCUIT_OPEN


class ConfigurationError(ServiceError):
    """Fatal misconfiguration (e.g. embedding dimension differs from the index)."""

    default_code = ErrorKind.CONFIGURATION_ERROR
