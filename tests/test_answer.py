"""
Unit tests for retrieval-augmented answering: context assembly, relevance filtering and fallbacks.
"""

from unittest.mock import Mock

import pytest

from document_qa.application.dto import QueryRequest
from document_qa.application.use_cases.answer_question import (
    CONTEXT_SEPARATOR,
    TRUNCATION_MARKER,
    AnswerQuestionUseCase,
    build_context,
    estimate_tokens,
)
from document_qa.domain.errors import (
    CircuitOpenError,
    ConfigurationError,
    ContractError,
    DocumentQAError,
    ErrorKind,
    GenerationError,
    ProviderError,
)
from document_qa.domain.models import SearchHit, Vector
from document_qa.infrastructure.offline import CANNED_ANSWERS, CannedGenerationService, char_code_sum


def _hit(score, content, doc="doc"):
    return SearchHit(id=str(hash(content)), score=score, payload={"content": content, "document_id": doc, "document_name": f"{doc}.txt"})


def _use_case(hits, generator=None, fallback=None, threshold=0.3, sleeper=None, **kwargs):
    embeddings = Mock()
    embeddings.embed.return_value = Vector(values=[1.0, 0.0], dim=2)
    index = Mock()
    index.search.return_value = hits
    uc = AnswerQuestionUseCase(
        embeddings,
        index,
        generator=generator,
        fallback=fallback,
        relevance_threshold=threshold,
        sleep=sleeper or (lambda s: None),
        **kwargs,
    )
    return uc, embeddings, index


@pytest.mark.unit
class TestBuildContext:
    def test_numbered_blocks_joined_by_separator(self):
        ctx = build_context(["alpha", "beta"])
        assert ctx == "[1] alpha" + CONTEXT_SEPARATOR + "[2] beta"

    def test_truncates_at_limit(self):
        ctx = build_context(["a" * 3000, "b" * 3000], max_length=4000)
        assert ctx.endswith(TRUNCATION_MARKER)
        assert len(ctx) == 4000 + len(TRUNCATION_MARKER)

    def test_stops_after_limit_reached(self):
        ctx = build_context(["a" * 4500, "b" * 10], max_length=4000)
        assert "b" not in ctx

    def test_marker_when_limit_hit_exactly(self):
        full = "[1] " + "a" * 3996
        assert build_context(["a" * 3996, "b"], max_length=4000) == full + TRUNCATION_MARKER
        assert build_context(["a" * 3996, ""], max_length=4000) == full
        assert build_context(["a" * 3996], max_length=4000) == full

    def test_empty(self):
        assert build_context([]) == ""

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


@pytest.mark.unit
class TestAnswerQuestion:
    """Test the answer flow end to end with mocked collaborators."""

    def test_relevant_hits_become_sources(self):
        generator = Mock()
        generator.name = "mock/llm"
        generator.generate.return_value = "Answer text"
        hits = [_hit(0.9, "first"), _hit(0.5, "second"), _hit(0.1, "noise")]
        uc, _, index = _use_case(hits, generator=generator)

        answer = uc.execute(QueryRequest(query="what?", max_results=5))

        assert [s.content for s in answer.sources] == ["first", "second"]
        assert answer.confidence == "high"
        assert answer.answer == "Answer text"
        assert answer.model == "mock/llm"
        question, context = generator.generate.call_args[0]
        assert question == "what?"
        assert context == "[1] first" + CONTEXT_SEPARATOR + "[2] second"
        index.search.assert_called_once()
        assert index.search.call_args[1]["limit"] == 5

    def test_no_relevant_hits_gives_low_confidence(self):
        uc, _, _ = _use_case([_hit(0.29, "weak")], fallback=CannedGenerationService())

        answer = uc.execute(QueryRequest(query="anything"))

        assert answer.confidence == "low"
        assert answer.sources == []
        assert answer.answer

    def test_threshold_is_inclusive(self):
        uc, _, _ = _use_case([_hit(0.3, "edge")], fallback=CannedGenerationService())
        assert len(uc.execute(QueryRequest(query="q")).sources) == 1

    def test_generation_failure_uses_canned_answer(self, sleeper):
        generator = Mock()
        generator.generate.side_effect = ProviderError("down", code=ErrorKind.NETWORK_ERROR)
        uc, _, _ = _use_case([_hit(0.8, "ctx")], generator=generator, fallback=CannedGenerationService(), sleeper=sleeper)

        answer = uc.execute(QueryRequest(query="What is RAG?"))

        expected = CANNED_ANSWERS[char_code_sum("What is RAG?") % len(CANNED_ANSWERS)].format(q="What is RAG?")
        assert answer.answer == expected
        assert answer.model == "offline/canned"
        assert generator.generate.call_count == 3
        assert len(sleeper.calls) == 2

    def test_generation_failure_without_fallback(self):
        generator = Mock()
        generator.generate.side_effect = ProviderError("bad", code=ErrorKind.GENERATION_ERROR)
        uc, _, _ = _use_case([_hit(0.8, "ctx")], generator=generator)

        with pytest.raises(GenerationError):
            uc.execute(QueryRequest(query="q"))

    def test_search_failure_is_document_qa_error(self):
        uc, _, index = _use_case([], fallback=CannedGenerationService())
        index.search.side_effect = ProviderError("db down", code=ErrorKind.VECTOR_DB_ERROR)

        with pytest.raises(DocumentQAError) as ei:
            uc.execute(QueryRequest(query="q"))
        assert ei.value.code == ErrorKind.DOCUMENT_QA_ERROR
        assert ei.value.details["cause_code"] == ErrorKind.VECTOR_DB_ERROR.value

    def test_open_circuit_propagates(self):
        uc, embeddings, _ = _use_case([], fallback=CannedGenerationService())
        embeddings.embed.side_effect = CircuitOpenError("open")

        with pytest.raises(CircuitOpenError):
            uc.execute(QueryRequest(query="q"))

    def test_dimension_mismatch_propagates(self):
        uc, _, index = _use_case([], fallback=CannedGenerationService())
        index.search.side_effect = ConfigurationError("Query vector has dimension 2, index expects 4")

        with pytest.raises(ConfigurationError) as ei:
            uc.execute(QueryRequest(query="q"))
        assert ei.value.code == ErrorKind.CONFIGURATION_ERROR

    def test_empty_query_rejected(self):
        uc, _, _ = _use_case([], fallback=CannedGenerationService())
        with pytest.raises(ContractError):
            uc.execute(QueryRequest(query="   "))

    def test_metadata_and_serialization(self):
        uc, _, _ = _use_case([_hit(0.9, "some content", doc="d1")], fallback=CannedGenerationService())

        data = uc.execute(QueryRequest(query="question")).to_dict()

        assert data["query"] == "question"
        assert data["sources"][0] == {"document_id": "d1", "document_name": "d1.txt", "content": "some content", "score": 0.9}
        assert data["metadata"]["tokens_used"] > 0
        assert data["metadata"]["processing_time_ms"] >= 0
