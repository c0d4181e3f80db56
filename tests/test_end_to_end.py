"""
Integration tests through the service facade with offline providers and the in-memory store.
"""

import pytest

from document_qa.application.chunking import TextChunker
from document_qa.application.service import DocumentQAService
from document_qa.application.use_cases.answer_question import AnswerQuestionUseCase
from document_qa.application.use_cases.search_chunks import SearchChunksUseCase
from document_qa.application.vector_index import VectorIndex, point_id
from document_qa.bootstrap import build_service
from document_qa.domain.errors import ContractError, ErrorKind, ProviderError, VectorStoreError
from document_qa.infrastructure.memory.store import InMemoryVectorStore
from document_qa.infrastructure.offline import CannedGenerationService
from document_qa.ingestion.local_source import LocalDirectorySource

from conftest import TEST_DIM


class RejectingStore(InMemoryVectorStore):
    """Fails writes of the point ids in ``rejected``, or every write once ``reject_all`` is set."""

    def __init__(self, rejected=()):
        super().__init__()
        self.rejected = set(rejected)
        self.reject_all = False

    def upsert_points(self, name, points):
        if self.reject_all or any(p.id in self.rejected for p in points):
            raise ProviderError("Service Unavailable", code=ErrorKind.TEMPORARY_FAILURE, details={"status_code": 503})
        return super().upsert_points(name, points)


def _service_over(store, orchestrator, sleeper):
    index = VectorIndex(store, "test_chunks", TEST_DIM, sleep=sleeper)
    index.ensure()
    answerer = AnswerQuestionUseCase(orchestrator, index, generator=None, fallback=CannedGenerationService(), sleep=sleeper)
    return DocumentQAService(TextChunker(), orchestrator, index, answerer, SearchChunksUseCase(orchestrator, index))


@pytest.mark.integration
class TestIngestAndQuery:
    def test_short_document_single_chunk(self, offline_service):
        result = offline_service.ingest("doc-1", "Hello world. This is a test.", chunk_size=1000, chunk_overlap=200)

        assert result.status == "ok"
        assert result.total_chunks == 1
        assert result.stored_chunks == 1
        assert result.chunks[0].start_offset == 0
        assert result.chunks[0].end_offset == 28

    def test_long_document_three_chunks(self, offline_service):
        result = offline_service.ingest("doc-2", "x" * 2500, chunk_size=1000, chunk_overlap=200)

        assert result.total_chunks == 3
        assert [(c.start_offset, c.end_offset) for c in result.chunks] == [(0, 1000), (800, 1800), (1600, 2500)]
        assert offline_service.stats()["total_vectors"] == 3

    def test_exact_text_query_scores_one(self, offline_service):
        text = "Hello world. This is a test."
        offline_service.ingest("doc-1", text)

        hits = offline_service.search(text, limit=1, threshold=0.0)

        assert hits[0].score == pytest.approx(1.0, abs=1e-6)
        assert hits[0].document_id == "doc-1"

    def test_exact_text_answer_cites_source(self, offline_service):
        text = "Retrieval augmented generation grounds answers in documents."
        offline_service.ingest("doc-rag", text, name="rag.txt")

        answer = offline_service.query(text)

        assert answer.confidence == "high"
        assert answer.sources[0].document_id == "doc-rag"
        assert answer.sources[0].score == pytest.approx(1.0, abs=1e-6)

    def test_empty_index_low_confidence(self, offline_service):
        answer = offline_service.query("Is anything indexed?")

        assert answer.confidence == "low"
        assert answer.sources == []
        assert answer.answer

    def test_reingest_replaces_previous_chunks(self, offline_service):
        offline_service.ingest("doc", "y" * 2500)
        result = offline_service.ingest("doc", "Short replacement text.")

        # Chunk 0 is overwritten in place; chunks 1 and 2 are left over and pruned.
        assert result.removed_previous == 2
        assert offline_service.stats()["total_vectors"] == 1
        hits = offline_service.search("Short replacement text.", threshold=-1.0)
        assert [h.content for h in hits] == ["Short replacement text."]

    def test_delete_and_reset(self, offline_service):
        offline_service.ingest("a", "z" * 1500)
        offline_service.ingest("b", "Another document.")

        assert offline_service.delete_document("a") == 2
        assert offline_service.reset_index() == {"removed_documents": 1, "removed_vectors": 1}
        assert offline_service.stats()["total_documents"] == 0

    def test_bytes_content_is_decoded(self, offline_service):
        result = offline_service.ingest("bin", "Café menu.".encode("utf-8"))
        assert result.total_characters == len("Café menu.")

    def test_invalid_requests(self, offline_service):
        with pytest.raises(ContractError) as ei:
            offline_service.ingest("doc", "")
        assert ei.value.code == ErrorKind.EMPTY_DOCUMENT
        with pytest.raises(ContractError) as ei:
            offline_service.ingest("", "text")
        assert ei.value.code == ErrorKind.INVALID_INPUT
        with pytest.raises(ContractError):
            offline_service.delete_document(" ")


@pytest.mark.integration
class TestPartialWrites:
    """Per-chunk status when some writes fail, and safety of the previous version."""

    def test_partial_ingest_reports_failed_chunk(self, orchestrator, sleeper):
        store = RejectingStore(rejected=[point_id("doc", 1)])
        service = _service_over(store, orchestrator, sleeper)

        result = service.ingest("doc", "x" * 2500, chunk_size=1000, chunk_overlap=200)

        assert result.status == "partial"
        failed = [c for c in result.chunks if c.status == "failed"]
        assert [c.index for c in failed] == [1]
        assert failed[0].error == ErrorKind.VECTOR_DB_ERROR.value
        assert result.stored_chunks == result.total_chunks - 1 == 2
        assert result.to_dict()["stored_chunks"] == 2
        assert service.stats()["total_vectors"] == 2
        assert sleeper.calls == [1.0, 1.0]

    def test_failed_reingest_keeps_previous_version(self, orchestrator, sleeper):
        store = RejectingStore()
        service = _service_over(store, orchestrator, sleeper)
        service.ingest("doc", "First version of the document.")

        store.reject_all = True
        with pytest.raises(VectorStoreError) as ei:
            service.ingest("doc", "Second version that never lands.")

        assert ei.value.code == ErrorKind.VECTOR_DB_ERROR
        assert service.stats()["total_vectors"] == 1
        hits = service.search("First version of the document.", threshold=0.0)
        assert [h.content for h in hits] == ["First version of the document."]

    def test_partial_reingest_drops_old_chunk_it_could_not_replace(self, orchestrator, sleeper):
        store = RejectingStore()
        service = _service_over(store, orchestrator, sleeper)
        service.ingest("doc", "x" * 2500, chunk_size=1000, chunk_overlap=200)

        store.rejected = {point_id("doc", 1)}
        result = service.ingest("doc", "y" * 2500, chunk_size=1000, chunk_overlap=200)

        assert result.status == "partial"
        assert result.removed_previous == 1
        left = sorted((p["chunk_index"], set(p["content"])) for p in store.scroll_payloads("test_chunks"))
        assert left == [(0, {"y"}), (2, {"y"})]


@pytest.mark.integration
class TestSync:
    def test_sync_directory(self, offline_service, temp_documents):
        result = offline_service.sync(LocalDirectorySource(temp_documents))

        assert result.processed == 3
        assert result.failed == 0
        assert sorted(d["document_id"] for d in result.documents) == ["guide.md", "intro.txt", "nested/deep.md"]
        assert offline_service.stats()["total_documents"] == 3

    def test_sync_respects_max_items(self, offline_service, temp_documents):
        result = offline_service.sync(LocalDirectorySource(temp_documents), max_items=1)
        assert result.processed == 1

    def test_sync_records_failures(self, offline_service, temp_documents):
        (temp_documents / "blank.txt").write_text("   ")

        result = offline_service.sync(LocalDirectorySource(temp_documents))

        failed = [d for d in result.documents if d["status"] == "failed"]
        assert [d["document_id"] for d in failed] == ["blank.txt"]
        assert failed[0]["code"] == ErrorKind.EMPTY_DOCUMENT.value
        assert result.succeeded == 3


@pytest.mark.integration
class TestBootstrap:
    def test_offline_service_from_environment(self, clean_environment, isolated_cwd, monkeypatch):
        monkeypatch.setenv("DOCQA_VECTOR_SIZE", "16")
        service = build_service(offline=True, store=InMemoryVectorStore())

        assert service.ensure_ready() == 16
        assert service.embeddings.model_name == "offline/hash-embedding"
        assert set(service.health()) == {"embedding", "generation", "vector-db", "file-storage"}
        assert service._syncer._ingest is service._ingest
        result = service.ingest("doc", "Bootstrapped pipeline works.")
        assert result.dimensions == 16
        assert service.query("Bootstrapped pipeline works.").confidence == "high"
