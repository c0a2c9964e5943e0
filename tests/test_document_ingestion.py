"""Tests for document chunking and ingestion."""

import pytest

from agentdesk.adapters.vector_index import to_vector_literal
from agentdesk.infra.error_handler import ValidationError
from agentdesk.services.document_ingestion import (
    CHUNK_SIZE,
    MAX_DOCUMENT_BYTES,
    DocumentIngestionService,
    chunk_text,
)


class TestChunkText:
    """Test chunk_text."""

    def test_short_text_is_one_chunk(self):
        assert chunk_text("  Refunds are processed within 30 days.  ") == ["Refunds are processed within 30 days."]

    def test_empty_text(self):
        assert chunk_text("   \n ") == []

    def test_hard_cut_with_overlap(self):
        chunks = chunk_text("x" * 1200)

        assert [len(c) for c in chunks] == [500, 500, 300]

    def test_prefers_sentence_boundaries(self):
        text = " ".join(f"Sentence number {i} ends here." for i in range(60))

        chunks = chunk_text(text)

        assert len(chunks) > 1
        assert all(len(c) <= CHUNK_SIZE for c in chunks)
        assert all(c.endswith(".") for c in chunks)
        for i in range(60):
            assert any(f"Sentence number {i} ends here." in c for c in chunks)

    def test_prefers_paragraph_boundaries(self):
        first = "a " * 150
        second = "b " * 150
        chunks = chunk_text(f"{first.strip()}\n\n{second.strip()}")

        assert chunks[0] == first.strip()


class TestDocumentIngestionService:
    """Test DocumentIngestionService."""

    @pytest.fixture
    def service(self, store, embedder, index):
        return DocumentIngestionService(store=store, embedder=embedder, index=index)

    @pytest.mark.asyncio
    async def test_ingest_document(self, service, store, embedder, index):
        text = "Our enterprise plan includes SSO. " * 40

        result = await service.ingest_document(
            "org-1", "user-1", " Pricing Guide ", text, "text/plain", storage_path="org-1/pricing.txt",
        )

        document = result["document"]
        assert document.title == "Pricing Guide"
        assert document.size_bytes == len(text.encode("utf-8"))
        assert store.get_document(document.id).storage_path == "org-1/pricing.txt"
        assert result["chunks"] == len(index.records) > 1

        first = index.records[0]
        assert first["id"] == f"{document.id}_0"
        assert first["metadata"]["documentId"] == document.id
        assert first["metadata"]["title"] == "Pricing Guide"
        assert first["metadata"]["chunkIndex"] == 0
        assert embedder.batches[0][0] == f"Title: Pricing Guide\n\nContent: {first['metadata']['chunkText']}"

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, service, index):
        with pytest.raises(ValidationError) as exc_info:
            await service.ingest_document("org-1", None, "Deck", "slides", "application/vnd.ms-powerpoint")

        assert exc_info.value.field == "content_type"
        assert index.records == []

    @pytest.mark.asyncio
    async def test_oversize_document(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.ingest_document(
                "org-1", None, "Manual", "text", "application/pdf", size_bytes=MAX_DOCUMENT_BYTES + 1,
            )

        assert exc_info.value.message == "File size must be less than 10MB"

    @pytest.mark.asyncio
    async def test_empty_text(self, service, store):
        with pytest.raises(ValidationError):
            await service.ingest_document("org-1", None, "Blank", "   ", "text/markdown")

        assert store.documents == {}


class TestVectorLiteral:
    """Test pgvector literal rendering."""

    def test_renders_literal(self):
        assert to_vector_literal([0.5, 1, -2.25]) == "[0.5,1.0,-2.25]"

    def test_dimension_mismatch(self):
        with pytest.raises(ValidationError):
            to_vector_literal([0.1, 0.2], expected_dim=1536)

    def test_rejects_non_finite_and_empty(self):
        with pytest.raises(ValidationError):
            to_vector_literal([0.1, float("nan")])
        with pytest.raises(ValidationError):
            to_vector_literal([])
        with pytest.raises(ValidationError):
            to_vector_literal(["a", "b"])
