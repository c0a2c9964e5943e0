"""Document ingestion: chunk, embed and index uploaded text."""

import logging
from typing import Any, Dict, List, Optional

from agentdesk.adapters.vector_index import vector_index
from agentdesk.infra.embeddings import embedding_generator
from agentdesk.infra.error_handler import ValidationError
from agentdesk.infra.metrics import documents_ingested_total, chunks_indexed_total
from agentdesk.models.agent import Document
from agentdesk.services.store import agent_store

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"text/plain", "text/markdown", "application/pdf"}
MAX_DOCUMENT_BYTES = 10 * 1024 * 1024

CHUNK_SIZE = 500
CHUNK_OVERLAP = 50

# Boundaries tried in order when a chunk has to be cut
_BREAKS = ("\n\n", "\n", ". ", "! ", "? ", " ")


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP) -> List[str]:
    """
    Split text into overlapping chunks of at most ``chunk_size`` characters.

    Cuts at the coarsest boundary found in the window: paragraph, then
    line, then sentence, then word; a hard cut only when none exists.

    Args:
        text: Text to chunk
        chunk_size: Maximum characters per chunk
        chunk_overlap: Characters repeated at the start of the next chunk

    Returns:
        List of non-empty text chunks
    """
    text = text.strip()
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    chunks = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))

        if end < len(text):
            for separator in _BREAKS:
                cut = text.rfind(separator, start, end)
                if cut > start:
                    end = cut + len(separator)
                    break

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= len(text):
            break
        next_start = end - chunk_overlap
        start = next_start if next_start > start else end

    return chunks


class DocumentIngestionService:
    """Stores document metadata and indexes its chunks for agent search."""

    def __init__(self, store=None, embedder=None, index=None):
        self.store = store if store is not None else agent_store
        self.embedder = embedder if embedder is not None else embedding_generator
        self.index = index if index is not None else vector_index

    async def ingest_document(
        self,
        organization_id: str,
        uploaded_by: Optional[str],
        title: str,
        text: str,
        content_type: str,
        size_bytes: Optional[int] = None,
        storage_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Ingest extracted document text.

        Args:
            organization_id: Owning organization
            uploaded_by: Acting user
            title: Document title, also embedded with every chunk
            text: Extracted plain text
            content_type: Original file MIME type
            size_bytes: Original file size (defaults to the UTF-8 text size)
            storage_path: Where the original file lives, if stored

        Returns:
            Dict with the stored ``document`` and the number of ``chunks`` indexed

        Raises:
            ValidationError: Unsupported type, oversize file, empty title or text
        """
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                f"Unsupported file type: {content_type}. Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}",
                field="content_type",
            )
        size = size_bytes if size_bytes is not None else len(text.encode("utf-8"))
        if size > MAX_DOCUMENT_BYTES:
            raise ValidationError("File size must be less than 10MB", field="size_bytes")
        if not title or not title.strip():
            raise ValidationError("Document title is required", field="title")

        chunks = chunk_text(text)
        if not chunks:
            raise ValidationError("Document has no text content", field="text")

        document = self.store.insert_document(Document(
            id="",
            organization_id=organization_id,
            title=title.strip(),
            content_type=content_type,
            size_bytes=size,
            storage_path=storage_path,
            uploaded_by=uploaded_by,
        ))

        embeddings = await self.embedder.generate_embeddings_batch(
            [f"Title: {document.title}\n\nContent: {chunk}" for chunk in chunks]
        )
        records = [
            {
                "id": f"{document.id}_{i}",
                "vector": vector,
                "metadata": {
                    "documentId": document.id,
                    "title": document.title,
                    "chunkText": chunk,
                    "chunkIndex": i,
                },
            }
            for i, (chunk, vector) in enumerate(zip(chunks, embeddings))
        ]
        written = await self.index.upsert(records)

        documents_ingested_total.labels(content_type=content_type).inc()
        chunks_indexed_total.inc(written)
        logger.info(f"Ingested document {document.id} ({written} chunks) for org {organization_id}")
        return {"document": document, "chunks": written}


# Global instance
document_ingestion_service = DocumentIngestionService()
