"""Document chunk vector index on PostgreSQL + pgvector."""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sqlalchemy import text

from agentdesk.infra.config import config
from agentdesk.infra.database import get_db_session
from agentdesk.infra.error_handler import ValidationError

logger = logging.getLogger(__name__)

_TABLE_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]{0,62}$")


def to_vector_literal(embedding: Sequence[float], expected_dim: Optional[int] = None) -> str:
    """
    Render an embedding as a pgvector literal ("[0.1,0.2,...]").

    Raises:
        ValidationError: Non-numeric, non-finite or wrongly sized input
    """
    try:
        array = np.array(embedding, dtype=np.float32)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid embedding format: {e}")

    if array.ndim != 1 or array.size == 0:
        raise ValidationError("Embedding must be a non-empty flat vector")
    if expected_dim and array.size != expected_dim:
        raise ValidationError(f"Embedding has {array.size} dimensions, expected {expected_dim}")
    if not np.all(np.isfinite(array)):
        raise ValidationError("Invalid embedding values")

    return "[" + ",".join(map(str, array.tolist())) + "]"


class PgVectorIndex:
    """
    Global chunk index ranked by cosine similarity.

    Rows carry their metadata (documentId, title, chunkText, chunkIndex) as
    JSON; callers restrict results to the documents they may see.
    """

    def __init__(self, table: Optional[str] = None, embedding_dim: Optional[int] = None):
        table = table or config.VECTOR_INDEX_TABLE
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid vector index table name: {table}")
        self.table = table
        self.embedding_dim = embedding_dim or config.EMBEDDING_DIM

    async def upsert(self, records: List[Dict[str, Any]]) -> int:
        """
        Insert or replace chunk vectors.

        Args:
            records: Dicts with ``id``, ``vector`` and ``metadata``

        Returns:
            Number of records written
        """
        if not records:
            return 0

        with get_db_session() as session:
            for record in records:
                metadata = record.get("metadata") or {}
                session.execute(
                    text(f"""
                        INSERT INTO {self.table} (id, document_id, chunk_index, embedding, metadata)
                        VALUES (
                            :id, :document_id, :chunk_index,
                            CAST(:embedding AS vector), CAST(:metadata AS jsonb)
                        )
                        ON CONFLICT (id) DO UPDATE
                        SET embedding = EXCLUDED.embedding,
                            metadata = EXCLUDED.metadata,
                            chunk_index = EXCLUDED.chunk_index
                    """),
                    {
                        "id": record["id"],
                        "document_id": metadata.get("documentId"),
                        "chunk_index": metadata.get("chunkIndex", 0),
                        "embedding": to_vector_literal(record["vector"], self.embedding_dim),
                        "metadata": json.dumps(metadata),
                    },
                )
        return len(records)

    async def query(self, vector: Sequence[float], top_k: int) -> List[Dict[str, Any]]:
        """
        Nearest chunks to ``vector``.

        Returns:
            ``[{"id", "metadata", "score"}]`` best first, score = cosine similarity
        """
        embedding = to_vector_literal(vector, self.embedding_dim)
        with get_db_session() as session:
            rows = session.execute(
                text(f"""
                    SELECT
                        id,
                        metadata,
                        1 - (embedding <=> CAST(:query_embedding AS vector)) AS similarity_score
                    FROM {self.table}
                    ORDER BY embedding <=> CAST(:query_embedding AS vector)
                    LIMIT :limit
                """),
                {"query_embedding": embedding, "limit": top_k},
            ).fetchall()

        return [
            {
                "id": row.id,
                "metadata": row.metadata or {},
                "score": float(row.similarity_score),
            }
            for row in rows
        ]


# Global instance
vector_index = PgVectorIndex()
