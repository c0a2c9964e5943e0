"""Embedding generation with the pinned OpenAI model."""

from typing import List
from openai import AsyncOpenAI, OpenAIError
from agentdesk.infra.config import config
from agentdesk.infra.error_handler import ErrorCategory, ProviderOperationFailed


class EmbeddingGenerator:
    """Generates embeddings for document chunks and search queries.

    Ingestion and retrieval both go through this class so the vectors they
    compare come from the same model.
    """

    def __init__(self, model: str = None, embedding_dim: int = None):
        self._openai_client = None
        self.model = model or config.EMBEDDING_MODEL
        self.embedding_dim = embedding_dim or config.EMBEDDING_DIM

    @property
    def openai_client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._openai_client is None:
            if not config.OPENAI_API_KEY:
                raise ProviderOperationFailed(
                    provider="openai",
                    operation="embedding",
                    provider_message="No embedding model available. Configure OPENAI_API_KEY",
                    category=ErrorCategory.AUTH_ERROR,
                )
            self._openai_client = AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        return self._openai_client

    async def _create(self, payload):
        try:
            return await self.openai_client.embeddings.create(model=self.model, input=payload)
        except OpenAIError as e:
            raise ProviderOperationFailed(
                provider="openai",
                operation="embedding",
                provider_message=str(e),
                category=ErrorCategory.NETWORK if "connection" in str(e).lower() else ErrorCategory.API_ERROR,
            ) from e

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Generate embedding for a text string.

        Args:
            text: Text to embed

        Returns:
            List of floats representing the embedding vector
        """
        response = await self._create(text)
        return response.data[0].embedding

    async def generate_embeddings_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in one request.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors, in input order
        """
        if not texts:
            return []
        response = await self._create(texts)
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]


# Global instance
embedding_generator = EmbeddingGenerator()
