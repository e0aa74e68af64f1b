"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client. A custom ``base_url`` lets any
OpenAI-compatible embeddings endpoint stand in for OpenAI itself.
"""

import logging
from typing import List, Optional

import openai

from app.core.config import settings
from app.core.errors import EmbeddingDimensionError, ProviderError

logger = logging.getLogger(__name__)

# Known embedding model dimensions
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


def validate_embedding_dimensions(model: Optional[str] = None, dimensions: Optional[int] = None) -> None:
    """Check the configured model against the chunk vector column.

    Models missing from ``MODEL_DIMENSIONS`` are trusted; every embedding is
    still checked against the configured length when it comes back.

    Raises:
        EmbeddingDimensionError: If the model is known to produce another length
    """
    model = model or settings.EMBEDDING_MODEL
    dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
    known = MODEL_DIMENSIONS.get(model)
    if known is not None and known != dimensions:
        raise EmbeddingDimensionError(expected=dimensions, actual=known, source=f"model {model}")
    logger.info(f"Embedding model {model} configured with {dimensions} dimensions")


class EmbeddingService:
    """Turns text into fixed-length vectors through an embeddings API."""

    provider_name = "openai_embedding"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        dimensions: Optional[int] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.model = model or settings.EMBEDDING_MODEL
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        base_url = base_url or settings.OPENAI_BASE_URL
        if base_url:
            self.provider_name = "openai-compatible_embedding"

        if client is None:
            client_kwargs = {"api_key": api_key or settings.OPENAI_API_KEY}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self.client = client

    async def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts in one request.

        Args:
            texts: Inputs, in the order the caller wants vectors back

        Returns:
            One vector per input, same order

        Raises:
            ProviderError: On authentication, rate limit, API or connection
                failure, or a response of the wrong shape
        """
        if not texts:
            return []

        try:
            response = await self.client.embeddings.create(input=texts, model=self.model)
        except openai.AuthenticationError as e:
            logger.error(f"Embedding provider rejected credentials: {e}")
            raise ProviderError(f"Authentication failed: {e}", provider_name=self.provider_name) from e
        except openai.RateLimitError as e:
            logger.warning(f"Embedding provider rate limited the request: {e}")
            raise ProviderError(f"Rate limited: {e}", provider_name=self.provider_name, retryable=True) from e
        except openai.APIError as e:
            logger.error(f"Embedding provider error: {e}")
            raise ProviderError(f"API error: {e}", provider_name=self.provider_name) from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise ProviderError(
                f"Expected {len(texts)} embeddings, got {len(data)}", provider_name=self.provider_name
            )

        vectors = []
        for item in data:
            vector = list(item.embedding or [])
            if not vector:
                raise ProviderError(f"Empty embedding at index {item.index}", provider_name=self.provider_name)
            if len(vector) != self.dimensions:
                raise ProviderError(
                    f"Embedding at index {item.index} has {len(vector)} dimensions, expected {self.dimensions}",
                    provider_name=self.provider_name,
                )
            vectors.append(vector)

        usage = getattr(response, "usage", None)
        logger.info(f"Embedded {len(texts)} texts with {self.model}"
                    f"{f' ({usage.total_tokens} tokens)' if usage else ''}")
        return vectors
