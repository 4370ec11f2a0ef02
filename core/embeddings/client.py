"""Embedding client for generating vector embeddings.

This module provides clients for the Voyage AI and OpenAI embedding APIs.
Both share one request loop with rate-limit backoff; they differ only in the
payload they send. Inputs are truncated to the model's token limit and every
returned vector is checked against the configured dimension, so that vectors
written to the store always have the column's length.
"""

import asyncio
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import httpx
import structlog
import tiktoken

from core.embeddings.models import (
    OPENAI_CONFIG,
    VOYAGE_CODE_CONFIG,
    EmbeddingBatchResult,
    EmbeddingConfig,
    EmbeddingProvider,
    EmbeddingResult,
    InputType,
)

logger = structlog.get_logger(__name__)


class EmbeddingClientError(Exception):
    """Base exception for embedding client errors."""

    pass


class RateLimitError(EmbeddingClientError):
    """Rate limit exceeded."""

    pass


class DimensionMismatchError(EmbeddingClientError):
    """The provider returned a vector of unexpected length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Expected embedding dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


@lru_cache(maxsize=1)
def _get_tokenizer() -> tiktoken.Encoding | None:
    """Load the cl100k_base encoding once."""
    try:
        return tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        logger.warning("tokenizer_unavailable", error=str(e))
        return None


def count_tokens(text: str) -> int:
    """Count tokens in text.

    Args:
        text: Text to count tokens for.

    Returns:
        Token count, estimated from length if the tokenizer is unavailable.
    """
    tokenizer = _get_tokenizer()
    if tokenizer:
        return len(tokenizer.encode(text))
    return len(text) // 4


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Cut text down to at most ``max_tokens`` tokens."""
    tokenizer = _get_tokenizer()
    if tokenizer is None:
        return text[: max_tokens * 4]
    tokens = tokenizer.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return tokenizer.decode(tokens[:max_tokens])


class EmbeddingClient(ABC):
    """Abstract base class for embedding clients."""

    config: EmbeddingConfig

    @abstractmethod
    async def embed(self, text: str, input_type: InputType = InputType.DOCUMENT) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.
            input_type: Whether the text is a stored document or a search query.

        Returns:
            Embedding result.
        """
        pass

    @abstractmethod
    async def embed_batch(
        self, texts: list[str], input_type: InputType = InputType.DOCUMENT
    ) -> EmbeddingBatchResult:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.
            input_type: Whether the texts are stored documents or search queries.

        Returns:
            Batch embedding result.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the client and release resources."""
        pass


class HTTPEmbeddingClient(EmbeddingClient):
    """Shared implementation for JSON embedding APIs over httpx."""

    API_URL = ""
    PROVIDER_NAME = ""

    def __init__(
        self,
        api_key: str,
        config: EmbeddingConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Provider API key.
            config: Embedding configuration.
            transport: Optional httpx transport, used by tests.
        """
        self.api_key = api_key
        self.config = config
        self._client = httpx.AsyncClient(
            timeout=config.timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )
        self._logger = logger.bind(provider=self.PROVIDER_NAME, model=config.model)

    @abstractmethod
    def _build_payload(self, texts: list[str], input_type: InputType) -> dict[str, Any]:
        """Build the provider-specific request body."""
        ...

    async def embed(self, text: str, input_type: InputType = InputType.DOCUMENT) -> EmbeddingResult:
        """Generate embedding for a single text.

        Raises:
            EmbeddingClientError: If embedding fails.
        """
        truncated = truncate_to_tokens(text, self.config.max_input_tokens)
        vectors = await self._request([truncated], input_type)
        return EmbeddingResult(
            text=truncated,
            vector=vectors[0],
            model=self.config.model,
            token_count=count_tokens(truncated),
        )

    async def embed_batch(
        self, texts: list[str], input_type: InputType = InputType.DOCUMENT
    ) -> EmbeddingBatchResult:
        """Generate embeddings for multiple texts.

        A failing API batch marks its texts as failed without aborting the
        remaining batches.
        """
        if not texts:
            return EmbeddingBatchResult(embeddings=[], model=self.config.model)

        embeddings: list[EmbeddingResult] = []
        failed_indices: list[int] = []
        total_tokens = 0

        for batch_start in range(0, len(texts), self.config.batch_size):
            batch_end = min(batch_start + self.config.batch_size, len(texts))
            batch_texts = [
                truncate_to_tokens(text, self.config.max_input_tokens)
                for text in texts[batch_start:batch_end]
            ]

            try:
                vectors = await self._request(batch_texts, input_type)
            except EmbeddingClientError as e:
                failed_indices.extend(range(batch_start, batch_end))
                self._logger.error(
                    "batch_embedding_failed",
                    batch_start=batch_start,
                    batch_end=batch_end,
                    error=str(e),
                )
                continue

            for text, vector in zip(batch_texts, vectors, strict=True):
                tokens = count_tokens(text)
                embeddings.append(
                    EmbeddingResult(
                        text=text,
                        vector=vector,
                        model=self.config.model,
                        token_count=tokens,
                    )
                )
                total_tokens += tokens

        return EmbeddingBatchResult(
            embeddings=embeddings,
            total_tokens=total_tokens,
            model=self.config.model,
            failed_indices=failed_indices,
        )

    async def _request(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        """Call the API and return one vector per input, in input order.

        Raises:
            RateLimitError: If every attempt was rate limited.
            DimensionMismatchError: If a vector has the wrong length.
            EmbeddingClientError: If the API call fails.
        """
        payload = self._build_payload(texts, input_type)

        for attempt in range(self.config.max_retries):
            try:
                response = await self._client.post(self.API_URL, json=payload)
            except httpx.TimeoutException:
                self._logger.warning("timeout", attempt=attempt)
                if attempt == self.config.max_retries - 1:
                    raise EmbeddingClientError(f"{self.PROVIDER_NAME} API timeout")
                await asyncio.sleep(2**attempt)
                continue

            if response.status_code == 429:
                wait_time = 2**attempt
                self._logger.warning("rate_limited", attempt=attempt, wait_time=wait_time)
                await asyncio.sleep(wait_time)
                continue

            if response.status_code != 200:
                raise EmbeddingClientError(
                    f"{self.PROVIDER_NAME} API error: {response.status_code} - {response.text}"
                )

            items = sorted(response.json().get("data", []), key=lambda x: x.get("index", 0))
            if len(items) != len(texts):
                raise EmbeddingClientError(
                    f"{self.PROVIDER_NAME} API returned {len(items)} embeddings for {len(texts)} inputs"
                )

            vectors = [item.get("embedding", []) for item in items]
            for vector in vectors:
                if len(vector) != self.config.dimension:
                    raise DimensionMismatchError(self.config.dimension, len(vector))
            return vectors

        raise RateLimitError(f"{self.PROVIDER_NAME} API rate limit exceeded")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


class VoyageClient(HTTPEmbeddingClient):
    """Client for Voyage AI embeddings.

    Voyage AI provides code-specialized embeddings and distinguishes
    document inputs from query inputs.
    """

    API_URL = "https://api.voyageai.com/v1/embeddings"
    PROVIDER_NAME = "voyage"

    def __init__(
        self,
        api_key: str,
        config: EmbeddingConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(api_key, config or VOYAGE_CODE_CONFIG, transport)

    def _build_payload(self, texts: list[str], input_type: InputType) -> dict[str, Any]:
        return {
            "input": texts,
            "model": self.config.model,
            "input_type": input_type.value,
            "output_dimension": self.config.dimension,
        }


class OpenAIClient(HTTPEmbeddingClient):
    """Client for OpenAI embeddings."""

    API_URL = "https://api.openai.com/v1/embeddings"
    PROVIDER_NAME = "openai"

    def __init__(
        self,
        api_key: str,
        config: EmbeddingConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(api_key, config or OPENAI_CONFIG, transport)

    def _build_payload(self, texts: list[str], input_type: InputType) -> dict[str, Any]:
        return {
            "input": texts,
            "model": self.config.model,
            "dimensions": self.config.dimension,
        }


def create_embedding_client(
    provider: EmbeddingProvider,
    api_key: str,
    config: EmbeddingConfig | None = None,
) -> EmbeddingClient:
    """Create an embedding client for the specified provider.

    Args:
        provider: Embedding provider.
        api_key: API key for the provider.
        config: Optional configuration override.

    Returns:
        Configured embedding client.

    Raises:
        ValueError: If provider is not supported.
    """
    if provider == EmbeddingProvider.VOYAGE:
        return VoyageClient(api_key, config)
    elif provider == EmbeddingProvider.OPENAI:
        return OpenAIClient(api_key, config)
    else:
        raise ValueError(f"Unsupported provider: {provider}")
