"""Embedding models and types for StackAlchemy.

This module defines the data models for embedding generation: providers,
client configuration and result types.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingProvider(str, Enum):
    """Supported embedding providers."""

    VOYAGE = "voyage"
    OPENAI = "openai"


class InputType(str, Enum):
    """Role of the embedded text, for providers that distinguish them."""

    DOCUMENT = "document"
    QUERY = "query"


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation.

    Attributes:
        provider: The embedding provider to use.
        model: The model name/ID.
        dimension: Vector dimension every returned vector must have.
        batch_size: Maximum batch size for API calls.
        max_input_tokens: Inputs longer than this are truncated.
        max_retries: Maximum number of retry attempts.
        timeout: Request timeout in seconds.
    """

    model_config = ConfigDict(frozen=True)

    provider: EmbeddingProvider = Field(
        default=EmbeddingProvider.VOYAGE,
        description="Embedding provider",
    )
    model: str = Field(
        default="voyage-code-3",
        description="Model name",
    )
    dimension: int = Field(
        default=1024,
        ge=1,
        description="Vector dimension",
    )
    batch_size: int = Field(
        default=128,
        ge=1,
        le=256,
        description="Maximum batch size",
    )
    max_input_tokens: int = Field(
        default=8000,
        ge=1,
        description="Input token limit before truncation",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum retry attempts",
    )
    timeout: float = Field(default=60.0, description="Timeout in seconds")


# Preset configurations for common providers
VOYAGE_CODE_CONFIG = EmbeddingConfig(
    provider=EmbeddingProvider.VOYAGE,
    model="voyage-code-3",
    dimension=1024,
    batch_size=128,
    max_input_tokens=16000,
)

OPENAI_CONFIG = EmbeddingConfig(
    provider=EmbeddingProvider.OPENAI,
    model="text-embedding-3-small",
    dimension=1536,
    batch_size=100,
    max_input_tokens=8191,
)


class EmbeddingResult(BaseModel):
    """Result of embedding generation.

    Attributes:
        text: Text that was embedded, after truncation.
        vector: The embedding vector.
        model: Model used for generation.
        token_count: Number of tokens in the text.
    """

    text: str = Field(..., description="Embedded text")
    vector: list[float] = Field(..., description="Embedding vector")
    model: str = Field(..., description="Model used")
    token_count: int = Field(default=0, description="Token count")


class EmbeddingBatchResult(BaseModel):
    """Result of batch embedding generation.

    Attributes:
        embeddings: Results of the texts that succeeded, in input order.
        total_tokens: Total tokens processed.
        model: Model used for generation.
        failed_indices: Indices of texts whose batch failed.
    """

    embeddings: list[EmbeddingResult] = Field(default_factory=list, description="Embeddings")
    total_tokens: int = Field(default=0, description="Total tokens")
    model: str = Field(..., description="Model used")
    failed_indices: list[int] = Field(default_factory=list, description="Failed indices")
