"""Embeddings module for StackAlchemy.

This module provides the clients that turn file summaries and questions into
fixed-length vectors.
"""

from core.embeddings.client import (
    DimensionMismatchError,
    EmbeddingClient,
    EmbeddingClientError,
    OpenAIClient,
    RateLimitError,
    VoyageClient,
    count_tokens,
    create_embedding_client,
    truncate_to_tokens,
)
from core.embeddings.models import (
    OPENAI_CONFIG,
    VOYAGE_CODE_CONFIG,
    EmbeddingBatchResult,
    EmbeddingConfig,
    EmbeddingProvider,
    EmbeddingResult,
    InputType,
)

__all__ = [
    # Client
    "DimensionMismatchError",
    "EmbeddingClient",
    "EmbeddingClientError",
    "OpenAIClient",
    "RateLimitError",
    "VoyageClient",
    "count_tokens",
    "create_embedding_client",
    "truncate_to_tokens",
    # Models
    "EmbeddingBatchResult",
    "EmbeddingConfig",
    "EmbeddingProvider",
    "EmbeddingResult",
    "InputType",
    "OPENAI_CONFIG",
    "VOYAGE_CODE_CONFIG",
]
