"""LLM module for StackAlchemy.

This module provides the Claude API client and the prompt templates used to
summarize files and commits and to answer questions.
"""

from core.llm.client import (
    ClaudeClient,
    LLMClient,
    LLMClientError,
    LLMConfig,
    LLMResponse,
    MockClaudeClient,
    RateLimitError,
    TokenLimitError,
)
from core.llm.prompts import PromptKind, PromptTemplate, get_prompt_template

__all__ = [
    # Client
    "ClaudeClient",
    "LLMClient",
    "LLMClientError",
    "LLMConfig",
    "LLMResponse",
    "MockClaudeClient",
    "RateLimitError",
    "TokenLimitError",
    # Prompts
    "PromptKind",
    "PromptTemplate",
    "get_prompt_template",
]
