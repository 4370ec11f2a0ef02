"""Prompt templates for StackAlchemy LLM calls.

This module defines the prompts used to summarize source files, summarize
commit diffs and answer questions about an indexed codebase.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PromptKind(str, Enum):
    """Kinds of LLM calls made by the system."""

    CODE_SUMMARY = "code_summary"
    COMMIT_SUMMARY = "commit_summary"
    ANSWER = "answer"


class PromptTemplate(BaseModel):
    """A prompt template for LLM calls.

    Attributes:
        kind: Kind of call this template handles.
        system_prompt: System message for the LLM.
        user_template: Template for the user message with placeholders.
        max_tokens: Output token budget for this kind of call.
    """

    model_config = ConfigDict(frozen=True)

    kind: PromptKind = Field(..., description="Prompt kind")
    system_prompt: str = Field(..., description="System prompt")
    user_template: str = Field(..., description="User message template")
    max_tokens: int = Field(default=1024, ge=1, description="Output token budget")

    def format_user_message(self, **kwargs: Any) -> str:
        """Format the user message with provided values.

        Args:
            **kwargs: Template variables.

        Returns:
            Formatted user message.
        """
        return self.user_template.format(**kwargs)


# =============================================================================
# System Prompts
# =============================================================================

SYSTEM_PROMPT_CODE_SUMMARY = """You are an intelligent senior software engineer who specialises in onboarding junior software engineers onto projects.

You are onboarding a junior engineer and explaining the purpose of a single file of the codebase.
- Describe what the file is for and how it fits into the project
- Mention the main functions, classes or components it defines
- Keep the summary under 100 words
- Do not repeat the code back"""

SYSTEM_PROMPT_COMMIT_SUMMARY = """You are an expert programmer summarizing a git diff.

The diff lists each changed file as:
File: <path>
Changes: <number of changed lines>
<unified diff patch>

Write a short bullet list of the meaningful changes. Mention file names in brackets when a change is limited to a few files, for example: * Raised the request timeout [api/client.py]. Omit changes that are purely formatting. Do not add commentary beyond the list."""

SYSTEM_PROMPT_ANSWER = """You are an AI code assistant who answers questions about a codebase. Your audience is a technical intern who is new to the project.

You are given the files most relevant to the question, each with its path, an AI summary and its source code.
- Answer using only the provided context
- Reference file paths when pointing at code
- Include short code snippets in markdown when they help
- If the context does not contain the answer, say that you do not know rather than guessing"""


# =============================================================================
# User Templates
# =============================================================================

USER_TEMPLATE_CODE_SUMMARY = """Explain the purpose of the file {file_name}.

Here is the code:
---
{source_code}
---"""

USER_TEMPLATE_COMMIT_SUMMARY = """Please summarise the following diff:

{diff}"""

USER_TEMPLATE_ANSWER = """## Context
{context}

## Question
{question}"""


# =============================================================================
# Templates
# =============================================================================

CODE_SUMMARY_TEMPLATE = PromptTemplate(
    kind=PromptKind.CODE_SUMMARY,
    system_prompt=SYSTEM_PROMPT_CODE_SUMMARY,
    user_template=USER_TEMPLATE_CODE_SUMMARY,
    max_tokens=512,
)

COMMIT_SUMMARY_TEMPLATE = PromptTemplate(
    kind=PromptKind.COMMIT_SUMMARY,
    system_prompt=SYSTEM_PROMPT_COMMIT_SUMMARY,
    user_template=USER_TEMPLATE_COMMIT_SUMMARY,
    max_tokens=512,
)

ANSWER_TEMPLATE = PromptTemplate(
    kind=PromptKind.ANSWER,
    system_prompt=SYSTEM_PROMPT_ANSWER,
    user_template=USER_TEMPLATE_ANSWER,
    max_tokens=4096,
)


_TEMPLATES: dict[PromptKind, PromptTemplate] = {
    PromptKind.CODE_SUMMARY: CODE_SUMMARY_TEMPLATE,
    PromptKind.COMMIT_SUMMARY: COMMIT_SUMMARY_TEMPLATE,
    PromptKind.ANSWER: ANSWER_TEMPLATE,
}


def get_prompt_template(kind: PromptKind) -> PromptTemplate:
    """Get the prompt template for a kind of call.

    Args:
        kind: Kind of LLM call.

    Returns:
        The matching prompt template.
    """
    return _TEMPLATES[kind]
