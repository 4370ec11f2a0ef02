"""AI summaries of source files and commit diffs."""

import structlog

from core.llm import LLMClient, PromptKind, get_prompt_template

from .models import SourceDocument

logger = structlog.get_logger(__name__)


class Summarizer:
    """Produces short natural-language summaries with an LLM.

    Attributes:
        llm: LLM client used for completions.
        max_source_chars: Characters of source code sent per file.
    """

    def __init__(self, llm: LLMClient, max_source_chars: int = 10_000) -> None:
        self.llm = llm
        self.max_source_chars = max_source_chars
        self._code_template = get_prompt_template(PromptKind.CODE_SUMMARY)
        self._commit_template = get_prompt_template(PromptKind.COMMIT_SUMMARY)

    async def summarize_code(self, document: SourceDocument) -> str:
        """Summarize the purpose of one source file.

        Only the first ``max_source_chars`` characters of the file are sent.

        Args:
            document: The file to summarize.

        Returns:
            The trimmed summary text.
        """
        user = self._code_template.format_user_message(
            file_name=document.file_name,
            source_code=document.source_code[: self.max_source_chars],
        )
        response = await self.llm.complete(
            self._code_template.system_prompt,
            user,
            max_tokens=self._code_template.max_tokens,
        )
        logger.debug(
            "code_summarized",
            file_name=document.file_name,
            output_tokens=response.output_tokens,
        )
        return response.content.strip()

    async def summarize_commit(self, diff: str) -> str:
        """Summarize a concatenated commit diff.

        Args:
            diff: Diff text of every changed file.

        Returns:
            The trimmed summary text.
        """
        user = self._commit_template.format_user_message(diff=diff)
        response = await self.llm.complete(
            self._commit_template.system_prompt,
            user,
            max_tokens=self._commit_template.max_tokens,
        )
        return response.content.strip()
