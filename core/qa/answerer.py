"""Retrieval-augmented question answering over an indexed project.

The question is embedded, the closest file summaries of the project are
selected by cosine similarity, and the LLM answer is streamed with those
files as context. The selected files are known before the first answer
chunk, so callers can show references while the answer is still streaming.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from core.db import FileReference, ProjectStore, RetrievedFile
from core.embeddings import EmbeddingClient, InputType
from core.llm import LLMClient, PromptKind, get_prompt_template

logger = structlog.get_logger(__name__)


@dataclass
class AnswerStream:
    """Files used as context and the streamed answer text.

    Attributes:
        files_references: Files selected for the question, most similar first.
        chunks: Async iterator of answer text chunks.
    """

    files_references: list[FileReference]
    chunks: AsyncIterator[str]


def build_context(files: list[RetrievedFile]) -> str:
    """Format retrieved files into the context block of the answer prompt."""
    return "\n\n".join(
        f"source: {file.file_name}\n"
        f"code content: {file.source_code}\n"
        f"summary of file: {file.summary}"
        for file in files
    )


class QuestionAnswerer:
    """Answers questions about a project's code.

    Attributes:
        store: Relational store holding the embeddings.
        embedder: Embeds the question.
        llm: Generates the answer.
        top_k: Maximum files used as context.
        min_similarity: Files at or below this cosine similarity are ignored.
    """

    def __init__(
        self,
        store: ProjectStore,
        embedder: EmbeddingClient,
        llm: LLMClient,
        top_k: int = 10,
        min_similarity: float = 0.5,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.llm = llm
        self.top_k = top_k
        self.min_similarity = min_similarity
        self._template = get_prompt_template(PromptKind.ANSWER)
        self._logger = logger.bind(component="question_answerer")

    async def retrieve(self, project_id: str, question: str) -> list[RetrievedFile]:
        """Find the project files most relevant to a question."""
        embedding = await self.embedder.embed(question, InputType.QUERY)
        return await self.store.search_embeddings(
            project_id,
            embedding.vector,
            limit=self.top_k,
            min_similarity=self.min_similarity,
        )

    async def ask(self, project_id: str, question: str) -> AnswerStream:
        """Answer a question about a project.

        Args:
            project_id: Project whose code is searched.
            question: Natural-language question.

        Returns:
            The files used as context and the answer stream.
        """
        files = await self.retrieve(project_id, question)
        self._logger.info(
            "context_retrieved",
            project_id=project_id,
            files=len(files),
            top_similarity=files[0].similarity if files else None,
        )

        user = self._template.format_user_message(
            context=build_context(files),
            question=question,
        )
        chunks = self.llm.stream(
            self._template.system_prompt,
            user,
            max_tokens=self._template.max_tokens,
        )
        return AnswerStream(
            files_references=[file.to_reference() for file in files],
            chunks=chunks,
        )
