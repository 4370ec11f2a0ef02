"""Summarize-then-embed stage of the indexing pipeline.

Every document is processed independently: its summary is generated first,
then the embedding of that summary. A failure in either step drops the
document and records an ``IngestionError``; the other documents are not
affected.
"""

import asyncio

import structlog

from core.embeddings import EmbeddingClient, InputType

from .models import AssemblyResult, EmbeddedDocument, IngestionError, SourceDocument
from .summarizer import Summarizer

logger = structlog.get_logger(__name__)


class EmbeddingAssembler:
    """Turns fetched documents into embedded documents.

    Attributes:
        summarizer: Produces the per-file summary.
        embedder: Embeds the summary.
        max_concurrency: Documents processed at once, None for no limit.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        embedder: EmbeddingClient,
        max_concurrency: int | None = None,
    ) -> None:
        """Initialize the assembler.

        Args:
            summarizer: Summarizer instance.
            embedder: Embedding client.
            max_concurrency: Optional cap on concurrent documents.
        """
        self.summarizer = summarizer
        self.embedder = embedder
        self.max_concurrency = max_concurrency
        self._logger = logger.bind(component="embedding_assembler")

    async def assemble(self, documents: list[SourceDocument]) -> AssemblyResult:
        """Summarize and embed every document concurrently.

        Args:
            documents: Documents fetched from the repository.

        Returns:
            The documents that fully succeeded and one error per failure.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def run(document: SourceDocument) -> EmbeddedDocument:
            if semaphore is None:
                return await self._assemble_one(document)
            async with semaphore:
                return await self._assemble_one(document)

        results = await asyncio.gather(
            *(run(document) for document in documents),
            return_exceptions=True,
        )

        assembled: list[EmbeddedDocument] = []
        errors: list[IngestionError] = []
        for document, result in zip(documents, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                errors.append(IngestionError.from_exception(document.file_name, result, "assemble"))
                self._logger.warning(
                    "document_assembly_failed",
                    file_name=document.file_name,
                    error=str(result),
                )
            else:
                assembled.append(result)

        self._logger.info(
            "assembly_complete",
            documents=len(documents),
            assembled=len(assembled),
            errors=len(errors),
        )
        return AssemblyResult(documents=assembled, errors=errors)

    async def _assemble_one(self, document: SourceDocument) -> EmbeddedDocument:
        summary = await self.summarizer.summarize_code(document)
        embedding = await self.embedder.embed(summary, InputType.DOCUMENT)
        return EmbeddedDocument(
            file_name=document.file_name,
            source_code=document.source_code,
            summary=summary,
            embedding=embedding.vector,
        )
