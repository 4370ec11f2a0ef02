"""Persistence stage of the indexing pipeline."""

import asyncio

import structlog

from core.db import ProjectStore

from .models import EmbeddedDocument, IngestionError, WriteResult

logger = structlog.get_logger(__name__)


class PersistenceWriter:
    """Writes embedded documents of a project to the store.

    Each document is written in its own transaction, so a failing document
    leaves no partial row behind and does not affect the others.
    """

    def __init__(self, store: ProjectStore) -> None:
        self.store = store
        self._logger = logger.bind(component="persistence_writer")

    async def write(self, project_id: str, documents: list[EmbeddedDocument]) -> WriteResult:
        """Persist every document concurrently.

        Args:
            project_id: Project the rows belong to.
            documents: Documents with summary and embedding.

        Returns:
            Success and error counts with one error entry per failure.
        """
        results = await asyncio.gather(
            *(
                self.store.insert_source_embedding(
                    project_id=project_id,
                    file_name=document.file_name,
                    source_code=document.source_code,
                    summary=document.summary,
                    embedding=document.embedding,
                )
                for document in documents
            ),
            return_exceptions=True,
        )

        errors: list[IngestionError] = []
        for document, result in zip(documents, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                errors.append(IngestionError.from_exception(document.file_name, result, "write"))
                self._logger.warning(
                    "document_write_failed",
                    project_id=project_id,
                    file_name=document.file_name,
                    error=str(result),
                )

        success_count = len(documents) - len(errors)
        self._logger.info(
            "write_complete",
            project_id=project_id,
            success_count=success_count,
            error_count=len(errors),
        )
        return WriteResult(success_count=success_count, error_count=len(errors), errors=errors)
