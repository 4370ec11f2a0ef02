"""Repository indexing pipeline.

This module provides the IndexingPipeline class which turns a GitHub
repository into embedding rows of a project. It runs three stages in order:
the fetcher loads the files, the assembler summarizes and embeds them, and
the writer persists them. Per-file failures in the last two stages are
counted, not raised; the pipeline only fails when no file was persisted.
"""

import time
from collections.abc import Callable

import structlog

from core.errors import UserFacingError

from .assembler import EmbeddingAssembler
from .fetcher import RepositoryFetcher
from .models import IndexingResult
from .writer import PersistenceWriter

logger = structlog.get_logger(__name__)


# Called with (stage, item count) after each stage completes
ProgressCallback = Callable[[str, int], None]


class IndexingFailedError(UserFacingError):
    """No file of the repository could be indexed."""

    def __init__(self, result: IndexingResult | None = None) -> None:
        super().__init__("Failed to index any files from the repository")
        self.result = result


class IndexingPipeline:
    """Orchestrates fetch, assembly and persistence for one repository.

    Attributes:
        fetcher: Loads repository files.
        assembler: Summarizes and embeds files.
        writer: Persists embedded files.
    """

    def __init__(
        self,
        fetcher: RepositoryFetcher,
        assembler: EmbeddingAssembler,
        writer: PersistenceWriter,
    ) -> None:
        """Initialize the IndexingPipeline.

        Args:
            fetcher: Repository fetcher.
            assembler: Embedding assembler.
            writer: Persistence writer.
        """
        self.fetcher = fetcher
        self.assembler = assembler
        self.writer = writer

    async def index(
        self,
        project_id: str,
        url: str,
        access_token: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> IndexingResult:
        """Index a repository into a project.

        Args:
            project_id: Project receiving the embedding rows.
            url: Repository URL.
            access_token: Optional token for private repositories.
            progress_callback: Optional callback invoked after each stage
                with the stage name and the number of items it produced.

        Returns:
            IndexingResult where ``success_count + error_count == total_files``.

        Raises:
            IndexingFailedError: If no file was persisted.
        """
        start_time = time.time()
        log = logger.bind(project_id=project_id, url=url)
        log.info("indexing_started")

        documents = await self.fetcher.load(url, access_token)
        if progress_callback:
            progress_callback("fetch", len(documents))

        assembly = await self.assembler.assemble(documents)
        if progress_callback:
            progress_callback("assemble", len(assembly.documents))

        written = await self.writer.write(project_id, assembly.documents)
        if progress_callback:
            progress_callback("write", written.success_count)

        errors = assembly.errors + written.errors
        result = IndexingResult(
            project_id=project_id,
            total_files=len(documents),
            success_count=written.success_count,
            error_count=len(errors),
            errors=errors,
            duration_ms=int((time.time() - start_time) * 1000),
        )

        log.info(
            "indexing_complete",
            total_files=result.total_files,
            success_count=result.success_count,
            error_count=result.error_count,
            duration_ms=result.duration_ms,
        )

        if result.success_count == 0:
            raise IndexingFailedError(result)

        return result
