"""Ingestion module for repository indexing and commit polling.

This module loads the files of a GitHub repository, summarizes and embeds
each of them, persists the results into a project, and keeps the project's
commit history up to date.

Example:
    >>> pipeline = IndexingPipeline(fetcher, assembler, writer)
    >>> result = await pipeline.index(project_id, "https://github.com/acme/widgets")
    >>> print(f"Indexed {result.success_count}/{result.total_files} files")

    >>> new_commits = await CommitPoller(store, github, summarizer).poll(project_id)
"""

from .assembler import EmbeddingAssembler
from .commits import CommitPoller, ProjectNotFoundError, format_commit_diff
from .fetcher import (
    EmptyRepositoryError,
    InvalidRepositoryUrlError,
    RepositoryAccessError,
    RepositoryFetcher,
    RepositoryNotFoundError,
    is_ignored,
    parse_repository_url,
)
from .models import (
    DEFAULT_IGNORE_PATTERNS,
    AssemblyResult,
    EmbeddedDocument,
    IndexingResult,
    IngestionConfig,
    IngestionError,
    RepositoryRef,
    SourceDocument,
    WriteResult,
)
from .pipeline import IndexingFailedError, IndexingPipeline, ProgressCallback
from .summarizer import Summarizer
from .writer import PersistenceWriter

__all__ = [
    # Main pipeline
    "IndexingPipeline",
    "IndexingFailedError",
    "ProgressCallback",
    # Stages
    "RepositoryFetcher",
    "Summarizer",
    "EmbeddingAssembler",
    "PersistenceWriter",
    # Commits
    "CommitPoller",
    "ProjectNotFoundError",
    "format_commit_diff",
    # Fetcher errors and helpers
    "InvalidRepositoryUrlError",
    "RepositoryNotFoundError",
    "RepositoryAccessError",
    "EmptyRepositoryError",
    "is_ignored",
    "parse_repository_url",
    # Models
    "DEFAULT_IGNORE_PATTERNS",
    "AssemblyResult",
    "EmbeddedDocument",
    "IndexingResult",
    "IngestionConfig",
    "IngestionError",
    "RepositoryRef",
    "SourceDocument",
    "WriteResult",
]
