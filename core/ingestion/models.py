"""Pydantic models for the ingestion module.

This module defines the data models used while indexing a repository and
polling its commits: repository references, fetched and embedded documents,
per-file errors, stage results and ingestion configuration.
"""

from pydantic import BaseModel, Field


class RepositoryRef(BaseModel):
    """A validated reference to a GitHub repository.

    Attributes:
        owner: Account or organization that owns the repository.
        repo: Repository name.
        url: The URL the reference was parsed from.
    """

    owner: str = Field(..., description="Repository owner")
    repo: str = Field(..., description="Repository name")
    url: str = Field(..., description="Original repository URL")

    class Config:
        """Pydantic model configuration."""

        frozen = True
        extra = "forbid"

    @property
    def full_name(self) -> str:
        """Return ``owner/repo``."""
        return f"{self.owner}/{self.repo}"


class SourceDocument(BaseModel):
    """A text file fetched from a repository.

    Attributes:
        file_name: Path of the file relative to the repository root.
        source_code: Decoded file contents.
    """

    file_name: str = Field(..., min_length=1, description="Path relative to repo root")
    source_code: str = Field(..., description="Decoded file contents")

    class Config:
        """Pydantic model configuration."""

        frozen = True
        extra = "forbid"


class EmbeddedDocument(BaseModel):
    """A document with its summary and the embedding of that summary."""

    file_name: str = Field(..., min_length=1, description="Path relative to repo root")
    source_code: str = Field(..., description="Decoded file contents")
    summary: str = Field(..., description="AI summary of the file")
    embedding: list[float] = Field(..., min_length=1, description="Summary embedding vector")

    class Config:
        """Pydantic model configuration."""

        frozen = True
        extra = "forbid"


class IngestionError(BaseModel):
    """Details about an error during ingestion.

    Attributes:
        file_path: Path to the file that caused the error.
        error_type: Type/class of the error.
        message: Human-readable error message.
        stage: Pipeline stage that failed (``assemble`` or ``write``).
    """

    file_path: str = Field(..., description="Path to the problematic file")
    error_type: str = Field(..., description="Error type/class name")
    message: str = Field(..., description="Error message")
    stage: str = Field("assemble", description="Stage that failed")

    class Config:
        """Pydantic model configuration."""

        frozen = False
        extra = "forbid"

    @classmethod
    def from_exception(cls, file_path: str, error: BaseException, stage: str) -> "IngestionError":
        """Build an error entry from a raised exception."""
        return cls(
            file_path=file_path,
            error_type=type(error).__name__,
            message=str(error),
            stage=stage,
        )


class AssemblyResult(BaseModel):
    """Outcome of summarizing and embedding a batch of documents."""

    documents: list[EmbeddedDocument] = Field(default_factory=list)
    errors: list[IngestionError] = Field(default_factory=list)


class WriteResult(BaseModel):
    """Outcome of persisting a batch of embedded documents.

    Attributes:
        success_count: Documents whose row and vector were committed.
        error_count: Documents that failed to persist.
        errors: One entry per failed document.
    """

    success_count: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    errors: list[IngestionError] = Field(default_factory=list)


class IndexingResult(BaseModel):
    """Result of indexing a repository into a project.

    Attributes:
        project_id: Project the embeddings belong to.
        total_files: Number of documents fetched from the repository.
        success_count: Documents fully persisted.
        error_count: Documents that failed in any stage.
        errors: Errors encountered during indexing.
        duration_ms: Total indexing time in milliseconds.
    """

    project_id: str = Field(..., description="Project identifier")
    total_files: int = Field(..., ge=0, description="Documents fetched")
    success_count: int = Field(..., ge=0, description="Documents persisted")
    error_count: int = Field(..., ge=0, description="Documents that failed")
    errors: list[IngestionError] = Field(default_factory=list, description="Errors encountered")
    duration_ms: int = Field(0, ge=0, description="Indexing duration in ms")

    class Config:
        """Pydantic model configuration."""

        frozen = False
        extra = "forbid"

    @property
    def success_rate(self) -> float:
        """Calculate the success rate of file processing.

        Returns:
            Percentage of files persisted without errors (0.0 to 100.0).
        """
        if self.total_files == 0:
            return 100.0
        return (self.success_count / self.total_files) * 100.0


DEFAULT_IGNORE_PATTERNS = [
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "node_modules/**",
    "dist/**",
    "build/**",
    ".next/**",
    "coverage/**",
]


class IngestionConfig(BaseModel):
    """Configuration for repository ingestion.

    Attributes:
        ignore_patterns: Glob patterns of repository paths to skip.
        branch: Branch to load, None for the repository's default branch.
        max_concurrency: Maximum file content requests in flight.
        max_file_size_kb: Maximum file size to fetch in kilobytes.
        assembly_concurrency: Maximum documents summarized at once, None for
            no limit.
    """

    ignore_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS),
        description="Glob patterns for paths to skip",
    )
    branch: str | None = Field("main", description="Branch to load")
    max_concurrency: int = Field(5, ge=1, description="Concurrent content fetches")
    max_file_size_kb: int = Field(500, ge=1, description="Maximum file size in kilobytes")
    assembly_concurrency: int | None = Field(
        None, ge=1, description="Concurrent summarize+embed tasks, None for unbounded"
    )

    class Config:
        """Pydantic model configuration."""

        frozen = False
        extra = "forbid"
