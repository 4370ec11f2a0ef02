"""Pydantic models for records of the relational store.

These are the types the store hands to the rest of the application; ORM rows
never leave ``core.db``.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """A registered user."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(..., description="User ID")
    email_address: str | None = Field(None, description="Primary email address")
    created_at: datetime | None = Field(None, description="Creation time")


class Project(BaseModel):
    """A linked GitHub repository.

    Attributes:
        id: Project ID.
        name: Display name.
        github_url: Repository URL.
        created_at: Creation time.
        deleted_at: Soft-delete time, None while the project is active.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(..., description="Project ID")
    name: str = Field(..., description="Display name")
    github_url: str = Field(..., description="Repository URL")
    created_at: datetime | None = Field(None, description="Creation time")
    deleted_at: datetime | None = Field(None, description="Soft-delete time")

    @property
    def is_deleted(self) -> bool:
        """Whether the project has been soft-deleted."""
        return self.deleted_at is not None


class FileReference(BaseModel):
    """A source file used as context for an answer."""

    model_config = ConfigDict(from_attributes=True, frozen=True, extra="forbid")

    file_name: str = Field(..., min_length=1, description="Path of the file in the repository")
    source_code: str = Field(..., description="Raw source text")
    summary: str = Field(..., description="AI summary of the file")


class RetrievedFile(FileReference):
    """A file reference returned by similarity search."""

    similarity: float = Field(..., description="Cosine similarity to the question")

    def to_reference(self) -> FileReference:
        """Drop the score, keeping the stored reference shape."""
        return FileReference(
            file_name=self.file_name,
            source_code=self.source_code,
            summary=self.summary,
        )


class NewCommit(BaseModel):
    """A commit about to be inserted for a project."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    project_id: str = Field(..., description="Owning project ID")
    commit_hash: str = Field(..., description="Commit SHA")
    commit_message: str = Field(default="", description="Commit message")
    commit_author_name: str = Field(default="", description="Git author name")
    commit_author_avatar: str = Field(default="", description="Author avatar URL")
    commit_date: datetime | None = Field(None, description="Git author date")
    summary: str = Field(default="", description="AI summary of the diff")


class Commit(NewCommit):
    """A stored commit."""

    id: str = Field(..., description="Commit row ID")
    created_at: datetime | None = Field(None, description="Insertion time")


class Question(BaseModel):
    """A saved question and its answer."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(..., description="Question ID")
    project_id: str = Field(..., description="Project ID")
    user_id: str = Field(..., description="Asking user ID")
    question: str = Field(..., description="Question text")
    answer: str = Field(..., description="Answer text")
    files_references: list[FileReference] = Field(
        default_factory=list, description="Files used to answer"
    )
    created_at: datetime | None = Field(None, description="Creation time")
