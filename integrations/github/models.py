"""Pydantic models for GitHub integration.

This module defines data models for the GitHub entities StackAlchemy reads:
repositories, git trees, commits and the files changed by a commit.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FileStatus(str, Enum):
    """File change status in a commit."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    COPIED = "copied"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class TreeEntryType(str, Enum):
    """Git object types found in a tree listing."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


class GitHubUser(BaseModel):
    """GitHub user model."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="User ID")
    login: str = Field(..., description="Username")
    name: str | None = Field(None, description="Display name")
    avatar_url: str | None = Field(None, description="Avatar URL")
    html_url: str | None = Field(None, description="Profile URL")


class GitHubRepository(BaseModel):
    """GitHub repository model."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Repository ID")
    name: str = Field(..., description="Repository name")
    full_name: str = Field(..., description="Full name (owner/repo)")
    owner: GitHubUser = Field(..., description="Repository owner")
    private: bool = Field(default=False, description="Is private repository")
    html_url: str = Field(..., description="Repository URL")
    default_branch: str = Field(default="main", description="Default branch")
    language: str | None = Field(None, description="Primary language")
    description: str | None = Field(None, description="Repository description")


class GitTreeEntry(BaseModel):
    """A single entry of a recursive git tree listing."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to the repository root")
    type: TreeEntryType = Field(..., description="Git object type")
    sha: str = Field(..., description="Object SHA")
    size: int | None = Field(None, description="Blob size in bytes")


class GitHubFile(BaseModel):
    """A file changed by a commit."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="File path")
    status: FileStatus = Field(..., description="Change status")
    additions: int = Field(default=0, description="Lines added")
    deletions: int = Field(default=0, description="Lines deleted")
    changes: int = Field(default=0, description="Total changes")
    patch: str | None = Field(None, description="Diff patch")
    previous_filename: str | None = Field(None, description="Previous name if renamed")


class GitHubCommit(BaseModel):
    """GitHub commit model.

    ``author_name`` and ``timestamp`` come from the git metadata of the commit,
    ``author`` from the linked GitHub account when there is one.
    """

    model_config = ConfigDict(frozen=True)

    sha: str = Field(..., description="Commit SHA")
    message: str = Field(..., description="Commit message")
    author: GitHubUser | None = Field(None, description="Linked GitHub account")
    author_name: str = Field(default="", description="Git author name")
    html_url: str | None = Field(None, description="Commit URL")
    timestamp: datetime | None = Field(None, description="Git author date")
    files: list[GitHubFile] = Field(default_factory=list, description="Changed files")
    parents: list[str] = Field(default_factory=list, description="Parent commit SHAs")

    @property
    def author_avatar(self) -> str:
        """Avatar URL of the linked account, empty when unlinked."""
        if self.author and self.author.avatar_url:
            return self.author.avatar_url
        return ""
