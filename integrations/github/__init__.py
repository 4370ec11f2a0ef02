"""GitHub integration for StackAlchemy.

This module provides read-only GitHub access:
- GitHub API client for repositories, trees, file contents and commits
- Pydantic models for the returned entities
"""

from .client import GitHubAPIError, GitHubClient, GitHubClientConfig, GitHubClientError
from .models import (
    FileStatus,
    GitHubCommit,
    GitHubFile,
    GitHubRepository,
    GitHubUser,
    GitTreeEntry,
    TreeEntryType,
)

__all__ = [
    # Client
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubClientError",
    "GitHubAPIError",
    # Models
    "FileStatus",
    "GitHubCommit",
    "GitHubFile",
    "GitHubRepository",
    "GitHubUser",
    "GitTreeEntry",
    "TreeEntryType",
]
