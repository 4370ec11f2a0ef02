"""GitHub API client for StackAlchemy.

This module provides an async client for the read-only parts of the GitHub
REST API the ingestion pipeline and commit poller rely on. Authentication is
a bearer token: either the server token from configuration or a per-call
token supplied by the user for private repositories.
"""

import base64
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .models import (
    FileStatus,
    GitHubCommit,
    GitHubFile,
    GitHubRepository,
    GitHubUser,
    GitTreeEntry,
    TreeEntryType,
)

logger = structlog.get_logger(__name__)


class GitHubClientError(Exception):
    """Base exception for GitHub client errors."""

    pass


class GitHubAPIError(GitHubClientError):
    """The GitHub API answered with an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"GitHub API error: {status_code} - {message}")
        self.status_code = status_code


class GitHubClientConfig(BaseModel):
    """Configuration for GitHub client."""

    model_config = ConfigDict(frozen=True)

    access_token: str | None = Field(None, description="Default bearer token")
    base_url: str = Field(default="https://api.github.com", description="API base URL")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Maximum retry attempts")


class GitHubClient:
    """Async GitHub API client.

    Provides repository, tree, content and commit lookups. Every public method
    accepts an optional ``access_token`` that takes precedence over the
    configured token for that call only.
    """

    def __init__(
        self,
        config: GitHubClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            config: Client configuration.
            transport: Optional httpx transport, used by tests.
        """
        self.config = config
        self._transport = transport
        self._logger = logger.bind(component="github_client")
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubClient":
        """Enter async context."""
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={"Accept": "application/vnd.github+json"},
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_auth_header(self, access_token: str | None = None) -> dict[str, str]:
        """Get authorization header for API requests.

        Args:
            access_token: Per-call token overriding the configured one.

        Returns:
            Dict with Authorization header, empty for anonymous access.
        """
        token = access_token or self.config.access_token
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any] | list[Any]:
        """Make an authenticated API request.

        Server errors are retried up to ``max_retries`` times.

        Args:
            method: HTTP method.
            path: API path.
            params: Query parameters.
            access_token: Per-call token.

        Returns:
            Response JSON data.

        Raises:
            GitHubAPIError: If GitHub answers with an error status.
        """
        client = await self._ensure_client()
        headers = self._get_auth_header(access_token)

        for attempt in range(self.config.max_retries):
            response = await client.request(
                method=method,
                url=path,
                params=params,
                headers=headers,
            )

            if response.status_code >= 500 and attempt < self.config.max_retries - 1:
                self._logger.warning(
                    "request_failed_retrying",
                    path=path,
                    attempt=attempt + 1,
                    status=response.status_code,
                )
                continue

            if response.is_error:
                raise GitHubAPIError(response.status_code, self._error_message(response))

            result: dict[str, Any] | list[Any] = response.json()
            return result

        raise GitHubClientError("Max retries exceeded")

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract GitHub's error message from a response body."""
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text

    # Repository operations

    async def get_repository(
        self, owner: str, repo: str, access_token: str | None = None
    ) -> GitHubRepository:
        """Get repository information.

        Args:
            owner: Repository owner.
            repo: Repository name.
            access_token: Optional per-call token.

        Returns:
            GitHubRepository object.
        """
        data = await self._request("GET", f"/repos/{owner}/{repo}", access_token=access_token)
        return self._parse_repository(data)  # type: ignore[arg-type]

    async def get_tree(
        self,
        owner: str,
        repo: str,
        ref: str,
        access_token: str | None = None,
    ) -> list[GitTreeEntry]:
        """List every entry of a git tree recursively.

        Args:
            owner: Repository owner.
            repo: Repository name.
            ref: Branch, tag or tree SHA.
            access_token: Optional per-call token.

        Returns:
            Flat list of tree entries.
        """
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{quote(ref, safe='')}",
            params={"recursive": "1"},
            access_token=access_token,
        )
        if not isinstance(data, dict):
            return []

        if data.get("truncated"):
            self._logger.warning("tree_truncated", owner=owner, repo=repo, ref=ref)

        return [self._parse_tree_entry(entry) for entry in data.get("tree", [])]

    async def get_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
        access_token: str | None = None,
    ) -> str:
        """Get file content from repository.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path.
            ref: Git reference (branch, tag, sha).
            access_token: Optional per-call token.

        Returns:
            File content as string.

        Raises:
            UnicodeDecodeError: If the file is not UTF-8 text.
        """
        params = {"ref": ref} if ref else None
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            params=params,
            access_token=access_token,
        )

        if isinstance(data, dict) and data.get("encoding") == "base64":
            content = data.get("content", "")
            return base64.b64decode(content).decode("utf-8")

        return ""

    # Commit operations

    async def list_commits(
        self,
        owner: str,
        repo: str,
        per_page: int = 10,
        access_token: str | None = None,
    ) -> list[GitHubCommit]:
        """List the most recent commits of the default branch.

        Args:
            owner: Repository owner.
            repo: Repository name.
            per_page: Number of commits to return (one page).
            access_token: Optional per-call token.

        Returns:
            Commits, newest first, without file details.
        """
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/commits",
            params={"per_page": per_page},
            access_token=access_token,
        )
        return [self._parse_commit(c) for c in data]  # type: ignore[arg-type]

    async def get_commit(
        self,
        owner: str,
        repo: str,
        sha: str,
        access_token: str | None = None,
    ) -> GitHubCommit:
        """Get commit details including changed files and patches.

        Args:
            owner: Repository owner.
            repo: Repository name.
            sha: Commit SHA.
            access_token: Optional per-call token.

        Returns:
            GitHubCommit object.
        """
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/commits/{sha}", access_token=access_token
        )
        return self._parse_commit(data)  # type: ignore[arg-type]

    # Parsing helpers

    def _parse_user(self, data: dict[str, Any] | None) -> GitHubUser | None:
        """Parse user data."""
        if not data or "id" not in data:
            return None
        return GitHubUser(
            id=data["id"],
            login=data["login"],
            name=data.get("name"),
            avatar_url=data.get("avatar_url"),
            html_url=data.get("html_url"),
        )

    def _parse_repository(self, data: dict[str, Any]) -> GitHubRepository:
        """Parse repository data."""
        owner = self._parse_user(data.get("owner"))
        if not owner:
            owner = GitHubUser(id=0, login="unknown")

        return GitHubRepository(
            id=data["id"],
            name=data["name"],
            full_name=data["full_name"],
            owner=owner,
            private=data.get("private", False),
            html_url=data["html_url"],
            default_branch=data.get("default_branch", "main"),
            language=data.get("language"),
            description=data.get("description"),
        )

    def _parse_tree_entry(self, data: dict[str, Any]) -> GitTreeEntry:
        """Parse a tree listing entry."""
        return GitTreeEntry(
            path=data["path"],
            type=TreeEntryType(data.get("type", "blob")),
            sha=data.get("sha", ""),
            size=data.get("size"),
        )

    def _parse_file(self, data: dict[str, Any]) -> GitHubFile:
        """Parse file data."""
        return GitHubFile(
            filename=data["filename"],
            status=FileStatus(data.get("status", "modified")),
            additions=data.get("additions", 0),
            deletions=data.get("deletions", 0),
            changes=data.get("changes", 0),
            patch=data.get("patch"),
            previous_filename=data.get("previous_filename"),
        )

    def _parse_commit(self, data: dict[str, Any]) -> GitHubCommit:
        """Parse commit data."""
        commit_data = data.get("commit") or {}
        git_author = commit_data.get("author") or {}

        return GitHubCommit(
            sha=data["sha"],
            message=commit_data.get("message") or "",
            author=self._parse_user(data.get("author")),
            author_name=git_author.get("name") or "",
            html_url=data.get("html_url"),
            timestamp=git_author.get("date"),
            files=[self._parse_file(f) for f in data.get("files", [])],
            parents=[p["sha"] for p in data.get("parents", [])],
        )
