"""Repository fetching for the ingestion pipeline.

This module validates GitHub repository URLs and loads every text file of a
repository through the GitHub API. Paths matching the ignore list and files
above the size limit are skipped; content requests run with bounded
concurrency.
"""

import asyncio
import fnmatch
import re

import structlog

from core.errors import UserFacingError
from integrations.github import GitHubAPIError, GitHubClient, GitTreeEntry, TreeEntryType

from .models import IngestionConfig, RepositoryRef, SourceDocument

logger = structlog.get_logger(__name__)

GITHUB_URL_PATTERN = re.compile(r"https://github\.com/([\w-]+)/([\w-]+)", re.ASCII)


class InvalidRepositoryUrlError(UserFacingError):
    """The URL is not of the form https://github.com/owner/repo."""

    def __init__(self, url: str) -> None:
        super().__init__(
            "Invalid GitHub repository URL format. "
            "Expected format: https://github.com/owner/repo"
        )
        self.url = url


class RepositoryNotFoundError(UserFacingError):
    """GitHub reported the repository (or branch) as missing."""

    def __init__(self) -> None:
        super().__init__(
            "Repository not found. Please check the URL and ensure you have "
            "access to the repository."
        )


class RepositoryAccessError(UserFacingError):
    """GitHub refused access to the repository."""

    def __init__(self) -> None:
        super().__init__("Access denied. Please check your GitHub token for private repositories.")


class EmptyRepositoryError(UserFacingError):
    """The repository yielded no loadable files."""

    def __init__(self) -> None:
        super().__init__(
            "No files found in the repository. Please check the repository URL "
            "and access permissions."
        )


def parse_repository_url(url: str) -> RepositoryRef:
    """Validate a repository URL and split it into owner and name.

    Args:
        url: Candidate URL.

    Returns:
        The parsed repository reference.

    Raises:
        InvalidRepositoryUrlError: If the URL does not match the expected form.
    """
    match = GITHUB_URL_PATTERN.fullmatch(url)
    if match is None:
        raise InvalidRepositoryUrlError(url)
    return RepositoryRef(owner=match.group(1), repo=match.group(2), url=url)


def is_ignored(path: str, patterns: list[str]) -> bool:
    """Check a repository path against ignore globs.

    Patterns without a slash match the file's base name anywhere in the tree;
    patterns with a slash match from the root or below any directory.
    """
    base_name = path.rsplit("/", 1)[-1]
    for pattern in patterns:
        if "/" not in pattern:
            if fnmatch.fnmatchcase(base_name, pattern):
                return True
        elif fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(path, f"*/{pattern}"):
            return True
    return False


class RepositoryFetcher:
    """Loads the text files of a GitHub repository.

    Attributes:
        github: GitHub API client.
        config: Ingestion configuration (branch, ignore list, limits).
    """

    def __init__(self, github: GitHubClient, config: IngestionConfig | None = None) -> None:
        """Initialize the fetcher.

        Args:
            github: GitHub API client.
            config: Ingestion configuration. Uses defaults if not provided.
        """
        self.github = github
        self.config = config or IngestionConfig()
        self._logger = logger.bind(component="repository_fetcher")

    async def load(self, url: str, access_token: str | None = None) -> list[SourceDocument]:
        """Load every eligible file of a repository.

        Args:
            url: Repository URL, validated before any network call.
            access_token: Optional token for private repositories.

        Returns:
            Documents in tree order.

        Raises:
            InvalidRepositoryUrlError: If the URL is malformed.
            RepositoryNotFoundError: If GitHub answers 404.
            RepositoryAccessError: If GitHub answers 401 or 403.
            EmptyRepositoryError: If no file could be loaded.
        """
        ref = parse_repository_url(url)

        try:
            documents = await self._load(ref, access_token)
        except GitHubAPIError as e:
            if e.status_code == 404:
                raise RepositoryNotFoundError() from e
            if e.status_code in (401, 403):
                raise RepositoryAccessError() from e
            raise

        if not documents:
            raise EmptyRepositoryError()

        self._logger.info("repository_loaded", repository=ref.full_name, files=len(documents))
        return documents

    async def _load(self, ref: RepositoryRef, access_token: str | None) -> list[SourceDocument]:
        branch = self.config.branch
        if branch is None:
            repository = await self.github.get_repository(ref.owner, ref.repo, access_token)
            branch = repository.default_branch

        entries = await self.github.get_tree(ref.owner, ref.repo, branch, access_token)
        files = [entry for entry in entries if self._should_fetch(entry)]

        self._logger.debug(
            "tree_listed",
            repository=ref.full_name,
            branch=branch,
            entries=len(entries),
            files=len(files),
        )

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def fetch(entry: GitTreeEntry) -> SourceDocument | None:
            async with semaphore:
                try:
                    content = await self.github.get_file_content(
                        ref.owner, ref.repo, entry.path, branch, access_token
                    )
                except UnicodeDecodeError:
                    self._logger.warning("unsupported_file_skipped", path=entry.path)
                    return None
                except GitHubAPIError as e:
                    self._logger.warning(
                        "file_fetch_failed", path=entry.path, status_code=e.status_code
                    )
                    return None
            return SourceDocument(file_name=entry.path, source_code=content)

        results = await asyncio.gather(*(fetch(entry) for entry in files))
        return [doc for doc in results if doc is not None]

    def _should_fetch(self, entry: GitTreeEntry) -> bool:
        if entry.type != TreeEntryType.BLOB:
            return False
        if is_ignored(entry.path, self.config.ignore_patterns):
            return False
        if entry.size is not None and entry.size > self.config.max_file_size_kb * 1024:
            self._logger.debug("large_file_skipped", path=entry.path, size=entry.size)
            return False
        return True
