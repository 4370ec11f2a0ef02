"""Commit polling for projects.

This module provides the CommitPoller class which fetches the latest commits
of a project's repository, summarizes the ones not stored yet and inserts
them. Re-polling is idempotent: hashes already stored are filtered out, and
the insert skips any hash a concurrent poll stored in the meantime.
"""

import asyncio

import structlog

from core.db import NewCommit, ProjectStore
from core.errors import NotFoundError
from integrations.github import GitHubClient, GitHubCommit, GitHubFile

from .fetcher import parse_repository_url
from .models import RepositoryRef
from .summarizer import Summarizer

logger = structlog.get_logger(__name__)


class ProjectNotFoundError(NotFoundError):
    """The project to poll does not exist."""

    def __init__(self, project_id: str) -> None:
        super().__init__("Project not found")
        self.project_id = project_id


def format_commit_diff(files: list[GitHubFile]) -> str:
    """Concatenate the changed files of a commit into one diff text.

    Each file contributes ``File: <name>``, ``Changes: <n>`` and its patch;
    files are separated by a blank line.
    """
    return "\n\n".join(
        f"File: {file.filename}\nChanges: {file.changes}\n{file.patch or ''}" for file in files
    )


class CommitPoller:
    """Stores new commits of a project's repository with AI summaries.

    Attributes:
        store: Relational store.
        github: GitHub client, authenticated with the server token.
        summarizer: Produces commit summaries.
        commit_limit: Number of most recent commits inspected per poll.
    """

    def __init__(
        self,
        store: ProjectStore,
        github: GitHubClient,
        summarizer: Summarizer,
        commit_limit: int = 10,
    ) -> None:
        """Initialize the poller.

        Args:
            store: Relational store.
            github: GitHub client.
            summarizer: Commit summarizer.
            commit_limit: Commits inspected per poll (one API page).
        """
        self.store = store
        self.github = github
        self.summarizer = summarizer
        self.commit_limit = commit_limit
        self._logger = logger.bind(component="commit_poller")

    async def poll(self, project_id: str) -> list[NewCommit]:
        """Fetch, summarize and store the project's new commits.

        Args:
            project_id: Project to poll.

        Returns:
            The commits that were not stored before this poll, newest first.

        Raises:
            ProjectNotFoundError: If the project does not exist.
        """
        project = await self.store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        ref = parse_repository_url(project.github_url)
        recent = await self.github.list_commits(ref.owner, ref.repo, per_page=self.commit_limit)

        stored = await self.store.list_commit_hashes(project_id)
        unprocessed = [commit for commit in recent if commit.sha not in stored]

        if not unprocessed:
            self._logger.debug("no_new_commits", project_id=project_id)
            return []

        summaries = await asyncio.gather(
            *(self._summarize(ref, commit.sha) for commit in unprocessed)
        )

        new_commits = [
            self._to_new_commit(project_id, commit, summary)
            for commit, summary in zip(unprocessed, summaries, strict=True)
        ]
        inserted = await self.store.insert_commits(new_commits)

        self._logger.info(
            "commits_polled",
            project_id=project_id,
            fetched=len(recent),
            new=len(new_commits),
            inserted=inserted,
        )
        return new_commits

    async def _summarize(self, ref: RepositoryRef, sha: str) -> str:
        """Summarize one commit; any failure yields an empty summary."""
        try:
            commit = await self.github.get_commit(ref.owner, ref.repo, sha)
            return await self.summarizer.summarize_commit(format_commit_diff(commit.files))
        except Exception as e:
            self._logger.warning(
                "commit_summary_failed",
                repository=ref.full_name,
                sha=sha,
                error=str(e),
            )
            return ""

    @staticmethod
    def _to_new_commit(project_id: str, commit: GitHubCommit, summary: str) -> NewCommit:
        return NewCommit(
            project_id=project_id,
            commit_hash=commit.sha,
            commit_message=commit.message,
            commit_author_name=commit.author_name,
            commit_author_avatar=commit.author_avatar,
            commit_date=commit.timestamp,
            summary=summary,
        )
