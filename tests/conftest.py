"""Pytest configuration and shared fixtures.

This module provides an in-memory double of ``ProjectStore`` with the same
async interface, plus fixtures for settings, session tokens, the scripted
LLM client, a fake embedder and a GitHub client mock.
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.auth import create_session_token
from api.config import Settings
from core.db import Commit, FileReference, NewCommit, Project, Question, RetrievedFile, User
from core.embeddings import EmbeddingResult
from core.ingestion import (
    CommitPoller,
    EmbeddingAssembler,
    IndexingPipeline,
    PersistenceWriter,
    RepositoryFetcher,
    Summarizer,
)
from core.llm import MockClaudeClient
from core.projects import CommitPollScheduler, ProjectService
from integrations.github import (
    GitHubCommit,
    GitHubFile,
    GitHubUser,
    GitTreeEntry,
    TreeEntryType,
)

TEST_SECRET = "test-session-secret"
EMBEDDING_DIMENSION = 4


class InMemoryProjectStore:
    """In-memory stand-in for ``ProjectStore``.

    Every public call is recorded in ``calls`` so tests can assert that a
    procedure did or did not touch the store. File names listed in
    ``fail_on_insert`` make ``insert_source_embedding`` raise.
    """

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.projects: dict[str, Project] = {}
        self.links: set[tuple[str, str]] = set()
        self.embeddings: dict[str, dict[str, Any]] = {}
        self.commits: list[Commit] = []
        self.questions: list[Question] = []
        self.search_results: list[RetrievedFile] = []
        self.fail_on_insert: set[str] = set()
        self.calls: list[str] = []
        self._clock = datetime(2024, 1, 1, tzinfo=UTC)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def add_user(self, user_id: str = "user-1", email: str = "dev@example.com") -> User:
        user = User(id=user_id, email_address=email, created_at=self._now())
        self.users[user_id] = user
        return user

    def _visible(self, project_id: str, user_id: str) -> bool:
        project = self.projects.get(project_id)
        return (
            project is not None
            and not project.is_deleted
            and (user_id, project_id) in self.links
        )

    async def get_user(self, user_id: str) -> User | None:
        self.calls.append("get_user")
        return self.users.get(user_id)

    async def find_active_project_by_url(self, user_id: str, github_url: str) -> Project | None:
        self.calls.append("find_active_project_by_url")
        for project in self.projects.values():
            if project.github_url == github_url and self._visible(project.id, user_id):
                return project
        return None

    async def create_project(self, user_id: str, name: str, github_url: str) -> Project:
        self.calls.append("create_project")
        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            github_url=github_url,
            created_at=self._now(),
        )
        self.projects[project.id] = project
        self.links.add((user_id, project.id))
        return project

    async def get_project(self, project_id: str) -> Project | None:
        self.calls.append("get_project")
        return self.projects.get(project_id)

    async def get_project_for_user(self, project_id: str, user_id: str) -> Project | None:
        self.calls.append("get_project_for_user")
        if self._visible(project_id, user_id):
            return self.projects[project_id]
        return None

    async def list_projects(self, user_id: str) -> list[Project]:
        self.calls.append("list_projects")
        visible = [p for p in self.projects.values() if self._visible(p.id, user_id)]
        return sorted(visible, key=lambda p: p.created_at or self._clock, reverse=True)

    async def soft_delete_project(self, project_id: str) -> Project:
        self.calls.append("soft_delete_project")
        project = self.projects[project_id].model_copy(update={"deleted_at": self._now()})
        self.projects[project_id] = project
        return project

    async def delete_project_tree(self, project_id: str) -> None:
        self.calls.append("delete_project_tree")
        self.embeddings = {
            k: v for k, v in self.embeddings.items() if v["project_id"] != project_id
        }
        self.links = {link for link in self.links if link[1] != project_id}
        self.commits = [c for c in self.commits if c.project_id != project_id]
        self.questions = [q for q in self.questions if q.project_id != project_id]
        self.projects.pop(project_id, None)

    async def insert_source_embedding(
        self,
        project_id: str,
        file_name: str,
        source_code: str,
        summary: str,
        embedding: list[float],
    ) -> str:
        self.calls.append("insert_source_embedding")
        if file_name in self.fail_on_insert:
            raise RuntimeError(f"insert failed for {file_name}")
        row_id = str(uuid.uuid4())
        self.embeddings[row_id] = {
            "project_id": project_id,
            "file_name": file_name,
            "source_code": source_code,
            "summary": summary,
            "summary_embedding": list(embedding),
        }
        return row_id

    async def delete_embeddings(self, project_id: str) -> int:
        self.calls.append("delete_embeddings")
        before = len(self.embeddings)
        self.embeddings = {
            k: v for k, v in self.embeddings.items() if v["project_id"] != project_id
        }
        return before - len(self.embeddings)

    async def search_embeddings(
        self,
        project_id: str,
        query_vector: list[float],
        limit: int = 10,
        min_similarity: float = 0.5,
    ) -> list[RetrievedFile]:
        self.calls.append("search_embeddings")
        return [r for r in self.search_results if r.similarity > min_similarity][:limit]

    async def list_commit_hashes(self, project_id: str) -> set[str]:
        self.calls.append("list_commit_hashes")
        return {c.commit_hash for c in self.commits if c.project_id == project_id}

    async def insert_commits(self, commits: list[NewCommit]) -> int:
        self.calls.append("insert_commits")
        existing = {(c.project_id, c.commit_hash) for c in self.commits}
        inserted = 0
        for commit in commits:
            key = (commit.project_id, commit.commit_hash)
            if key in existing:
                continue
            existing.add(key)
            self.commits.append(
                Commit(id=str(uuid.uuid4()), created_at=self._now(), **commit.model_dump())
            )
            inserted += 1
        return inserted

    async def list_commits(self, project_id: str) -> list[Commit]:
        self.calls.append("list_commits")
        commits = [c for c in self.commits if c.project_id == project_id]
        return sorted(commits, key=lambda c: c.commit_date or self._clock, reverse=True)

    async def create_question(
        self,
        project_id: str,
        user_id: str,
        question: str,
        answer: str,
        files_references: list[FileReference],
    ) -> Question:
        self.calls.append("create_question")
        saved = Question(
            id=str(uuid.uuid4()),
            project_id=project_id,
            user_id=user_id,
            question=question,
            answer=answer,
            files_references=list(files_references),
            created_at=self._now(),
        )
        self.questions.append(saved)
        return saved

    async def list_questions(self, project_id: str) -> list[Question]:
        self.calls.append("list_questions")
        questions = [q for q in self.questions if q.project_id == project_id]
        return sorted(questions, key=lambda q: q.created_at or self._clock, reverse=True)

    async def health_check(self) -> dict[str, str]:
        return {"status": "healthy"}


# ---------------------------------------------------------------------------
# Store and settings fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryProjectStore:
    """Empty in-memory store with one registered user."""
    memory = InMemoryProjectStore()
    memory.add_user("user-1")
    return memory


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a known session secret."""
    return Settings(session_secret=TEST_SECRET, log_level="WARNING")


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer header for user-1."""
    token = create_session_token("user-1", TEST_SECRET)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# AI client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm() -> MockClaudeClient:
    """Scripted LLM returning a fixed summary."""
    return MockClaudeClient(responses=["A concise summary."])


def make_embedding(text: str, vector: list[float] | None = None) -> EmbeddingResult:
    """Build an embedding result of the test dimension."""
    return EmbeddingResult(
        text=text,
        vector=vector or [0.1] * EMBEDDING_DIMENSION,
        model="test-embedding",
    )


@pytest.fixture
def mock_embedder() -> MagicMock:
    """Embedder returning a constant vector for any text."""
    mock = MagicMock()
    mock.embed = AsyncMock(side_effect=lambda text, *args, **kwargs: make_embedding(text))
    mock.close = AsyncMock()
    return mock


# ---------------------------------------------------------------------------
# GitHub fixtures
# ---------------------------------------------------------------------------


def make_github_commit(
    sha: str,
    message: str = "Update code",
    files: list[GitHubFile] | None = None,
    minute: int = 0,
) -> GitHubCommit:
    """Build a GitHub commit as returned by the client."""
    return GitHubCommit(
        sha=sha,
        message=message,
        author=GitHubUser(id=1, login="octocat", avatar_url="https://avatars.example/octocat"),
        author_name="The Octocat",
        html_url=f"https://github.com/acme/widgets/commit/{sha}",
        timestamp=datetime(2024, 1, 1, 12, minute, tzinfo=UTC),
        files=files or [],
    )


@pytest.fixture
def mock_github() -> MagicMock:
    """GitHub client mock with no commits."""
    mock = MagicMock()
    mock.list_commits = AsyncMock(return_value=[])
    mock.get_commit = AsyncMock(side_effect=lambda owner, repo, sha, *a, **k: make_github_commit(sha))
    mock.close = AsyncMock()
    return mock


def make_repo_github(files: dict[str, str], commits: list[GitHubCommit] | None = None) -> MagicMock:
    """GitHub client mock serving a flat tree of text files and a commit list."""
    mock = MagicMock()
    mock.get_repository = AsyncMock()
    mock.get_tree = AsyncMock(
        return_value=[
            GitTreeEntry(path=path, type=TreeEntryType.BLOB, sha=f"sha-{path}", size=100)
            for path in files
        ]
    )

    async def get_file_content(owner, repo, path, ref=None, access_token=None):
        return files[path]

    mock.get_file_content = AsyncMock(side_effect=get_file_content)
    mock.list_commits = AsyncMock(return_value=list(commits or []))
    mock.get_commit = AsyncMock(side_effect=lambda owner, repo, sha, *a, **k: make_github_commit(sha))
    mock.close = AsyncMock()
    return mock


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def make_service(
    store: InMemoryProjectStore,
    github: MagicMock,
    llm: MockClaudeClient,
    embedder: MagicMock,
) -> ProjectService:
    """Wire a ProjectService from real components over test doubles."""
    summarizer = Summarizer(llm)
    pipeline = IndexingPipeline(
        fetcher=RepositoryFetcher(github),
        assembler=EmbeddingAssembler(summarizer, embedder),
        writer=PersistenceWriter(store),  # type: ignore[arg-type]
    )
    poller = CommitPoller(store, github, summarizer)  # type: ignore[arg-type]
    scheduler = CommitPollScheduler(poller, max_attempts=2, backoff_seconds=0)
    return ProjectService(store, pipeline, poller, scheduler)  # type: ignore[arg-type]
