"""Tests for the projects module.

Covers the compensation saga, background commit polling and the project
procedures, wired from real components over the in-memory store.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.db import FileReference
from core.errors import ErrorCode, ProcedureError
from core.ingestion import ProjectNotFoundError
from core.projects import CommitPollScheduler, ProjectCreationState, Saga

from conftest import InMemoryProjectStore, make_github_commit, make_repo_github, make_service

WIDGETS_URL = "https://github.com/acme/widgets"
WIDGETS_FILES = {"src/app.py": "print('widgets')", "README.md": "# Widgets"}


def reference(name: str = "src/app.py") -> FileReference:
    return FileReference(file_name=name, source_code="print('widgets')", summary="Entry point.")


# =============================================================================
# Saga
# =============================================================================


class TestSaga:
    """Tests for Saga."""

    @pytest.mark.asyncio
    async def test_compensations_run_in_reverse(self):
        """Test later steps are undone first."""
        order: list[str] = []

        async def undo(step: str) -> None:
            order.append(step)

        saga = Saga("test")
        saga.record("first", lambda: undo("first"))
        saga.record("second", lambda: undo("second"))
        saga.record("third", lambda: undo("third"))

        failures = await saga.compensate()

        assert order == ["third", "second", "first"]
        assert failures == []

    @pytest.mark.asyncio
    async def test_failed_compensation_does_not_stop_the_rest(self):
        """Test a raising compensation is collected and the others still run."""
        order: list[str] = []

        async def undo(step: str) -> None:
            order.append(step)

        async def broken() -> None:
            raise RuntimeError("cannot undo")

        saga = Saga("test")
        saga.record("first", lambda: undo("first"))
        saga.record("second", broken)
        saga.record("third", lambda: undo("third"))

        failures = await saga.compensate()

        assert order == ["third", "first"]
        assert len(failures) == 1
        assert failures[0].step == "second"
        assert isinstance(failures[0].error, RuntimeError)

    @pytest.mark.asyncio
    async def test_compensations_are_consumed(self):
        """Test compensating twice runs each compensation once."""
        undo = AsyncMock()
        saga = Saga("test")
        saga.record("step", undo)

        await saga.compensate()
        await saga.compensate()

        assert undo.await_count == 1
        assert saga.steps == []

    def test_steps_in_recording_order(self):
        """Test steps lists names in the order they were recorded."""
        saga = Saga("test")
        saga.record("a", AsyncMock())
        saga.record("b", AsyncMock())
        assert saga.steps == ["a", "b"]


# =============================================================================
# Background polling
# =============================================================================


class TestCommitPollScheduler:
    """Tests for CommitPollScheduler."""

    @pytest.mark.asyncio
    async def test_runs_poll_in_background(self):
        """Test a scheduled poll runs and the task is forgotten afterwards."""
        poller = MagicMock()
        poller.poll = AsyncMock(return_value=[])
        scheduler = CommitPollScheduler(poller)

        task = scheduler.schedule("p1")
        assert task is not None
        await task
        await asyncio.sleep(0)

        poller.poll.assert_awaited_once_with("p1")
        assert scheduler.in_flight == []

    @pytest.mark.asyncio
    async def test_one_poll_per_project(self):
        """Test scheduling again while a poll is running is a no-op."""
        release = asyncio.Event()

        async def slow_poll(project_id: str) -> list:
            await release.wait()
            return []

        poller = MagicMock()
        poller.poll = AsyncMock(side_effect=slow_poll)
        scheduler = CommitPollScheduler(poller)

        first = scheduler.schedule("p1")
        second = scheduler.schedule("p1")
        other = scheduler.schedule("p2")

        assert first is not None
        assert second is None
        assert other is not None
        assert sorted(scheduler.in_flight) == ["p1", "p2"]

        release.set()
        await asyncio.gather(first, other)
        assert poller.poll.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Test failed attempts are retried with backoff."""
        poller = MagicMock()
        poller.poll = AsyncMock(side_effect=[RuntimeError("flaky"), RuntimeError("flaky"), []])
        scheduler = CommitPollScheduler(poller, max_attempts=3, backoff_seconds=0)

        await scheduler.schedule("p1")

        assert poller.poll.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """Test the final failure is swallowed by the task and logged."""
        poller = MagicMock()
        poller.poll = AsyncMock(side_effect=RuntimeError("down"))
        scheduler = CommitPollScheduler(poller, max_attempts=2, backoff_seconds=0)

        task = scheduler.schedule("p1")
        await task

        assert poller.poll.await_count == 2
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_missing_project_is_not_retried(self):
        """Test a deleted project stops the run immediately."""
        poller = MagicMock()
        poller.poll = AsyncMock(side_effect=ProjectNotFoundError("p1"))
        scheduler = CommitPollScheduler(poller, max_attempts=3, backoff_seconds=0)

        await scheduler.schedule("p1")

        assert poller.poll.await_count == 1

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_polls(self):
        """Test shutdown cancels outstanding tasks."""
        async def hang(project_id: str) -> list:
            await asyncio.sleep(60)
            return []

        poller = MagicMock()
        poller.poll = AsyncMock(side_effect=hang)
        scheduler = CommitPollScheduler(poller)

        task = scheduler.schedule("p1")
        await asyncio.sleep(0)
        await scheduler.shutdown()

        assert task.cancelled()
        assert scheduler.in_flight == []


# =============================================================================
# Project creation
# =============================================================================


class TestCreateProject:
    """Tests for ProjectService.create_project."""

    @pytest.mark.asyncio
    async def test_create_indexes_and_polls(self, store, mock_llm, mock_embedder):
        """Test a project is created, indexed and its commits polled."""
        github = make_repo_github(WIDGETS_FILES, commits=[make_github_commit("c1")])
        service = make_service(store, github, mock_llm, mock_embedder)

        result = await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert result.state == ProjectCreationState.DONE
        assert result.project.name == "Widgets"
        assert result.indexing.total_files == 2
        assert result.indexing.success_count == 2
        assert result.commits_polled == 1
        assert list(store.projects) == [result.project.id]
        assert store.links == {("user-1", result.project.id)}
        assert len(store.embeddings) == 2
        assert [c.commit_hash for c in store.commits] == ["c1"]

        projects = await service.list_projects("user-1")
        assert [p.id for p in projects] == [result.project.id]

    @pytest.mark.asyncio
    async def test_private_repository_token_is_forwarded(self, store, mock_llm, mock_embedder):
        """Test the per-request token is used to load the repository."""
        github = make_repo_github(WIDGETS_FILES)
        service = make_service(store, github, mock_llm, mock_embedder)

        await service.create_project("user-1", "Widgets", WIDGETS_URL, github_token="ghp_user")

        assert github.get_tree.await_args.args[-1] == "ghp_user"

    @pytest.mark.asyncio
    async def test_name_is_trimmed(self, store, mock_llm, mock_embedder):
        """Test surrounding whitespace is removed from the name."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

        result = await service.create_project("user-1", "  Widgets  ", WIDGETS_URL)

        assert result.project.name == "Widgets"

    @pytest.mark.asyncio
    async def test_unauthenticated_touches_nothing(self, store, mock_llm, mock_embedder):
        """Test a missing user ID fails before any store access."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project(None, "Widgets", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, store, mock_llm, mock_embedder):
        """Test a blank name is a bad request."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("user-1", "   ", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.BAD_REQUEST
        assert exc_info.value.message == "Project name is required"

    @pytest.mark.asyncio
    async def test_invalid_url_rejected_without_side_effects(
        self, store, mock_llm, mock_embedder
    ):
        """Test a malformed URL is a bad request and creates nothing."""
        github = make_repo_github(WIDGETS_FILES)
        service = make_service(store, github, mock_llm, mock_embedder)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("user-1", "Widgets", "https://gitlab.com/acme/widgets")

        assert exc_info.value.code == ErrorCode.BAD_REQUEST
        assert "Invalid GitHub repository URL format" in exc_info.value.message
        assert store.projects == {}
        github.get_tree.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_user(self, store, mock_llm, mock_embedder):
        """Test a user without a row gets NOT_FOUND."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("ghost", "Widgets", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.NOT_FOUND
        assert exc_info.value.message == "User not found. Please sign up first."

    @pytest.mark.asyncio
    async def test_duplicate_url_conflicts(self, store, mock_llm, mock_embedder):
        """Test a second active project for the same URL is a conflict."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)
        await service.create_project("user-1", "Widgets", WIDGETS_URL)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("user-1", "Widgets again", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.CONFLICT
        assert exc_info.value.message == "A project with this GitHub URL already exists"
        assert len(store.projects) == 1

    @pytest.mark.asyncio
    async def test_url_reusable_after_delete(self, store, mock_llm, mock_embedder):
        """Test soft-deleted projects do not block the URL."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)
        first = await service.create_project("user-1", "Widgets", WIDGETS_URL)
        await service.delete_project("user-1", first.project.id)

        second = await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert second.project.id != first.project.id

    @pytest.mark.asyncio
    async def test_indexing_failure_rolls_back(self, store, mock_llm, mock_embedder):
        """Test a failed index leaves no project, link or embedding behind."""
        store.fail_on_insert = set(WIDGETS_FILES)
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.BAD_REQUEST
        assert exc_info.value.message == "Failed to index any files from the repository"
        assert store.projects == {}
        assert store.links == set()
        assert store.embeddings == {}
        assert store.calls[-2:] == ["delete_embeddings", "delete_project_tree"]

    @pytest.mark.asyncio
    async def test_unexpected_indexing_error_is_internal(self, store, mock_llm, mock_embedder):
        """Test an unexpected crash is reported generically and rolled back."""
        service = make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

        async def crash(project_id, url, token=None):
            await store.insert_source_embedding(project_id, "a.py", "x", "s", [0.1])
            raise RuntimeError("connection reset")

        service.pipeline.index = crash  # type: ignore[method-assign]

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.INTERNAL_SERVER_ERROR
        assert exc_info.value.message == "Failed to create project"
        assert "connection reset" not in exc_info.value.message
        assert store.projects == {}
        assert store.embeddings == {}

    @pytest.mark.asyncio
    async def test_empty_repository_rolls_back(self, store, mock_llm, mock_embedder):
        """Test an empty repository is a bad request and leaves nothing."""
        service = make_service(store, make_repo_github({}), mock_llm, mock_embedder)

        with pytest.raises(ProcedureError) as exc_info:
            await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert exc_info.value.code == ErrorCode.BAD_REQUEST
        assert exc_info.value.message.startswith("No files found in the repository")
        assert store.projects == {}

    @pytest.mark.asyncio
    async def test_poll_failure_keeps_project(self, store, mock_llm, mock_embedder):
        """Test a failing initial commit poll does not fail creation."""
        github = make_repo_github(WIDGETS_FILES)
        github.list_commits.side_effect = RuntimeError("rate limited")
        service = make_service(store, github, mock_llm, mock_embedder)

        result = await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert result.state == ProjectCreationState.DONE
        assert result.commits_polled == 0
        assert result.project.id in store.projects


# =============================================================================
# Other procedures
# =============================================================================


class TestProjectProcedures:
    """Tests for the read, save and delete procedures."""

    @pytest.fixture
    def service(self, store, mock_llm, mock_embedder):
        return make_service(store, make_repo_github(WIDGETS_FILES), mock_llm, mock_embedder)

    @pytest.mark.asyncio
    async def test_projects_are_private(self, service, store: InMemoryProjectStore):
        """Test another user cannot see or delete a project."""
        store.add_user("user-2")
        created = await service.create_project("user-1", "Widgets", WIDGETS_URL)

        assert await service.list_projects("user-2") == []
        with pytest.raises(ProcedureError) as exc_info:
            await service.delete_project("user-2", created.project.id)

        assert exc_info.value.code == ErrorCode.NOT_FOUND
        assert (
            exc_info.value.message
            == "Project not found or you do not have permission to delete it"
        )

    @pytest.mark.asyncio
    async def test_delete_hides_project(self, service):
        """Test a deleted project disappears from the list."""
        created = await service.create_project("user-1", "Widgets", WIDGETS_URL)

        deleted = await service.delete_project("user-1", created.project.id)

        assert deleted.is_deleted
        assert await service.list_projects("user-1") == []

    @pytest.mark.asyncio
    async def test_delete_unknown_project(self, service):
        """Test deleting a missing project is NOT_FOUND."""
        with pytest.raises(ProcedureError) as exc_info:
            await service.delete_project("user-1", "missing")
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_list_commits_schedules_background_poll(self, service, store):
        """Test listing commits returns stored rows and schedules a poll."""
        created = await service.create_project("user-1", "Widgets", WIDGETS_URL)
        service.scheduler.schedule = MagicMock(return_value=None)

        commits = await service.list_commits("user-1", created.project.id)

        assert commits == []
        service.scheduler.schedule.assert_called_once_with(created.project.id)

    @pytest.mark.asyncio
    async def test_refresh_commits_returns_new(self, service, store):
        """Test a manual refresh stores and returns unseen commits."""
        created = await service.create_project("user-1", "Widgets", WIDGETS_URL)
        service.poller.github.list_commits.return_value = [make_github_commit("c9")]

        new = await service.refresh_commits("user-1", created.project.id)

        assert [c.commit_hash for c in new] == ["c9"]
        assert [c.commit_hash for c in store.commits] == ["c9"]

    @pytest.mark.asyncio
    async def test_save_and_list_questions(self, service):
        """Test saved answers are listed newest first with their references."""
        created = await service.create_project("user-1", "Widgets", WIDGETS_URL)
        project_id = created.project.id

        await service.save_answer("user-1", project_id, "What is this?", "A CLI.", [reference()])
        await service.save_answer("user-1", project_id, "Entry point?", "app.py", [])

        questions = await service.list_questions("user-1", project_id)

        assert [q.question for q in questions] == ["Entry point?", "What is this?"]
        assert questions[1].files_references == [reference()]
        assert questions[1].user_id == "user-1"

    @pytest.mark.asyncio
    async def test_save_answer_requires_question(self, service):
        """Test an empty question is a bad request."""
        created = await service.create_project("user-1", "Widgets", WIDGETS_URL)

        with pytest.raises(ProcedureError) as exc_info:
            await service.save_answer("user-1", created.project.id, "  ", "answer", [])

        assert exc_info.value.code == ErrorCode.BAD_REQUEST
        assert exc_info.value.message == "Question is required"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "args"),
        [
            ("list_projects", ()),
            ("get_project", ("p1",)),
            ("list_commits", ("p1",)),
            ("refresh_commits", ("p1",)),
            ("list_questions", ("p1",)),
            ("delete_project", ("p1",)),
            ("save_answer", ("p1", "q", "a", [])),
        ],
    )
    async def test_every_procedure_requires_a_user(self, service, store, method, args):
        """Test each procedure rejects a missing user before touching the store."""
        with pytest.raises(ProcedureError) as exc_info:
            await getattr(service, method)("", *args)

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED
        assert exc_info.value.message == "User not authenticated"
        assert store.calls == []
