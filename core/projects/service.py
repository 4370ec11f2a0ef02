"""Project procedures.

This module provides the ProjectService class, the procedure layer called by
the HTTP API. Every public method takes the authenticated user's ID, rejects
missing IDs before touching the store, and only ever raises
``ProcedureError``.

Project creation moves through the states
``validating -> creating_row -> indexing -> polling_commits -> done``. A
failure while indexing rolls the project back through a saga; a failure while
polling commits is logged and ignored.
"""

from enum import Enum

import structlog
from pydantic import BaseModel, Field

from core.db import Commit, FileReference, NewCommit, Project, ProjectStore, Question
from core.errors import ErrorCode, ProcedureError, UserFacingError, procedure, unauthorized
from core.ingestion import CommitPoller, IndexingPipeline, IndexingResult, parse_repository_url

from .saga import Saga
from .tasks import CommitPollScheduler

logger = structlog.get_logger(__name__)


class ProjectCreationState(str, Enum):
    """Stages of project creation."""

    VALIDATING = "validating"
    CREATING_ROW = "creating_row"
    INDEXING = "indexing"
    POLLING_COMMITS = "polling_commits"
    DONE = "done"
    ROLLED_BACK = "rolled_back"


class InvalidProjectInputError(UserFacingError):
    """The project creation input is malformed."""

    pass


class CreateProjectResult(BaseModel):
    """Outcome of a successful project creation.

    Attributes:
        project: The created project.
        indexing: Indexing counts; partially indexed projects are usable.
        commits_polled: Commits stored by the initial poll, 0 if it failed.
        state: Final creation state.
    """

    project: Project
    indexing: IndexingResult
    commits_polled: int = Field(0, ge=0)
    state: ProjectCreationState = ProjectCreationState.DONE


class ProjectService:
    """Procedures over projects, commits and saved questions."""

    def __init__(
        self,
        store: ProjectStore,
        pipeline: IndexingPipeline,
        poller: CommitPoller,
        scheduler: CommitPollScheduler,
    ) -> None:
        """Initialize the service.

        Args:
            store: Relational store.
            pipeline: Repository indexing pipeline.
            poller: Commit poller for synchronous polls.
            scheduler: Background commit poll scheduler.
        """
        self.store = store
        self.pipeline = pipeline
        self.poller = poller
        self.scheduler = scheduler
        self._logger = logger.bind(component="project_service")

    async def _require_project(self, user_id: str, project_id: str, message: str) -> Project:
        project = await self.store.get_project_for_user(project_id, user_id)
        if project is None:
            raise ProcedureError(ErrorCode.NOT_FOUND, message)
        return project

    @procedure("Failed to create project")
    async def create_project(
        self,
        user_id: str | None,
        name: str,
        github_url: str,
        github_token: str | None = None,
    ) -> CreateProjectResult:
        """Create a project, index its repository and poll its commits.

        Args:
            user_id: Authenticated user.
            name: Project display name.
            github_url: Repository URL.
            github_token: Optional token for private repositories.

        Returns:
            The created project with indexing and polling outcomes.

        Raises:
            ProcedureError: UNAUTHORIZED, NOT_FOUND, CONFLICT, BAD_REQUEST or
                INTERNAL_SERVER_ERROR.
        """
        if not user_id:
            raise unauthorized()

        log = self._logger.bind(user_id=user_id, github_url=github_url)
        state = ProjectCreationState.VALIDATING
        log.info("project_creation_state", state=state.value)

        name = name.strip()
        if not name:
            raise InvalidProjectInputError("Project name is required")
        parse_repository_url(github_url)

        if await self.store.get_user(user_id) is None:
            raise ProcedureError(ErrorCode.NOT_FOUND, "User not found. Please sign up first.")

        if await self.store.find_active_project_by_url(user_id, github_url) is not None:
            raise ProcedureError(ErrorCode.CONFLICT, "A project with this GitHub URL already exists")

        state = ProjectCreationState.CREATING_ROW
        log.info("project_creation_state", state=state.value)

        saga = Saga("create_project")
        project = await self.store.create_project(user_id, name, github_url)
        saga.record("create_project", lambda: self.store.delete_project_tree(project.id))
        log = log.bind(project_id=project.id)

        state = ProjectCreationState.INDEXING
        log.info("project_creation_state", state=state.value)

        saga.record("index_repository", lambda: self.store.delete_embeddings(project.id))
        try:
            indexing = await self.pipeline.index(project.id, github_url, github_token)
        except Exception as e:
            failures = await saga.compensate()
            state = ProjectCreationState.ROLLED_BACK
            log.warning(
                "project_creation_state",
                state=state.value,
                error=str(e),
                compensation_failures=len(failures),
            )
            raise

        state = ProjectCreationState.POLLING_COMMITS
        log.info("project_creation_state", state=state.value)

        commits_polled = 0
        try:
            commits_polled = len(await self.poller.poll(project.id))
        except Exception as e:
            log.warning("initial_commit_poll_failed", error=str(e))

        state = ProjectCreationState.DONE
        log.info(
            "project_creation_state",
            state=state.value,
            success_count=indexing.success_count,
            error_count=indexing.error_count,
            commits_polled=commits_polled,
        )
        return CreateProjectResult(
            project=project,
            indexing=indexing,
            commits_polled=commits_polled,
            state=state,
        )

    @procedure("Failed to fetch projects")
    async def list_projects(self, user_id: str | None) -> list[Project]:
        """List the user's active projects."""
        if not user_id:
            raise unauthorized()
        return await self.store.list_projects(user_id)

    @procedure("Failed to fetch project")
    async def get_project(self, user_id: str | None, project_id: str) -> Project:
        """Get one of the user's active projects."""
        if not user_id:
            raise unauthorized()
        return await self._require_project(user_id, project_id, "Project not found")

    @procedure("Failed to fetch commits")
    async def list_commits(self, user_id: str | None, project_id: str) -> list[Commit]:
        """List stored commits and schedule a background poll.

        The response does not wait for the poll; newly found commits appear
        on a later call.
        """
        if not user_id:
            raise unauthorized()
        await self._require_project(user_id, project_id, "Project not found")
        self.scheduler.schedule(project_id)
        return await self.store.list_commits(project_id)

    @procedure("Failed to refresh commits")
    async def refresh_commits(self, user_id: str | None, project_id: str) -> list[NewCommit]:
        """Poll the project's commits now and return the new ones."""
        if not user_id:
            raise unauthorized()
        await self._require_project(user_id, project_id, "Project not found")
        return await self.poller.poll(project_id)

    @procedure("Failed to save answer")
    async def save_answer(
        self,
        user_id: str | None,
        project_id: str,
        question: str,
        answer: str,
        files_references: list[FileReference],
    ) -> Question:
        """Save a question, its answer and the files used to answer it.

        Args:
            user_id: Authenticated user.
            project_id: Project the question is about.
            question: Question text.
            answer: Answer text.
            files_references: Files shown with the answer.

        Returns:
            The saved question.
        """
        if not user_id:
            raise unauthorized()
        if not question.strip():
            raise InvalidProjectInputError("Question is required")
        await self._require_project(user_id, project_id, "Project not found")
        return await self.store.create_question(
            project_id=project_id,
            user_id=user_id,
            question=question,
            answer=answer,
            files_references=files_references,
        )

    @procedure("Failed to fetch questions")
    async def list_questions(self, user_id: str | None, project_id: str) -> list[Question]:
        """List saved questions of a project, newest first."""
        if not user_id:
            raise unauthorized()
        await self._require_project(user_id, project_id, "Project not found")
        return await self.store.list_questions(project_id)

    @procedure("Failed to delete project")
    async def delete_project(self, user_id: str | None, project_id: str) -> Project:
        """Soft-delete a project the user can see."""
        if not user_id:
            raise unauthorized()
        await self._require_project(
            user_id,
            project_id,
            "Project not found or you do not have permission to delete it",
        )
        project = await self.store.soft_delete_project(project_id)
        self._logger.info("project_deleted", user_id=user_id, project_id=project_id)
        return project
