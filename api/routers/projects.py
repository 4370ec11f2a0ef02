"""Project endpoints for the StackAlchemy API.

This module exposes the project procedures: creating a project from a GitHub
repository, listing and deleting projects, reading and refreshing commits,
and saving and listing answered questions.
"""

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from api.auth import CurrentUserDep
from api.dependencies import ProjectServiceDep
from core.db import Commit, FileReference, NewCommit, Project, Question
from core.projects import CreateProjectResult

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


class CreateProjectRequest(BaseModel):
    """Request model for creating a project.

    Attributes:
        name: Project display name.
        github_url: Repository URL, https://github.com/owner/repo.
        github_token: Optional token for private repositories.
    """

    name: str = Field(..., min_length=1, max_length=255, description="Project name")
    github_url: str = Field(..., description="GitHub repository URL")
    github_token: str | None = Field(None, description="GitHub token for private repositories")


class SaveAnswerRequest(BaseModel):
    """Request model for saving an answered question."""

    question: str = Field(..., min_length=1, description="Question text")
    answer: str = Field(..., description="Answer text")
    files_references: list[FileReference] = Field(
        default_factory=list,
        description="Files shown with the answer",
    )


@router.post(
    "",
    response_model=CreateProjectResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
    description=(
        "Link a GitHub repository, index its files and poll its recent commits. "
        "Fails without leaving any project data behind when no file could be indexed."
    ),
)
async def create_project(
    request: CreateProjectRequest,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
) -> CreateProjectResult:
    """Create a project from a GitHub repository."""
    return await service.create_project(
        user_id,
        name=request.name,
        github_url=request.github_url,
        github_token=request.github_token,
    )


@router.get(
    "",
    response_model=list[Project],
    summary="List projects",
)
async def list_projects(user_id: CurrentUserDep, service: ProjectServiceDep) -> list[Project]:
    """List the caller's active projects."""
    return await service.list_projects(user_id)


@router.delete(
    "/{project_id}",
    response_model=Project,
    summary="Delete a project",
    description="Soft-delete a project; its data is kept but it is no longer listed.",
)
async def delete_project(
    project_id: str,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
) -> Project:
    """Soft-delete a project."""
    return await service.delete_project(user_id, project_id)


@router.get(
    "/{project_id}/commits",
    response_model=list[Commit],
    summary="List commits",
    description="Return stored commits, newest first, and poll for new ones in the background.",
)
async def list_commits(
    project_id: str,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
) -> list[Commit]:
    """List a project's stored commits."""
    return await service.list_commits(user_id, project_id)


@router.post(
    "/{project_id}/commits/refresh",
    response_model=list[NewCommit],
    summary="Refresh commits",
    description="Poll the repository now and return the commits that were new.",
)
async def refresh_commits(
    project_id: str,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
) -> list[NewCommit]:
    """Poll a project's commits synchronously."""
    return await service.refresh_commits(user_id, project_id)


@router.post(
    "/{project_id}/questions",
    response_model=Question,
    status_code=status.HTTP_201_CREATED,
    summary="Save an answer",
)
async def save_answer(
    project_id: str,
    request: SaveAnswerRequest,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
) -> Question:
    """Save a question with its answer and file references."""
    return await service.save_answer(
        user_id,
        project_id,
        question=request.question,
        answer=request.answer,
        files_references=request.files_references,
    )


@router.get(
    "/{project_id}/questions",
    response_model=list[Question],
    summary="List saved questions",
)
async def list_questions(
    project_id: str,
    user_id: CurrentUserDep,
    service: ProjectServiceDep,
) -> list[Question]:
    """List a project's saved questions, newest first."""
    return await service.list_questions(user_id, project_id)
