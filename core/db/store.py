"""Repository over the relational store.

This module provides the ProjectStore class, the only component that issues
SQL. Each method opens its own session, so methods are safe to call
concurrently from independent tasks.
"""

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from sqlalchemy import Exists, delete, exists, select, text, update
from sqlalchemy.dialects.postgresql import Insert
from sqlalchemy.dialects.postgresql import insert as pg_insert

from .connection import Database
from .models import Commit, FileReference, NewCommit, Project, Question, RetrievedFile, User
from .tables import (
    CommitRow,
    ProjectRow,
    QuestionRow,
    SourceCodeEmbeddingRow,
    UserRow,
    UserToProjectRow,
)

logger = structlog.get_logger(__name__)


# asyncpg binds the literal as text; the outer cast parses it into a vector.
SET_SUMMARY_EMBEDDING_SQL = text(
    """
    UPDATE source_code_embeddings
    SET summary_embedding = CAST(CAST(:embedding AS text) AS vector)
    WHERE id = :id
    """
)

SEARCH_EMBEDDINGS_SQL = text(
    """
    SELECT file_name,
           source_code,
           summary,
           1 - (summary_embedding <=> CAST(CAST(:query AS text) AS vector)) AS similarity
    FROM source_code_embeddings
    WHERE project_id = :project_id
      AND summary_embedding IS NOT NULL
      AND 1 - (summary_embedding <=> CAST(CAST(:query AS text) AS vector)) > :min_similarity
    ORDER BY similarity DESC
    LIMIT :limit
    """
)


def to_vector_literal(vector: Sequence[float]) -> str:
    """Render a vector in pgvector's text input format."""
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def build_commit_insert(commits: Sequence[NewCommit]) -> Insert:
    """Build a bulk insert that skips hashes already stored for the project."""
    return (
        pg_insert(CommitRow)
        .values([commit.model_dump() for commit in commits])
        .on_conflict_do_nothing(index_elements=["project_id", "commit_hash"])
    )


def _user_can_see(user_id: str) -> Exists:
    """Predicate: the project is linked to the user."""
    return exists().where(
        UserToProjectRow.project_id == ProjectRow.id,
        UserToProjectRow.user_id == user_id,
    )


class ProjectStore:
    """Persistence operations for projects and their dependent records.

    Attributes:
        database: Connection manager used to open sessions.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the store.

        Args:
            database: Connected database handle.
        """
        self.database = database
        self._logger = logger.bind(component="project_store")

    # Users

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        async with self.database.session() as session:
            row = await session.get(UserRow, user_id)
            return User.model_validate(row) if row else None

    # Projects

    async def find_active_project_by_url(self, user_id: str, github_url: str) -> Project | None:
        """Find a non-deleted project of the user pointing at the repository URL."""
        stmt = select(ProjectRow).where(
            ProjectRow.github_url == github_url,
            ProjectRow.deleted_at.is_(None),
            _user_can_see(user_id),
        )
        async with self.database.session() as session:
            row = (await session.execute(stmt)).scalars().first()
            return Project.model_validate(row) if row else None

    async def create_project(self, user_id: str, name: str, github_url: str) -> Project:
        """Create a project and its ownership link in a single transaction.

        Args:
            user_id: Owning user.
            name: Display name.
            github_url: Repository URL.

        Returns:
            The created project.
        """
        async with self.database.transaction() as session:
            row = ProjectRow(name=name, github_url=github_url)
            session.add(row)
            await session.flush()
            session.add(UserToProjectRow(user_id=user_id, project_id=row.id))
            await session.flush()
            await session.refresh(row)
            project = Project.model_validate(row)

        self._logger.info("project_created", project_id=project.id, user_id=user_id)
        return project

    async def get_project(self, project_id: str) -> Project | None:
        """Get a project by ID, deleted or not."""
        async with self.database.session() as session:
            row = await session.get(ProjectRow, project_id)
            return Project.model_validate(row) if row else None

    async def get_project_for_user(self, project_id: str, user_id: str) -> Project | None:
        """Get a project only if it is active and linked to the user."""
        stmt = select(ProjectRow).where(
            ProjectRow.id == project_id,
            ProjectRow.deleted_at.is_(None),
            _user_can_see(user_id),
        )
        async with self.database.session() as session:
            row = (await session.execute(stmt)).scalars().first()
            return Project.model_validate(row) if row else None

    async def list_projects(self, user_id: str) -> list[Project]:
        """List active projects linked to the user, newest first."""
        stmt = (
            select(ProjectRow)
            .where(ProjectRow.deleted_at.is_(None), _user_can_see(user_id))
            .order_by(ProjectRow.created_at.desc())
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [Project.model_validate(row) for row in rows]

    async def soft_delete_project(self, project_id: str) -> Project:
        """Flag a project as deleted.

        Returns:
            The updated project.
        """
        async with self.database.transaction() as session:
            await session.execute(
                update(ProjectRow)
                .where(ProjectRow.id == project_id)
                .values(deleted_at=datetime.now(UTC))
            )
            row = await session.get(ProjectRow, project_id, populate_existing=True)
            project = Project.model_validate(row)

        self._logger.info("project_soft_deleted", project_id=project_id)
        return project

    async def delete_project_tree(self, project_id: str) -> None:
        """Physically delete a project and every dependent record atomically."""
        async with self.database.transaction() as session:
            await session.execute(
                delete(SourceCodeEmbeddingRow).where(SourceCodeEmbeddingRow.project_id == project_id)
            )
            await session.execute(
                delete(UserToProjectRow).where(UserToProjectRow.project_id == project_id)
            )
            await session.execute(delete(CommitRow).where(CommitRow.project_id == project_id))
            await session.execute(delete(QuestionRow).where(QuestionRow.project_id == project_id))
            await session.execute(delete(ProjectRow).where(ProjectRow.id == project_id))

        self._logger.info("project_tree_deleted", project_id=project_id)

    # Source code embeddings

    async def insert_source_embedding(
        self,
        project_id: str,
        file_name: str,
        source_code: str,
        summary: str,
        embedding: Sequence[float],
    ) -> str:
        """Insert one embedding record, then set its vector column.

        Both statements run in the same transaction.

        Returns:
            ID of the created record.
        """
        async with self.database.transaction() as session:
            row = SourceCodeEmbeddingRow(
                project_id=project_id,
                file_name=file_name,
                source_code=source_code,
                summary=summary,
            )
            session.add(row)
            await session.flush()
            await session.execute(
                SET_SUMMARY_EMBEDDING_SQL,
                {"embedding": to_vector_literal(embedding), "id": row.id},
            )
            return row.id

    async def delete_embeddings(self, project_id: str) -> int:
        """Delete every embedding record of a project.

        Returns:
            Number of deleted rows.
        """
        async with self.database.transaction() as session:
            result = await session.execute(
                delete(SourceCodeEmbeddingRow).where(SourceCodeEmbeddingRow.project_id == project_id)
            )
            return result.rowcount or 0

    async def search_embeddings(
        self,
        project_id: str,
        query_vector: Sequence[float],
        limit: int = 10,
        min_similarity: float = 0.5,
    ) -> list[RetrievedFile]:
        """Find the files whose summary embedding is closest to a query vector."""
        params = {
            "query": to_vector_literal(query_vector),
            "project_id": project_id,
            "min_similarity": min_similarity,
            "limit": limit,
        }
        async with self.database.session() as session:
            rows = (await session.execute(SEARCH_EMBEDDINGS_SQL, params)).mappings().all()
            return [RetrievedFile.model_validate(dict(row)) for row in rows]

    # Commits

    async def list_commit_hashes(self, project_id: str) -> set[str]:
        """Get every commit hash stored for a project."""
        stmt = select(CommitRow.commit_hash).where(CommitRow.project_id == project_id)
        async with self.database.session() as session:
            return set((await session.execute(stmt)).scalars().all())

    async def insert_commits(self, commits: Sequence[NewCommit]) -> int:
        """Bulk insert commits, silently skipping duplicate hashes.

        Returns:
            Number of rows actually inserted.
        """
        if not commits:
            return 0
        async with self.database.transaction() as session:
            result = await session.execute(build_commit_insert(commits))
            inserted = result.rowcount or 0

        skipped = len(commits) - inserted
        if skipped > 0:
            self._logger.info("duplicate_commits_skipped", skipped=skipped)
        return inserted

    async def list_commits(self, project_id: str) -> list[Commit]:
        """List stored commits of a project, newest first."""
        stmt = (
            select(CommitRow)
            .where(CommitRow.project_id == project_id)
            .order_by(CommitRow.commit_date.desc().nulls_last())
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [Commit.model_validate(row) for row in rows]

    # Questions

    async def create_question(
        self,
        project_id: str,
        user_id: str,
        question: str,
        answer: str,
        files_references: Sequence[FileReference],
    ) -> Question:
        """Save a question and the answer given to it."""
        async with self.database.transaction() as session:
            row = QuestionRow(
                project_id=project_id,
                user_id=user_id,
                question=question,
                answer=answer,
                files_references=[ref.model_dump() for ref in files_references],
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return Question.model_validate(row)

    async def list_questions(self, project_id: str) -> list[Question]:
        """List saved questions of a project, newest first."""
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.project_id == project_id)
            .order_by(QuestionRow.created_at.desc())
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [Question.model_validate(row) for row in rows]

    async def health_check(self) -> dict[str, str]:
        """Delegate to the database health check."""
        result = await self.database.health_check()
        return {key: str(value) for key, value in result.items()}
