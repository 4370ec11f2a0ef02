"""Dependency injection setup for the StackAlchemy API.

``build_container`` wires every component from settings, each receiving its
collaborators through its constructor. The container is stored on
``app.state`` for the application's lifespan, and the FastAPI dependency
functions below read it from the request.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends, Request

from core.db import Database, ProjectStore
from core.embeddings import (
    OPENAI_CONFIG,
    VOYAGE_CODE_CONFIG,
    EmbeddingClient,
    EmbeddingProvider,
    create_embedding_client,
)
from core.ingestion import (
    CommitPoller,
    EmbeddingAssembler,
    IndexingPipeline,
    IngestionConfig,
    PersistenceWriter,
    RepositoryFetcher,
    Summarizer,
)
from core.llm import ClaudeClient, LLMClient, LLMConfig
from core.projects import CommitPollScheduler, ProjectService
from core.qa import QuestionAnswerer
from integrations.github import GitHubClient, GitHubClientConfig

from .config import Settings

logger = structlog.get_logger(__name__)


@dataclass
class Container:
    """Application components shared across requests."""

    settings: Settings
    database: Database
    store: ProjectStore
    github: GitHubClient
    llm: LLMClient
    embedder: EmbeddingClient
    pipeline: IndexingPipeline
    poller: CommitPoller
    scheduler: CommitPollScheduler
    service: ProjectService
    answerer: QuestionAnswerer

    async def startup(self) -> None:
        """Connect to the database and optionally create the schema."""
        await self.database.connect()
        if self.settings.database_auto_create:
            await self.database.create_all()

    async def shutdown(self) -> None:
        """Stop background work and release every connection."""
        await self.scheduler.shutdown()
        await self.github.close()
        await self.llm.close()
        await self.embedder.close()
        await self.database.close()


def build_container(settings: Settings) -> Container:
    """Create every application component from settings.

    Args:
        settings: Application settings.

    Returns:
        The wired, not yet started, container.
    """
    if not settings.anthropic_api_key:
        logger.warning("anthropic_api_key_missing")
    if not settings.embedding_api_key:
        logger.warning("embedding_api_key_missing", provider=settings.embedding_provider.value)

    database = Database(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=settings.database_pool_size,
    )
    store = ProjectStore(database)

    github = GitHubClient(
        GitHubClientConfig(access_token=settings.github_token, base_url=settings.github_api_url)
    )
    llm = ClaudeClient(settings.anthropic_api_key or "", LLMConfig(model=settings.llm_model))

    base_config = (
        OPENAI_CONFIG if settings.embedding_provider == EmbeddingProvider.OPENAI else VOYAGE_CODE_CONFIG
    )
    overrides: dict[str, object] = {}
    if settings.embedding_model:
        overrides["model"] = settings.embedding_model
    if settings.embedding_dimension:
        overrides["dimension"] = settings.embedding_dimension
    embedder = create_embedding_client(
        settings.embedding_provider,
        settings.embedding_api_key or "",
        base_config.model_copy(update=overrides),
    )

    ingestion_config = IngestionConfig(
        branch=settings.github_branch,
        max_concurrency=settings.github_fetch_concurrency,
        assembly_concurrency=settings.indexing_max_concurrency,
    )
    summarizer = Summarizer(llm)
    pipeline = IndexingPipeline(
        fetcher=RepositoryFetcher(github, ingestion_config),
        assembler=EmbeddingAssembler(
            summarizer, embedder, max_concurrency=ingestion_config.assembly_concurrency
        ),
        writer=PersistenceWriter(store),
    )
    poller = CommitPoller(store, github, summarizer, commit_limit=settings.commit_poll_limit)
    scheduler = CommitPollScheduler(
        poller,
        max_attempts=settings.commit_poll_max_attempts,
        backoff_seconds=settings.commit_poll_backoff_seconds,
    )
    service = ProjectService(store, pipeline, poller, scheduler)
    answerer = QuestionAnswerer(
        store,
        embedder,
        llm,
        top_k=settings.answer_top_k,
        min_similarity=settings.answer_min_similarity,
    )

    return Container(
        settings=settings,
        database=database,
        store=store,
        github=github,
        llm=llm,
        embedder=embedder,
        pipeline=pipeline,
        poller=poller,
        scheduler=scheduler,
        service=service,
        answerer=answerer,
    )


def get_container(request: Request) -> Container:
    """Get the container of the running application.

    Raises:
        RuntimeError: If the application lifespan has not started.
    """
    container: Container | None = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Container not initialized. Ensure the application lifespan ran.")
    return container


ContainerDep = Annotated[Container, Depends(get_container)]


async def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings


async def get_project_store(container: ContainerDep) -> AsyncGenerator[ProjectStore, None]:
    """Get the relational store.

    Yields:
        The shared ProjectStore instance.
    """
    yield container.store


async def get_project_service(container: ContainerDep) -> AsyncGenerator[ProjectService, None]:
    """Get the project procedure layer.

    Yields:
        The shared ProjectService instance.
    """
    yield container.service


async def get_question_answerer(
    container: ContainerDep,
) -> AsyncGenerator[QuestionAnswerer, None]:
    """Get the question answerer.

    Yields:
        The shared QuestionAnswerer instance.
    """
    yield container.answerer


# Type aliases for commonly used dependencies
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
ProjectStoreDep = Annotated[ProjectStore, Depends(get_project_store)]
ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]
QuestionAnswererDep = Annotated[QuestionAnswerer, Depends(get_question_answerer)]
