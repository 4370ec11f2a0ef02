"""Background commit polling.

This module provides the CommitPollScheduler class which runs commit polls as
asyncio tasks owned by the application. At most one poll per project is in
flight; each run retries with exponential backoff, and its final outcome is
logged instead of being lost.
"""

import asyncio

import structlog

from core.ingestion import CommitPoller, ProjectNotFoundError

logger = structlog.get_logger(__name__)


class CommitPollScheduler:
    """Schedules background commit polls with a retry policy.

    Attributes:
        poller: Commit poller used by each run.
        max_attempts: Attempts per run before giving up.
        backoff_seconds: Base delay, doubled after every failed attempt.
    """

    def __init__(
        self,
        poller: CommitPoller,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ) -> None:
        """Initialize the scheduler.

        Args:
            poller: Commit poller.
            max_attempts: Attempts per run.
            backoff_seconds: Base retry delay in seconds.
        """
        self.poller = poller
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._logger = logger.bind(component="commit_poll_scheduler")

    @property
    def in_flight(self) -> list[str]:
        """Project IDs with a poll currently running."""
        return list(self._tasks)

    def schedule(self, project_id: str) -> asyncio.Task[None] | None:
        """Start a background poll unless one is already running.

        Args:
            project_id: Project to poll.

        Returns:
            The new task, or None if a poll for the project was in flight.
        """
        if project_id in self._tasks:
            self._logger.debug("poll_already_scheduled", project_id=project_id)
            return None

        task = asyncio.create_task(self._run(project_id), name=f"commit-poll-{project_id}")
        self._tasks[project_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(project_id, None))
        return task

    async def _run(self, project_id: str) -> None:
        for attempt in range(self.max_attempts):
            try:
                commits = await self.poller.poll(project_id)
                self._logger.info("background_poll_complete", project_id=project_id, new=len(commits))
                return
            except ProjectNotFoundError:
                self._logger.warning("background_poll_project_missing", project_id=project_id)
                return
            except Exception as e:
                if attempt == self.max_attempts - 1:
                    self._logger.error(
                        "background_poll_failed",
                        project_id=project_id,
                        attempts=self.max_attempts,
                        error=str(e),
                    )
                    return
                wait_time = self.backoff_seconds * 2**attempt
                self._logger.warning(
                    "background_poll_retrying",
                    project_id=project_id,
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

    async def shutdown(self) -> None:
        """Cancel outstanding polls and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._logger.info("background_polls_cancelled", count=len(tasks))
        self._tasks.clear()
