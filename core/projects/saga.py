"""Compensating-action saga.

A saga records one compensation per forward step that may leave state
behind. When a later step fails, ``compensate`` undoes the recorded steps in
reverse order. A failing compensation is logged and collected; the remaining
compensations still run.
"""

from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

Compensation = Callable[[], Awaitable[object]]


class CompensationFailure:
    """A compensation that raised while the saga was rolling back."""

    def __init__(self, step: str, error: Exception) -> None:
        self.step = step
        self.error = error

    def __repr__(self) -> str:
        return f"CompensationFailure(step={self.step!r}, error={self.error!r})"


class Saga:
    """Ordered list of compensating actions.

    Example:
        >>> saga = Saga("create_project")
        >>> project = await store.create_project(...)
        >>> saga.record("create_project", lambda: store.delete_project_tree(project.id))
        >>> try:
        ...     await pipeline.index(...)
        ... except Exception:
        ...     await saga.compensate()
        ...     raise
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._steps: list[tuple[str, Compensation]] = []
        self._logger = logger.bind(saga=name)

    @property
    def steps(self) -> list[str]:
        """Names of the recorded steps, in recording order."""
        return [step for step, _ in self._steps]

    def record(self, step: str, compensation: Compensation) -> None:
        """Record the compensation for a forward step.

        Args:
            step: Name of the forward step.
            compensation: Async callable that undoes the step.
        """
        self._steps.append((step, compensation))

    async def compensate(self) -> list[CompensationFailure]:
        """Run every recorded compensation in reverse order.

        Compensations are consumed: calling this twice runs them once.

        Returns:
            The compensations that failed, empty when rollback was complete.
        """
        failures: list[CompensationFailure] = []
        steps, self._steps = self._steps, []

        for step, compensation in reversed(steps):
            try:
                await compensation()
                self._logger.info("compensation_applied", step=step)
            except Exception as e:
                self._logger.exception("compensation_failed", step=step)
                failures.append(CompensationFailure(step, e))

        return failures
