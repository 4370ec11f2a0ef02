"""Project procedures, the creation saga and background commit polling."""

from .saga import CompensationFailure, Saga
from .service import (
    CreateProjectResult,
    InvalidProjectInputError,
    ProjectCreationState,
    ProjectService,
)
from .tasks import CommitPollScheduler

__all__ = [
    "CommitPollScheduler",
    "CompensationFailure",
    "CreateProjectResult",
    "InvalidProjectInputError",
    "ProjectCreationState",
    "ProjectService",
    "Saga",
]
