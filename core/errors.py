"""Error taxonomy for StackAlchemy procedures.

Every error that crosses the procedure boundary is normalized into a
``ProcedureError`` carrying one of a small set of codes and a human-readable
message. Domain errors that are safe to show to the user derive from
``UserFacingError``; anything else is reported as an internal error.
"""

import functools
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import ParamSpec, TypeVar

import structlog

logger = structlog.get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_INTERNAL_MESSAGE = "An unexpected error occurred"


class ErrorCode(str, Enum):
    """Categories of failures returned by procedures."""

    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ProcedureError(Exception):
    """A categorized failure returned to the caller of a procedure.

    Attributes:
        code: Failure category.
        message: Message suitable for display.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"ProcedureError(code={self.code.value!r}, message={self.message!r})"


class UserFacingError(Exception):
    """Base class for domain errors whose message may be shown to users.

    Subclasses pick the category they normalize to via ``error_code``.
    """

    error_code: ErrorCode = ErrorCode.BAD_REQUEST


class NotFoundError(UserFacingError):
    """A referenced entity does not exist."""

    error_code = ErrorCode.NOT_FOUND


def unauthorized(message: str = "User not authenticated") -> ProcedureError:
    """Build the failure returned when no user session is present."""
    return ProcedureError(ErrorCode.UNAUTHORIZED, message)


def normalize_error(
    error: BaseException,
    default_message: str = DEFAULT_INTERNAL_MESSAGE,
) -> ProcedureError:
    """Map any exception onto a categorized ``ProcedureError``.

    Args:
        error: The exception raised inside a procedure.
        default_message: Message used for unrecognized errors.

    Returns:
        The normalized procedure error.
    """
    if isinstance(error, ProcedureError):
        return error
    if isinstance(error, UserFacingError):
        return ProcedureError(error.error_code, str(error))
    return ProcedureError(ErrorCode.INTERNAL_SERVER_ERROR, default_message)


def procedure(
    default_message: str = DEFAULT_INTERNAL_MESSAGE,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorate an async procedure so that it only raises ``ProcedureError``.

    Unrecognized exceptions are logged with their traceback before being
    replaced by an internal error.

    Args:
        default_message: Message for the internal-error category.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except ProcedureError:
                raise
            except Exception as e:
                normalized = normalize_error(e, default_message)
                if normalized.code == ErrorCode.INTERNAL_SERVER_ERROR:
                    logger.exception("procedure_failed", procedure=func.__name__)
                raise normalized from e

        return wrapper

    return decorator
