"""Tests for error normalization at the procedure boundary."""

import pytest

from core.errors import (
    DEFAULT_INTERNAL_MESSAGE,
    ErrorCode,
    NotFoundError,
    ProcedureError,
    UserFacingError,
    normalize_error,
    procedure,
    unauthorized,
)


class TestNormalizeError:
    """Tests for normalize_error."""

    def test_procedure_error_unchanged(self):
        """Test a ProcedureError passes through as is."""
        error = ProcedureError(ErrorCode.CONFLICT, "exists")
        assert normalize_error(error) is error

    def test_user_facing_error_keeps_message(self):
        """Test user-facing errors keep their message and category."""
        normalized = normalize_error(UserFacingError("Name is required"))
        assert normalized.code == ErrorCode.BAD_REQUEST
        assert normalized.message == "Name is required"

    def test_not_found_category(self):
        """Test NotFoundError maps to NOT_FOUND."""
        assert normalize_error(NotFoundError("gone")).code == ErrorCode.NOT_FOUND

    def test_unknown_error_is_hidden(self):
        """Test unexpected errors do not leak their message."""
        normalized = normalize_error(KeyError("secret column"))
        assert normalized.code == ErrorCode.INTERNAL_SERVER_ERROR
        assert normalized.message == DEFAULT_INTERNAL_MESSAGE

    def test_unauthorized_default_message(self):
        """Test the unauthenticated failure."""
        error = unauthorized()
        assert error.code == ErrorCode.UNAUTHORIZED
        assert error.message == "User not authenticated"


class TestProcedureDecorator:
    """Tests for the procedure decorator."""

    @pytest.mark.asyncio
    async def test_return_value_passes_through(self):
        """Test successful calls are untouched."""

        @procedure("Failed")
        async def ok(value: int) -> int:
            return value * 2

        assert await ok(21) == 42

    @pytest.mark.asyncio
    async def test_unexpected_error_uses_default_message(self):
        """Test crashes become INTERNAL_SERVER_ERROR with the procedure message."""

        @procedure("Failed to fetch projects")
        async def crash() -> None:
            raise RuntimeError("pool exhausted")

        with pytest.raises(ProcedureError) as exc_info:
            await crash()

        assert exc_info.value.code == ErrorCode.INTERNAL_SERVER_ERROR
        assert exc_info.value.message == "Failed to fetch projects"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_procedure_error_reraised(self):
        """Test categorized failures are not rewrapped."""
        original = ProcedureError(ErrorCode.NOT_FOUND, "Project not found")

        @procedure("Failed")
        async def missing() -> None:
            raise original

        with pytest.raises(ProcedureError) as exc_info:
            await missing()

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_user_facing_error_normalized(self):
        """Test domain errors keep their message."""

        @procedure("Failed")
        async def invalid() -> None:
            raise UserFacingError("Invalid GitHub repository URL format")

        with pytest.raises(ProcedureError) as exc_info:
            await invalid()

        assert exc_info.value.code == ErrorCode.BAD_REQUEST
        assert exc_info.value.message == "Invalid GitHub repository URL format"
