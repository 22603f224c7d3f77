# habittracker/core/exceptions.py
from fastapi import HTTPException, status

class NotFoundException(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )

class UnauthorizedException(HTTPException):
    def __init__(self, detail: str = "Not authorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class ConflictException(HTTPException):
    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )

class ValidationException(HTTPException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=422,
            detail=detail
        )

class StoreUnavailableException(HTTPException):
    def __init__(self, detail: str = "Could not reach the habit store. Please try again."):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail
        )


# ── Domain errors (raised below the HTTP layer) ──

class AuthenticationError(Exception):
    """Bad credentials, or a sign-up the identity provider refused."""


class EmailTakenError(AuthenticationError):
    """Sign-up with an email that already has an account."""


class StoreError(Exception):
    """The habit store could not complete a read or write."""


class RecordDecodeError(StoreError):
    """A stored habit does not match the habit record schema."""

    def __init__(self, habit_id, errors):
        self.habit_id = habit_id
        self.errors = errors
        super().__init__(f"Habit {habit_id} could not be decoded: {errors}")
