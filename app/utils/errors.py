"""
RepCycle API - Custom Exception Classes.

Exception hierarchy for application error handling.
"""

from typing import Optional


class RepCycleException(Exception):
    """
    Base exception class for RepCycle application.

    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code for the error.
        detail: Additional error details.
        error_code: Stable machine-readable code.
    """

    error_code: str = "error"

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        detail: Optional[str] = None
    ):
        """
        Initialize RepCycleException.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code (default 500).
            detail: Additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


class AuthenticationError(RepCycleException):
    """Exception raised for authentication failures."""

    error_code = "authentication"

    def __init__(
        self,
        message: str = "Authentication failed",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=401, detail=detail)


class NotFoundError(RepCycleException):
    """
    Exception raised when a resource is not found.

    Used when:
    - Profile not found
    - Program or workout not found
    """

    error_code = "not_found"

    def __init__(
        self,
        message: str = "Resource not found",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=404, detail=detail)


class ValidationError(RepCycleException):
    """
    Exception raised for malformed or missing caller input.

    Raised before any side effect takes place.
    """

    error_code = "validation"

    def __init__(
        self,
        message: str = "Validation error",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=400, detail=detail)


class IneligibleError(RepCycleException):
    """
    Exception raised when a blocking eligibility rule fails.

    The orchestrator surfaces it as an unsuccessful RegenerationResult
    rather than letting it escape.
    """

    error_code = "ineligible"

    def __init__(
        self,
        message: str = "Program cannot be changed at this time",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=422, detail=detail)


class UpstreamServiceError(RepCycleException):
    """
    Exception raised when the generative dependency fails.

    Used when:
    - Gemini times out or is unreachable
    - The response is not valid JSON
    - The parsed program fails structural validation
    """

    error_code = "upstream"

    def __init__(
        self,
        message: str = "Upstream service error",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=502, detail=detail)


class ConflictError(RepCycleException):
    """
    Exception raised for concurrent-mutation conflicts.

    Used when:
    - The active program changed since it was read
    - A program already exists where none was expected

    Callers may retry.
    """

    error_code = "conflict"

    def __init__(
        self,
        message: str = "Resource conflict",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=409, detail=detail)


class InvalidTransitionError(ConflictError):
    """Exception raised for a lifecycle transition the state machine forbids."""

    error_code = "invalid_transition"


class PersistenceError(RepCycleException):
    """
    Exception raised when a transaction cannot be committed.

    Nothing is left partially written when this is raised.
    """

    error_code = "persistence"

    def __init__(
        self,
        message: str = "Failed to persist changes",
        detail: Optional[str] = None
    ):
        super().__init__(message=message, status_code=500, detail=detail)
