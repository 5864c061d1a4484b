"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Missing or invalid credentials."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class NotOwnerException(ForbiddenException):
    """Caller does not own the appointment it tried to act on."""

    def __init__(self, message: str = "Appointment is not owned by the caller"):
        """Initialize with 403 status code."""
        super().__init__(message)


class ConflictException(AppException):
    """Lost a race for an appointment slot."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class InvalidTransitionException(AppException):
    """The state machine rejects the requested transition."""

    def __init__(self, message: str = "Invalid state transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class StoreUnavailableException(AppException):
    """The appointment store could not be reached or timed out."""

    def __init__(self, message: str = "Appointment store unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
