"""Domain exceptions raised by the service layer and mapped to HTTP responses."""


class JobPilotError(Exception):
    """
    Base error for business-rule failures.

    Attributes:
        message: Human readable description returned to the client
        status_code: HTTP status used by the API exception handler
    """

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(JobPilotError):
    status_code = 400


class AuthenticationError(JobPilotError):
    status_code = 401


class PermissionDeniedError(JobPilotError):
    status_code = 403


class PlanLimitError(PermissionDeniedError):
    """Raised when an organization's plan does not allow another listing."""


class NotFoundError(JobPilotError):
    status_code = 404


class ConflictError(JobPilotError):
    status_code = 409
