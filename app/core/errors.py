"""Domain error taxonomy.

Services raise these; the handler registered in app.main turns each one
into ``{"status": "error", "message": ...}`` with the class's HTTP status.
Nothing here knows about FastAPI, so services stay testable without a
request.
"""

from __future__ import annotations


class LmsError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> dict[str, object]:
        """Additional top-level fields for the error response body."""
        return {}

    def headers(self) -> dict[str, str] | None:
        return None


class Unauthorized(LmsError):
    status_code = 401
    default_message = "Authentication required"

    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(LmsError):
    status_code = 403
    default_message = "Insufficient permissions"


class AttemptsExhausted(Forbidden):
    """Quiz start refused; carries the eligibility verdict for the client."""

    def __init__(self, reason: str, attempt_count: int) -> None:
        super().__init__(reason)
        self.reason = reason
        self.attempt_count = attempt_count

    def extra(self) -> dict[str, object]:
        return {"reason": self.reason, "attempt_count": self.attempt_count}


class NotFound(LmsError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(LmsError):
    status_code = 400
    default_message = "Invalid request"


class AlreadyExists(LmsError):
    status_code = 409
    default_message = "Resource already exists"


class AlreadyEnrolled(AlreadyExists):
    default_message = "You are already enrolled in this course"


class InvalidState(LmsError):
    status_code = 409
    default_message = "Operation not allowed in the current state"


class NotConfigured(LmsError):
    status_code = 400
    default_message = "Course is not properly configured for payments"


class PriceTooLow(LmsError):
    status_code = 400

    def __init__(self, minimum: int, currency: str) -> None:
        super().__init__(f"Course price must be at least {minimum} {currency.upper()}")
        self.minimum = minimum


class RateLimited(LmsError):
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: float, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(int(self.retry_after) + 1)}


class UpstreamFailure(LmsError):
    status_code = 502
    default_message = "An upstream service failed. Please try again later."

    def __init__(self, provider: str, message: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider
