"""DocLens error taxonomy.

Every error raised at a service boundary is a DocLensError subclass carrying
the HTTP status it maps to and a short machine-readable code. The server's
exception handler turns these into ``{"error": message}`` bodies; nothing
else about the exception (stack, inner cause) leaves the process.
"""
from typing import Optional


class DocLensError(Exception):
    """Base class for errors with a defined HTTP mapping."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class Unauthenticated(DocLensError):
    status_code = 401
    code = "UNAUTHENTICATED"


class Forbidden(DocLensError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(DocLensError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationFailed(DocLensError):
    """Malformed arguments or a malformed webhook payload."""
    status_code = 400
    code = "VALIDATION_FAILED"


class InsufficientCredits(DocLensError):
    status_code = 402
    code = "NO_CREDITS"


class UnhandledWebhookEvent(DocLensError):
    """Event type outside the reconciliation table. Logged, never retried."""
    status_code = 422
    code = "UNHANDLED_WEBHOOK_EVENT"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Unhandled event type: {event_type}")


class UpstreamUnavailable(DocLensError):
    status_code = 502
    code = "UPSTREAM_UNAVAILABLE"


class PersistenceConflict(DocLensError):
    """Storage constraint violation. Detail is logged, message stays generic."""
    status_code = 422
    code = "PERSISTENCE_CONFLICT"
