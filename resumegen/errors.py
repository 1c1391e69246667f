"""
Error taxonomy for resume generation.

Request-path errors carry the HTTP status they map to and a message that is
safe to show the caller. Job-path errors (render, storage, persistence) are
caught by the worker and turned into a FAILED job instead.
"""
from typing import Optional


class ResumeGenError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(ResumeGenError):
    status_code = 401
    default_message = "Not authenticated"


class EligibilityError(ResumeGenError):
    status_code = 403
    default_message = "Apply to at least two jobs to generate a resume."


class NotFoundError(ResumeGenError):
    status_code = 404
    default_message = "Not found"


class ForbiddenError(ResumeGenError):
    status_code = 403
    default_message = "Forbidden"


class ConflictError(ResumeGenError):
    status_code = 409
    default_message = "Resume not ready"


class RenderError(ResumeGenError):
    default_message = "Document rendering failed"


class StorageError(ResumeGenError):
    status_code = 502
    default_message = "Artifact storage request failed"


class PersistenceError(ResumeGenError):
    default_message = "Database operation failed"
