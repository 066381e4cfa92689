"""
Application error taxonomy.

Services raise these; `main.py` maps them to HTTP responses. `detail` is
what the client sees, so it must never carry internal information.
"""

from __future__ import annotations


class AppError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AppError):
    status_code = 400
    default_detail = "Invalid request."


class NoOpUpdate(ValidationError):
    default_detail = "No updatable fields supplied."


class AuthError(AppError):
    status_code = 401
    default_detail = "Not authenticated."


class Conflict(AppError):
    status_code = 409
    default_detail = "Resource already exists."


class NotFound(AppError):
    status_code = 404
    default_detail = "Not found."


class UpstreamError(AppError):
    """
    Blob store or storage engine failure.

    `internal_detail` is logged by the exception handler; the client only
    gets the generic message.
    """

    status_code = 500

    def __init__(self, internal_detail: str = "") -> None:
        super().__init__()
        self.internal_detail = internal_detail


class PayloadTooLarge(AppError):
    status_code = 413
    default_detail = "Payload too large."
