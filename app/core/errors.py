"""
Error taxonomy for the media pipeline.

Every failure raised by a service is a ``PipelineError``. The HTTP layer maps
it to ``{"success": false, "error": <public_message>}`` with the attached
status code; the internal ``detail`` is only ever logged.
"""

from __future__ import annotations


class PipelineError(Exception):
    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, public_message: str | None = None, *, detail: str | None = None):
        self.public_message = public_message or self.public_message
        self.detail = detail or self.public_message
        super().__init__(self.detail)

    def payload(self) -> dict:
        return {"success": False, "error": self.public_message}

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(PipelineError):
    status_code = 400
    public_message = "Invalid request"


class AuthError(PipelineError):
    status_code = 401
    public_message = "Unauthorized"


class NotFoundError(PipelineError):
    status_code = 404
    public_message = "Image not found"


class RateLimitedError(PipelineError):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."

    def __init__(self, reset_in_ms: int | None, remaining: int = 0, public_message: str | None = None):
        super().__init__(public_message)
        self.reset_in_ms = reset_in_ms
        self.remaining = remaining

    @property
    def reset_in_seconds(self) -> int | None:
        if self.reset_in_ms is None:
            return None
        return -(-self.reset_in_ms // 1000)

    def payload(self) -> dict:
        body = super().payload()
        if self.reset_in_ms is not None:
            # resetIn is reported in minutes, rounded up
            body["resetIn"] = -(-self.reset_in_ms // 60_000)
        return body

    def headers(self) -> dict[str, str] | None:
        out = {"X-RateLimit-Remaining": str(self.remaining)}
        if self.reset_in_seconds is not None:
            out["X-RateLimit-Reset"] = str(self.reset_in_seconds)
        return out


class QuotaExceededError(RateLimitedError):
    def __init__(self, limit: int, reset_in_ms: int | None = None):
        super().__init__(
            reset_in_ms,
            public_message=f"Daily limit reached. You can process {limit} images per day. Try again tomorrow.",
        )
        self.limit = limit

    def payload(self) -> dict:
        return {**super().payload(), "remaining": 0}


class TransformError(PipelineError):
    status_code = 502
    public_message = "Background removal failed"


class StorageError(PipelineError):
    status_code = 500
    public_message = "Storage operation failed"


class ObjectNotFoundError(StorageError):
    status_code = 404
    public_message = "Image not found or already deleted"


class PersistenceError(PipelineError):
    status_code = 500
    public_message = "Failed to save image metadata"
