# downloads/exceptions.py
from __future__ import annotations

from core.throttle import RateLimitDecision


class DownloadError(Exception):
    """
    Base for every reason a download is refused.

    `message` is safe to show to the client. `detail` is for server logs only
    and is never put in a response.
    """

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str = "", *, detail: str = "") -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(detail or self.message)

    def payload(self) -> dict:
        return {"error": self.code, "message": self.message}


class NotFound(DownloadError):
    status_code = 404
    code = "not_found"
    default_message = "Product not found"


class RateLimited(DownloadError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many downloads. Please try again later."

    def __init__(self, decision: RateLimitDecision, message: str = "") -> None:
        super().__init__(message)
        self.decision = decision

    def payload(self) -> dict:
        data = super().payload()
        data["reset_at"] = self.decision.reset_at_iso
        data["retry_after"] = self.decision.retry_after()
        return data


class Unentitled(DownloadError):
    status_code = 403
    code = "access_denied"
    default_message = "Access denied"


class InvalidPath(DownloadError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid download request"


class InternalError(DownloadError):
    pass
