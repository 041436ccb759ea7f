class AppError(Exception):
    """Base for failures that map onto a client-facing status code."""

    status_code = 500

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ForbiddenError(AppError):
    status_code = 403


class ConflictError(AppError):
    """
    Capacity, slot or duplicate violations. 400 when a pre-check rejects the
    request, 409 when the race was lost at commit time.
    """

    status_code = 400


class RateLimitedError(AppError):
    status_code = 429

    def __init__(self, decision):
        super().__init__("Too Many Requests")
        self.decision = decision

    @property
    def retry_after(self) -> int:
        return self.decision.retry_after
