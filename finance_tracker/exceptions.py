"""
Error Taxonomy for Finance Tracker

Every failure the system reports to a caller is one of these.
The HTTP layer maps them to status codes; the batch runner
catches and counts them per tenant and per debt.
"""


class FinanceTrackerError(Exception):
    """Base exception for all finance tracker errors."""

    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or "Unexpected error"


class NotFoundError(FinanceTrackerError):
    """Debt or record absent."""

    status_code = 404


class BadRequestError(FinanceTrackerError):
    """Malformed period, date or query parameters."""

    status_code = 400


class UnauthorizedError(FinanceTrackerError):
    """Credential refresh failed or token is invalid."""

    status_code = 401


class UpstreamUnavailableError(FinanceTrackerError):
    """Data store or identity provider I/O failed."""

    status_code = 503
