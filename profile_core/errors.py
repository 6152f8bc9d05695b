from __future__ import annotations


class DashboardError(Exception):
    """Base class for every failure the dashboard surfaces."""


class AuthError(DashboardError):
    """Credential exchange rejected; the message is shown to the user verbatim."""


class TokenInvalid(DashboardError):
    pass


class DecodeError(TokenInvalid):
    pass


class MissingClaim(TokenInvalid):
    pass


class TokenExpired(DashboardError):
    pass


class FetchFailed(DashboardError):
    """A required query errored or the transport failed. Retryable."""


class Unauthorized(FetchFailed):
    """The query boundary rejected the bearer token. The session must be dropped, not retried."""


class PartialDataUnavailable(DashboardError):
    """Only the optional skills query failed."""
