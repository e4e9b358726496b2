"""Domain exceptions for the LedgerLink service."""


class LedgerLinkError(Exception):
    """Base exception for all LedgerLink errors."""
    pass


class AuthenticationRequired(LedgerLinkError):
    """No usable token in the local store; the user has to log in again."""
    pass


class GatewayError(LedgerLinkError):
    """The remote backend could not be reached or returned unreadable data."""
    pass


class UpstreamStatusError(GatewayError):
    """The remote backend answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str, body: str = ""):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"GET {url} returned {status_code}: {body[:200]}")


class TransactionNotFound(LedgerLinkError):
    """Neither detail endpoint knows the requested transaction."""
    pass


def http_status_for(error: LedgerLinkError) -> int:
    """Status code a router answers with when a LedgerLinkError reaches it."""
    if isinstance(error, AuthenticationRequired):
        return 401
    if isinstance(error, TransactionNotFound):
        return 404
    return 502
