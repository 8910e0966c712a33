"""
Exception hierarchy for the TCRS client.

Every failure the client reports to its callers derives from TCRSError,
so the CLI can turn any of them into a readable message and exit code.
"""


class TCRSError(Exception):
    """Base class for all TCRS client errors."""
    pass


class ConfigurationError(TCRSError):
    """Raised when required configuration (the base URL) is missing or invalid."""
    pass


class NotLoggedInError(TCRSError):
    """Raised when an operation needs an authenticated session and none exists."""

    def __init__(self, message: str = "not logged in"):
        super().__init__(message)


class InvalidCredentialsError(TCRSError):
    """Raised when the login response carries a failure marker."""

    def __init__(self, message: str = "invalid credentials"):
        super().__init__(message)


class LoginFailedError(TCRSError):
    """Raised when the post-login verification did not reach a protected page."""

    def __init__(self, message: str = "login failed"):
        super().__init__(message)


class SessionExpiredError(TCRSError):
    """Raised when the stored session is older than the session timeout."""

    def __init__(self, message: str = "session expired"):
        super().__init__(message)


class CookieSaveError(TCRSError):
    """Base class for cookie persistence preconditions."""
    pass


class NoCookiesError(CookieSaveError):
    """Raised when there are no cookies at all to persist."""

    def __init__(self, message: str = "no cookies found"):
        super().__init__(message)


class NoSessionCookieError(CookieSaveError):
    """Raised when cookies exist but none of them is a session cookie."""

    def __init__(self, message: str = "no session cookie found"):
        super().__init__(message)


class TransportError(TCRSError):
    """Raised when an HTTP request fails below the application level."""
    pass


class SaveFailedError(TCRSError):
    """
    Raised when the save response contains a failure marker.

    Attributes:
        marker: The failure substring that matched the response body
    """

    def __init__(self, marker: str):
        self.marker = marker
        super().__init__(f"server indicated save failure (matched '{marker}')")


class PayloadError(TCRSError):
    """Raised when save entries cannot be serialized into the save form."""
    pass


class EntryLoadError(TCRSError):
    """Raised when a save input file cannot be read or parsed."""
    pass
