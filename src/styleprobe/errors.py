"""
styleprobe Error Taxonomy - Exception classes for the test harness.

Server failures are absorbed by the ``serve`` fallback; session failures
surface to the caller as setup errors.
"""
from typing import Optional


class StyleProbeError(Exception):
    """Base exception for all styleprobe errors."""

    def __init__(self, message: str, method: Optional[str] = None, **context):
        super().__init__(message)
        self.message = message
        self.method = method
        self.context = context

    def __str__(self):
        parts = [self.message]
        if self.method:
            parts.append(f"method={self.method}")
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"context=({context_str})")
        return " | ".join(parts)


class ConfigError(StyleProbeError):
    """Raised when a configuration value cannot be parsed."""
    pass


class FixtureNotFound(StyleProbeError):
    """Raised when the page to load does not exist on disk."""
    pass


class ServerError(StyleProbeError):
    """Base class for static server failures."""
    pass


class ServerStartFailure(ServerError):
    """Raised when the server process exits before the settle delay elapsed."""

    def __init__(self, message: str, returncode: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.returncode = returncode


class ServerUnresponsive(ServerError):
    """Raised when the readiness probe budget is spent without a 2xx response."""

    def __init__(self, message: str, last_error: Optional[str] = None,
                 attempts: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.last_error = last_error
        self.attempts = attempts


class SessionError(StyleProbeError):
    """Raised when the browser session cannot be created or driven."""
    pass


class CDPConnectionError(SessionError):
    """Raised when connection to Chrome/CDP fails or is lost."""
    pass


class CDPTimeoutError(SessionError):
    """Raised when a CDP operation times out."""

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class CDPProtocolError(SessionError):
    """Raised when CDP returns an error response."""

    def __init__(self, message: str, code: Optional[int] = None,
                 cdp_error: Optional[dict] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.code = code
        self.cdp_error = cdp_error
