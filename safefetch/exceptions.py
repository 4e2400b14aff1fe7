"""
safefetch exception classes.

This module defines all custom exceptions raised by safefetch when a URL is
rejected or a guarded request cannot be completed.
"""

from __future__ import annotations


class SafeFetchError(Exception):
    """Base exception for all safefetch-related errors."""

    pass


class InvalidURLError(SafeFetchError):
    """Raised when a URL is rejected by the validator.

    The message is a stable, human-readable reason such as
    ``"Port is not whitelisted."``. Rejections are never retried.
    """

    pass


class TransportError(SafeFetchError):
    """Raised when the underlying HTTP transport fails.

    The message is passed through from the transport unchanged, so a timeout
    surfaces the transport's own "timed out" text.
    """

    def __init__(self, message: str, error_code: int = 0) -> None:
        super().__init__(message)
        self.error_code = error_code


class RedirectLimitExceededError(SafeFetchError):
    """Raised when a redirect chain is longer than the configured limit."""

    pass


class ConfigError(SafeFetchError):
    """Raised when safefetch is misconfigured.

    For example, when a rule list entry is not a valid port or address, or
    when local address detection is enabled but the netifaces module is not
    installed.
    """

    pass


class ProxyDisabledError(NotImplementedError, SafeFetchError):
    """Raised when attempting to send a request through a proxy.

    Proxies are disabled because the proxy server would connect to the
    target on our behalf, bypassing address pinning.
    """

    pass
