"""
safefetch - SSRF protection for outgoing HTTP requests.

safefetch validates every URL an application fetches, including each
redirect target, against scheme, port, host and address rules before any
connection is made. The addresses a hostname resolved to during validation
are pinned for the connection, so a DNS answer that changes between
validation and connection (DNS rebinding) cannot redirect the request.

Example:
    >>> import safefetch
    >>>
    >>> # Public URLs are fetched normally
    >>> body = safefetch.fetch("https://example.com/", timeout=10)
    >>>
    >>> # Internal addresses are rejected before any connection is made
    >>> safefetch.fetch("http://localhost/")  # Raises InvalidURLError
    >>> safefetch.fetch("http://169.254.169.254/")  # Blocks cloud metadata

For more control, build the pieces yourself:

    >>> from safefetch import RequestsTransport, RuleList, SafeExecutor, UrlValidator
    >>>
    >>> blacklist = RuleList(hosts=[r"(.*)\\.internal\\.example\\.com"])
    >>> validator = UrlValidator(blacklist)
    >>> with RequestsTransport(timeout=10) as transport:
    ...     executor = SafeExecutor(transport, validator, follow_redirects=True)
    ...     body = executor.execute("https://example.com/")
"""

from __future__ import annotations

__version__ = "1.0.0"

from .adapters import PinningHTTPAdapter
from .api import fetch
from .exceptions import (
    ConfigError,
    InvalidURLError,
    ProxyDisabledError,
    RedirectLimitExceededError,
    SafeFetchError,
    TransportError,
)
from .executor import ExecutionSession, SafeExecutor
from .rules import RESERVED_IPV4_NETWORKS, RuleList
from .transport import RequestsTransport, Transport, TransportErrorCode, TransportFeature
from .validator import UrlValidator, ValidatedURL

__all__ = [
    # Version
    "__version__",
    # API functions
    "fetch",
    # Classes
    "ExecutionSession",
    "PinningHTTPAdapter",
    "RequestsTransport",
    "RuleList",
    "SafeExecutor",
    "Transport",
    "TransportErrorCode",
    "TransportFeature",
    "UrlValidator",
    "ValidatedURL",
    # Data
    "RESERVED_IPV4_NETWORKS",
    # Exceptions
    "ConfigError",
    "InvalidURLError",
    "ProxyDisabledError",
    "RedirectLimitExceededError",
    "SafeFetchError",
    "TransportError",
]
