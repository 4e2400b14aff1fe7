"""
safefetch API - fetch a URL with SSRF protection in one call.

Example:
    >>> import safefetch
    >>> body = safefetch.fetch("https://example.com/", timeout=10)
    >>> safefetch.fetch("http://169.254.169.254/latest/meta-data/")  # Blocked!
    Traceback (most recent call last):
        ...
    safefetch.exceptions.InvalidURLError: Host resolves to a blacklisted address.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .executor import SafeExecutor
from .transport import RequestsTransport

if TYPE_CHECKING:
    from .validator import UrlValidator


def fetch(
    url: str,
    *,
    validator: UrlValidator | None = None,
    follow_redirects: bool = False,
    redirect_limit: int = 0,
    output_headers: bool = False,
    **transport_kwargs: Any,
) -> bytes:
    """Fetch a URL through a fresh RequestsTransport and SafeExecutor.

    Args:
        url: URL to fetch.
        validator: UrlValidator to check the URL and redirect targets with.
            Defaults to the standard rules.
        follow_redirects: Whether to follow (and validate) redirects.
        redirect_limit: Bound on followed redirects; 0 means unlimited.
        output_headers: Whether to prepend the status line and headers.
        **transport_kwargs: Passed to RequestsTransport (method, headers,
            data, timeout, verify).

    Returns:
        The response body.

    Raises:
        InvalidURLError: If the URL or a redirect target is rejected.
        TransportError: If the request fails.
        RedirectLimitExceededError: If there are too many redirects.
    """
    with RequestsTransport(**transport_kwargs) as transport:
        executor = SafeExecutor(
            transport,
            validator,
            follow_redirects=follow_redirects,
            redirect_limit=redirect_limit,
            output_headers=output_headers,
        )
        return executor.execute(url)


__all__ = ("fetch",)
