"""
Safe execution of HTTP requests.

The SafeExecutor validates a URL, pins the addresses it resolved to on the
transport, executes, and repeats the whole cycle for every redirect it is
allowed to follow. A redirect target is never fetched without being
validated first.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from .exceptions import ConfigError, RedirectLimitExceededError, TransportError
from .transport import Transport, TransportFeature
from .validator import UrlValidator

logger = logging.getLogger(__name__)

REDIRECT_STATUS_CODES: frozenset[int] = frozenset({301, 302, 303, 307, 308})


class ExecutionSession(NamedTuple):
    """Settings and progress of one ``execute`` call."""

    url: str
    redirect_count: int
    redirect_limit: int
    follow_redirects: bool
    output_headers: bool


class SafeExecutor:
    """Run requests through a transport while enforcing URL validation.

    Example:
        >>> from safefetch import RequestsTransport, SafeExecutor
        >>> with RequestsTransport(timeout=10) as transport:
        ...     executor = SafeExecutor(transport, follow_redirects=True, redirect_limit=5)
        ...     body = executor.execute("https://example.com/")
    """

    def __init__(
        self,
        transport: Transport,
        validator: UrlValidator | None = None,
        *,
        follow_redirects: bool = False,
        redirect_limit: int = 0,
        output_headers: bool = False,
    ) -> None:
        """Initialize the executor and configure the transport.

        Args:
            transport: The transport requests are sent through.
            validator: The UrlValidator every URL must pass. If not provided,
                a validator with the default rules is used.
            follow_redirects: Whether to follow redirect responses.
            redirect_limit: Bound on followed redirects; 0 means unlimited.
            output_headers: Whether to return the status line and headers
                along with the body.
        """
        self.validator = validator or UrlValidator()
        self.follow_redirects = follow_redirects
        self.redirect_limit = redirect_limit
        self.output_headers = output_headers
        self.transport = transport

    @property
    def transport(self) -> Transport:
        return self._transport

    @transport.setter
    def transport(self, transport: Transport) -> None:
        if not isinstance(transport, Transport):
            raise ConfigError(f"transport must be a Transport, not {type(transport).__name__}")
        self._transport = transport
        self._init_transport()

    @property
    def redirect_limit(self) -> int:
        """Maximum number of redirects followed in one call; 0 means unlimited."""
        return self._redirect_limit

    @redirect_limit.setter
    def redirect_limit(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ConfigError(f"redirect_limit must be a non-negative integer, not {limit!r}")
        self._redirect_limit = limit

    def execute(self, url: str) -> bytes:
        """Fetch a URL, validating it and every redirect target.

        Args:
            url: The URL to fetch.

        Returns:
            The body of the final response, preceded by its status line and
            headers if output_headers is set.

        Raises:
            InvalidURLError: If the URL or a redirect target is rejected.
            TransportError: If the transport fails.
            RedirectLimitExceededError: If more redirects arrive than allowed.
        """
        session = ExecutionSession(
            url=url,
            redirect_count=0,
            redirect_limit=self.redirect_limit,
            follow_redirects=self.follow_redirects,
            output_headers=self.output_headers,
        )
        self.transport.set_include_headers(session.output_headers)

        while True:
            validated = self.validator.validate(session.url)

            # Connect only to the addresses checked in this iteration.
            self.transport.pin_addresses(validated.host, validated.port, validated.ips)
            self.transport.set_url(validated.url)
            logger.debug(
                "Fetching %s via %s:%s -> %s",
                validated.url,
                validated.host,
                validated.port,
                ", ".join(validated.ips),
            )

            response = self.transport.execute()
            if self.transport.error_code:
                raise TransportError(self.transport.error_message, self.transport.error_code)

            status = self.transport.status_code
            if not session.follow_redirects or status not in REDIRECT_STATUS_CODES:
                return response or b""

            target = self.transport.redirect_url
            if not target:
                return response or b""

            if session.redirect_limit and session.redirect_count + 1 >= session.redirect_limit:
                logger.warning(
                    "Redirect limit of %d exceeded at %s", session.redirect_limit, validated.url
                )
                raise RedirectLimitExceededError("Redirect limit exceeded.")

            logger.info("Following %d redirect from %s to %s", status, validated.url, target)
            session = session._replace(url=target, redirect_count=session.redirect_count + 1)

    def _init_transport(self) -> None:
        # Redirects are followed here so that every hop is validated.
        self._transport.set_follow_redirects(False)
        self._transport.set_return_body(True)
        if self._transport.supports(TransportFeature.IPV4_ONLY):
            self._transport.set_ipv4_only(True)
