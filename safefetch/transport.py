"""
HTTP transports for the safe executor.

The executor never performs network I/O itself. It drives a Transport: it
sets the URL, pins the validated addresses, executes, and reads back the
status and redirect target. RequestsTransport is the implementation built on
requests and urllib3.
"""

from __future__ import annotations

import abc
import enum
import logging
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urljoin

import requests
from requests.exceptions import ConnectionError, RequestException, SSLError, Timeout

from .adapters import PinningHTTPAdapter
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

_HTTP_VERSIONS: dict[int, str] = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2"}


class TransportFeature(enum.Enum):
    """Capabilities a transport may report through ``supports``."""

    IPV4_ONLY = "ipv4_only"
    PINNING = "pinning"


class TransportErrorCode(enum.IntEnum):
    """Low-level failure codes. Zero means the last request succeeded."""

    OK = 0
    FAILED = 1
    CONNECT_FAILED = 2
    TIMED_OUT = 3
    SSL_ERROR = 4


class Transport(abc.ABC):
    """Interface between the safe executor and an HTTP client.

    A transport handles one logical request at a time. Pinned addresses
    apply to the next ``execute`` call only.
    """

    @abc.abstractmethod
    def set_url(self, url: str) -> None:
        """Set the URL the next request goes to."""

    @abc.abstractmethod
    def set_follow_redirects(self, enabled: bool) -> None:
        """Turn the transport's own redirect following on or off."""

    @abc.abstractmethod
    def set_return_body(self, enabled: bool) -> None:
        """Choose whether ``execute`` returns the response body."""

    @abc.abstractmethod
    def set_include_headers(self, enabled: bool) -> None:
        """Choose whether the status line and headers precede the body."""

    @abc.abstractmethod
    def set_ipv4_only(self, enabled: bool) -> None:
        """Restrict name resolution to IPv4."""

    @abc.abstractmethod
    def pin_addresses(self, host: str, port: int, ips: Iterable[str]) -> None:
        """Connect to these addresses for host:port on the next request."""

    @abc.abstractmethod
    def execute(self) -> bytes | None:
        """Send the request.

        Returns:
            The response output, or None if the request failed, in which
            case ``error_code`` is non-zero.
        """

    @abc.abstractmethod
    def supports(self, feature: TransportFeature) -> bool:
        """Report whether the transport has a capability."""

    @property
    @abc.abstractmethod
    def error_code(self) -> int:
        """Failure code of the last request, zero on success."""

    @property
    @abc.abstractmethod
    def error_message(self) -> str:
        """Failure text of the last request, empty on success."""

    @property
    @abc.abstractmethod
    def status_code(self) -> int:
        """HTTP status of the last response, zero if there was none."""

    @property
    @abc.abstractmethod
    def redirect_url(self) -> str | None:
        """Absolute redirect target of the last response, if it was a redirect."""


def error_code_for(exc: RequestException) -> TransportErrorCode:
    """Map a requests exception onto a transport error code."""
    # ConnectTimeout is both a Timeout and a ConnectionError
    if isinstance(exc, Timeout):
        return TransportErrorCode.TIMED_OUT
    if isinstance(exc, SSLError):
        return TransportErrorCode.SSL_ERROR
    if isinstance(exc, ConnectionError):
        return TransportErrorCode.CONNECT_FAILED
    return TransportErrorCode.FAILED


class RequestsTransport(Transport):
    """Transport that sends requests through a requests Session.

    The session gets a PinningHTTPAdapter for http and https, never follows
    redirects unless told to, and ignores proxy settings from the
    environment. Connections are always made over IPv4.

    Example:
        >>> with RequestsTransport(timeout=5) as transport:
        ...     transport.set_url("https://example.com/")
        ...     transport.pin_addresses("example.com", 443, ["93.184.216.34"])
        ...     body = transport.execute()
    """

    def __init__(
        self,
        method: str = "GET",
        *,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
        timeout: float | tuple[float, float] | None = None,
        verify: bool | str = True,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            method: HTTP method used for every request.
            headers: Extra request headers.
            data: Request body, as accepted by requests.
            timeout: Connect/read timeout in seconds, as accepted by requests.
            verify: TLS verification setting, as accepted by requests.
            session: Session to use. Its http and https adapters are replaced.
        """
        self.method = method.upper()
        self.headers = dict(headers or {})
        self.data = data
        self.timeout = timeout
        self.verify = verify

        self._adapter = PinningHTTPAdapter()
        self._session = session if session is not None else requests.Session()
        self._session.trust_env = False
        self._session.mount("http://", self._adapter)
        self._session.mount("https://", self._adapter)

        self._url: str | None = None
        self._follow_redirects = False
        self._return_body = True
        self._include_headers = False
        self._response: requests.Response | None = None
        self._error: RequestException | None = None

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def adapter(self) -> PinningHTTPAdapter:
        return self._adapter

    def set_url(self, url: str) -> None:
        self._url = url

    def set_follow_redirects(self, enabled: bool) -> None:
        self._follow_redirects = enabled

    def set_return_body(self, enabled: bool) -> None:
        self._return_body = enabled

    def set_include_headers(self, enabled: bool) -> None:
        self._include_headers = enabled

    def set_ipv4_only(self, enabled: bool) -> None:
        if not enabled:
            raise ConfigError("RequestsTransport only connects over IPv4")

    def pin_addresses(self, host: str, port: int, ips: Iterable[str]) -> None:
        self._adapter.pin(host, port, ips)

    def supports(self, feature: TransportFeature) -> bool:
        return feature in (TransportFeature.IPV4_ONLY, TransportFeature.PINNING)

    def execute(self) -> bytes | None:
        if self._url is None:
            raise ConfigError("No URL set on the transport")

        self._response = None
        self._error = None

        prepared = self._session.prepare_request(
            requests.Request(self.method, self._url, headers=self.headers, data=self.data)
        )
        try:
            response = self._session.send(
                prepared,
                allow_redirects=self._follow_redirects,
                timeout=self.timeout,
                verify=self.verify,
                stream=not self._return_body,
            )
        except RequestException as e:
            self._error = e
            logger.debug("%s %s failed: %s", self.method, self._url, e)
            return None
        finally:
            self._adapter.clear_pins()

        self._response = response
        if self._return_body:
            body = response.content
        else:
            body = b""
            response.close()

        if self._include_headers:
            return self._format_head(response) + body
        return body

    @property
    def error_code(self) -> int:
        if self._error is None:
            return TransportErrorCode.OK
        return error_code_for(self._error)

    @property
    def error_message(self) -> str:
        return "" if self._error is None else str(self._error)

    @property
    def status_code(self) -> int:
        return 0 if self._response is None else self._response.status_code

    @property
    def redirect_url(self) -> str | None:
        if self._response is None or not self._response.is_redirect:
            return None
        location = self._session.get_redirect_target(self._response)
        if not location:
            return None
        return urljoin(self._response.url, location)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> RequestsTransport:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @staticmethod
    def _format_head(response: requests.Response) -> bytes:
        version = _HTTP_VERSIONS.get(getattr(response.raw, "version", 11), "HTTP/1.1")
        lines = [f"{version} {response.status_code} {response.reason or ''}".rstrip()]
        lines.extend(f"{name}: {value}" for name, value in response.headers.items())
        return ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1", errors="replace")


__all__ = (
    "RequestsTransport",
    "Transport",
    "TransportErrorCode",
    "TransportFeature",
    "error_code_for",
)
