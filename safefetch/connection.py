"""
Pinned HTTP connections for urllib3 2.x.

This module provides HTTP and HTTPS connection classes that connect only to
IPv4 addresses chosen ahead of time, instead of resolving the hostname again
at connect time. TLS still verifies the certificate against the hostname.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Sequence
from socket import timeout as SocketTimeout
from typing import Any

from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.exceptions import ConnectTimeoutError, NameResolutionError, NewConnectionError
from urllib3.util.connection import _set_socket_options
from urllib3.util.timeout import _DEFAULT_TIMEOUT

from . import validator

logger = logging.getLogger(__name__)


def pinned_create_connection(
    address: tuple[str, int],
    pinned_addresses: Sequence[str] = (),
    timeout: Any = _DEFAULT_TIMEOUT,
    source_address: tuple[str, int] | None = None,
    socket_options: Sequence[tuple[int, int, int | bytes]] | None = None,
) -> socket.socket:
    """Create an IPv4 socket connection to one of the pinned addresses.

    Addresses are tried in order and the first successful connection is
    returned. Without pinned addresses the hostname is resolved here,
    restricted to IPv4.

    Args:
        address: A (host, port) tuple to connect to.
        pinned_addresses: IPv4 addresses to connect to in place of the host.
        timeout: Connection timeout in seconds.
        source_address: Optional source address to bind to.
        socket_options: Optional socket options to set.

    Returns:
        A connected socket.

    Raises:
        socket.gaierror: If the host has to be resolved and cannot be.
        OSError: If no address accepted the connection.
    """
    host, port = address

    ips: Sequence[str] = pinned_addresses
    if not ips:
        logger.warning(
            "No pinned addresses for %s:%s, resolving at connect time without validation",
            host,
            port,
        )
        ips = validator.resolve_ipv4(host)

    err: OSError | None = None
    for ip in ips:
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

            # Set socket options before connecting
            _set_socket_options(sock, socket_options)

            if timeout is not _DEFAULT_TIMEOUT:
                sock.settimeout(timeout)
            if source_address:
                sock.bind(source_address)

            sock.connect((ip, port))
            return sock

        except OSError as e:
            err = e
            if sock is not None:
                sock.close()
                sock = None

    if err is not None:
        raise err
    raise OSError(f"No addresses to connect to for {host}")


def _pinned_new_conn(self: PinnedHTTPConnection | PinnedHTTPSConnection) -> socket.socket:
    """Establish a socket connection to a pinned address.

    This method replaces the default _new_conn so the hostname is never
    resolved a second time.

    Returns:
        A connected socket.

    Raises:
        NameResolutionError: If the hostname had to be resolved and could not be.
        ConnectTimeoutError: If the connection times out.
        NewConnectionError: If no address accepted the connection.
    """
    try:
        return pinned_create_connection(
            (self._dns_host, self.port),
            self._pinned_addresses,
            self.timeout,
            source_address=self.source_address,
            socket_options=self.socket_options,
        )
    except socket.gaierror as e:
        raise NameResolutionError(self.host, self, e) from e
    except SocketTimeout as e:
        raise ConnectTimeoutError(
            self,
            f"Connection to {self.host} timed out. (connect timeout={self.timeout})",
        ) from e
    except OSError as e:
        raise NewConnectionError(self, f"Failed to establish a new connection: {e}") from e


# Verify the urllib3 API hasn't changed in a way that would break us
assert hasattr(HTTPConnection, "_new_conn"), "urllib3 API changed: HTTPConnection._new_conn missing"
assert hasattr(HTTPSConnection, "_new_conn"), "urllib3 API changed: HTTPSConnection._new_conn missing"


class PinnedHTTPConnection(HTTPConnection):
    """HTTP connection that only connects to pinned addresses."""

    def __init__(self, *args: Any, pinned_addresses: Sequence[str] = (), **kwargs: Any) -> None:
        """Initialize a pinned HTTP connection.

        Args:
            *args: Arguments passed to HTTPConnection.
            pinned_addresses: IPv4 addresses to connect to for this host.
            **kwargs: Keyword arguments passed to HTTPConnection.
        """
        self._pinned_addresses = tuple(pinned_addresses)
        super().__init__(*args, **kwargs)

    def _new_conn(self) -> socket.socket:
        return _pinned_new_conn(self)


class PinnedHTTPSConnection(HTTPSConnection):
    """HTTPS connection that only connects to pinned addresses.

    The certificate is still checked against the hostname, not the address.
    """

    def __init__(self, *args: Any, pinned_addresses: Sequence[str] = (), **kwargs: Any) -> None:
        """Initialize a pinned HTTPS connection.

        Args:
            *args: Arguments passed to HTTPSConnection.
            pinned_addresses: IPv4 addresses to connect to for this host.
            **kwargs: Keyword arguments passed to HTTPSConnection.
        """
        self._pinned_addresses = tuple(pinned_addresses)
        super().__init__(*args, **kwargs)

    def _new_conn(self) -> socket.socket:
        return _pinned_new_conn(self)
