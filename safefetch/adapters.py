"""
HTTP adapters with address pinning for requests.

This module provides an HTTPAdapter that connects to addresses pinned ahead
of time for a host and port, preventing DNS rebinding between validation and
connection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from requests import PreparedRequest
from requests.adapters import DEFAULT_POOLBLOCK, HTTPAdapter

from .exceptions import ProxyDisabledError
from .poolmanager import PinningPoolManager
from .validator import default_port

logger = logging.getLogger(__name__)


def pin_key(host: str, port: int) -> tuple[str, int]:
    """Normalize a host and port into the key pins are stored under."""
    return host.rstrip(".").lower(), int(port)


class PinningHTTPAdapter(HTTPAdapter):
    """HTTP adapter that connects only to pinned addresses.

    Example:
        >>> import requests
        >>> from safefetch.adapters import PinningHTTPAdapter
        >>>
        >>> adapter = PinningHTTPAdapter()
        >>> adapter.pin("example.com", 443, ["93.184.216.34"])
        >>> session = requests.Session()
        >>> session.mount("http://", adapter)
        >>> session.mount("https://", adapter)
    """

    # Include pins in pickled state
    __attrs__ = HTTPAdapter.__attrs__ + ["_pins"]

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._pins: dict[tuple[str, int], tuple[str, ...]] = {}
        super().__init__(*args, **kwargs)

    @property
    def pins(self) -> dict[tuple[str, int], tuple[str, ...]]:
        return dict(self._pins)

    def pin(self, host: str, port: int, ips: Iterable[str]) -> None:
        """Pin a host and port to a list of IPv4 addresses.

        Args:
            host: The hostname as it appears in request URLs.
            port: The port, explicit or scheme default.
            ips: The addresses to connect to, in order of preference.
        """
        self._pins[pin_key(host, port)] = tuple(ips)

    def clear_pins(self) -> None:
        self._pins.clear()

    def init_poolmanager(
        self,
        connections: int,
        maxsize: int,
        block: bool = DEFAULT_POOLBLOCK,
        **pool_kwargs: Any,
    ) -> None:
        # Same bookkeeping as HTTPAdapter, with the pinning manager.
        self._pool_connections = connections
        self._pool_maxsize = maxsize
        self._pool_block = block
        self.poolmanager = PinningPoolManager(
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            **pool_kwargs,
        )

    def build_connection_pool_key_attributes(
        self,
        request: PreparedRequest,
        verify: bool | str,
        cert: str | tuple[str, str] | None = None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Add the pinned addresses for the request's host to the pool kwargs."""
        host_params, pool_kwargs = super().build_connection_pool_key_attributes(
            request, verify, cert
        )
        port = host_params["port"] or default_port(host_params["scheme"])
        pinned = self._pins.get(pin_key(host_params["host"] or "", port), ())
        logger.debug("Connecting to %s:%s via %s", host_params["host"], port, pinned or "DNS")
        pool_kwargs["pinned_addresses"] = pinned
        return host_params, pool_kwargs

    def proxy_manager_for(self, proxy: str, **proxy_kwargs: Any) -> None:
        """Raise an error because proxies bypass address pinning.

        Args:
            proxy: The proxy URL (ignored).
            **proxy_kwargs: Proxy keyword arguments (ignored).

        Raises:
            ProxyDisabledError: Always raised.
        """
        raise ProxyDisabledError("Proxies cannot be used with safefetch")
