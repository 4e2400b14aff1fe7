"""
URL validation for SSRF protection.

This module provides the core validation logic that determines whether a URL
is safe to fetch: its scheme, port and hostname are checked against rule
lists, and the hostname is resolved so every address it points at can be
checked before any connection is made.
"""

from __future__ import annotations

import functools
import ipaddress
import logging
import socket
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, NamedTuple, NoReturn, TypeVar

from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from .exceptions import ConfigError, InvalidURLError
from .rules import RuleList, default_whitelist, is_reserved_ip

if TYPE_CHECKING:
    from ipaddress import IPv4Address, IPv4Network

    from urllib3.util import Url

# Try to import netifaces for local address detection
try:
    import netifaces

    HAVE_NETIFACES = True
except ImportError:
    netifaces = None  # type: ignore[assignment]
    HAVE_NETIFACES = False

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

# Schemes whose URLs legitimately carry an empty authority ("file:///path").
_HOSTLESS_SCHEMES: frozenset[str] = frozenset({"file"})

UNPARSABLE = "Unable to parse URL."
NO_HOST = "No host found in URL."
CREDENTIALS_NOT_ALLOWED = "Credentials not allowed as part of the URL."
SCHEME_NOT_WHITELISTED = "Scheme is not whitelisted."
SCHEME_BLACKLISTED = "Scheme is blacklisted."
PORT_NOT_WHITELISTED = "Port is not whitelisted."
PORT_BLACKLISTED = "Port is blacklisted."
HOST_NOT_WHITELISTED = "Host is not whitelisted."
HOST_BLACKLISTED = "Host is blacklisted."
UNRESOLVABLE_HOST = "Unable to resolve host."
ADDRESS_BLACKLISTED = "Host resolves to a blacklisted address."
ADDRESS_NOT_WHITELISTED = "Host does not resolve to a whitelisted address."


class ValidatedURL(NamedTuple):
    """A URL that passed validation, with the addresses it was checked against."""

    url: str
    host: str
    port: int
    ips: tuple[str, ...]


def canonicalize_hostname(hostname: str) -> str:
    """Lowercase and convert a hostname to punycode.

    We do the lowercasing after IDNA encoding because we only want to
    lowercase the ASCII characters. A trailing root dot is dropped so that
    ``example.com.`` is matched the same way as ``example.com``.

    Args:
        hostname: The hostname to canonicalize.

    Returns:
        The canonicalized hostname in lowercase punycode.

    Raises:
        UnicodeError: If the hostname is not valid IDNA.
    """
    return hostname.rstrip(".").encode("idna").lower().decode("utf-8")


def default_port(scheme: str) -> int:
    """Return the port a URL uses when it does not give one explicitly."""
    return DEFAULT_PORTS.get(scheme, 80)


def resolve_ipv4(hostname: str) -> list[str]:
    """Resolve a hostname to its IPv4 addresses.

    Args:
        hostname: The hostname to resolve.

    Returns:
        The addresses in resolver order, without duplicates.

    Raises:
        socket.gaierror: If the name cannot be resolved.
    """
    addrinfo = socket.getaddrinfo(hostname, None, socket.AF_INET, socket.SOCK_STREAM)
    ips: list[str] = []
    for _family, _socktype, _proto, _canonname, sockaddr in addrinfo:
        ip = str(sockaddr[0])
        if ip not in ips:
            ips.append(ip)
    return ips


def determine_local_addresses() -> list[IPv4Network]:
    """Get all IPv4 addresses that refer to this machine using netifaces.

    Returns:
        List of IP networks representing local addresses.

    Raises:
        ConfigError: If netifaces module is not available.
    """
    if not HAVE_NETIFACES:
        raise ConfigError(
            "Tried to determine local addresses, but netifaces module was not importable"
        )

    ips: list[IPv4Network] = []
    for interface in netifaces.interfaces():
        for addr_info in netifaces.ifaddresses(interface).get(netifaces.AF_INET, []):
            addr = addr_info.get("addr", "")
            if not addr:
                continue
            try:
                ips.append(ipaddress.IPv4Network(addr))
            except ValueError:
                # Skip malformed addresses
                continue
    return ips


def add_local_address_arg(func: F) -> F:
    """Decorator to add the _local_addresses kwarg if missing.

    This information shouldn't be cached between calls (an interface may get
    a new address at runtime), and we don't want each function to
    recalculate it. Just recalculate it if the caller didn't provide it.
    """

    @functools.wraps(func)
    def wrapper(self: UrlValidator, *args: Any, **kwargs: Any) -> Any:
        if "_local_addresses" not in kwargs:
            if self.autodetect_local_addresses:
                kwargs["_local_addresses"] = determine_local_addresses()
            else:
                kwargs["_local_addresses"] = []
        return func(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class UrlValidator:
    """Validator for URLs to prevent SSRF attacks.

    Every URL is checked in a fixed order: parsing, credentials, scheme,
    port, hostname, and finally each IPv4 address the hostname resolves to.
    The first failing check raises InvalidURLError with a stable message.

    Addresses in the reserved ranges (loopback, private, link-local, cloud
    metadata, multicast and so on) are always rejected. A user blacklist adds
    to them and a user whitelist can only narrow what is allowed further.

    Example:
        >>> validator = UrlValidator()
        >>> validator.validate("http://1.1.1.1/").ips
        ('1.1.1.1',)
        >>> validator.validate("http://127.0.0.1/")
        Traceback (most recent call last):
            ...
        safefetch.exceptions.InvalidURLError: Host resolves to a blacklisted address.
    """

    def __init__(
        self,
        blacklist: RuleList | None = None,
        whitelist: RuleList | None = None,
        *,
        credentials_allowed: bool = False,
        autodetect_local_addresses: bool = False,
    ) -> None:
        """Initialize the URL validator.

        Args:
            blacklist: Entries that must not match. The reserved address
                ranges are applied whether or not a blacklist is given.
            whitelist: Entries of which one must match, per non-empty
                category. Defaults to schemes http/https and ports 80/443;
                a whitelist passed here replaces that default entirely.
            credentials_allowed: Whether URLs may carry a user name or
                password.
            autodetect_local_addresses: Whether to also reject the addresses
                of local network interfaces. Requires netifaces.
        """
        self.blacklist = blacklist if blacklist is not None else RuleList()
        self.whitelist = whitelist if whitelist is not None else default_whitelist()
        self.credentials_allowed = credentials_allowed
        self.autodetect_local_addresses = autodetect_local_addresses

    def validate(self, url: str) -> ValidatedURL:
        """Validate a URL and resolve its hostname.

        Args:
            url: The URL to check.

        Returns:
            The canonical URL, its host and port, and the IPv4 addresses
            that were checked. Connections must be made to these addresses
            only.

        Raises:
            InvalidURLError: If any check fails.
        """
        parsed = self._parse(url)

        if parsed.auth is not None and not self.credentials_allowed:
            self._reject(url, CREDENTIALS_NOT_ALLOWED)

        scheme = parsed.scheme or ""
        self._check_category(url, "scheme", scheme, SCHEME_NOT_WHITELISTED, SCHEME_BLACKLISTED)

        port = parsed.port if parsed.port is not None else default_port(scheme)
        self._check_category(url, "port", port, PORT_NOT_WHITELISTED, PORT_BLACKLISTED)

        try:
            host = canonicalize_hostname(parsed.host or "")
        except UnicodeError:
            self._reject(url, UNPARSABLE)
        self._check_category(url, "host", host, HOST_NOT_WHITELISTED, HOST_BLACKLISTED)

        ips = self._resolve(url, host)
        local_addresses = (
            determine_local_addresses() if self.autodetect_local_addresses else []
        )
        # Every address is checked against the blacklist before any whitelist miss counts.
        if any(self.is_ip_blacklisted(ip, _local_addresses=local_addresses) for ip in ips):
            self._reject(url, ADDRESS_BLACKLISTED)
        if not all(self.is_ip_whitelisted(ip) for ip in ips):
            self._reject(url, ADDRESS_NOT_WHITELISTED)

        logger.debug("Validated %s: %s resolves to %s", url, host, ", ".join(ips))
        return ValidatedURL(url=parsed.url, host=host, port=port, ips=tuple(ips))

    @add_local_address_arg
    def is_ip_blacklisted(
        self,
        addr_ip: str | IPv4Address,
        _local_addresses: list[IPv4Network] | None = None,
    ) -> bool:
        """Check if an IPv4 address is forbidden.

        Args:
            addr_ip: The IP address to check (string or ipaddress object).
            _local_addresses: Internal parameter for local address list.

        Returns:
            True if the address is reserved, local, or on the user blacklist.
        """
        if _local_addresses is None:
            _local_addresses = []

        if not isinstance(addr_ip, ipaddress.IPv4Address):
            addr_ip = ipaddress.IPv4Address(addr_ip)

        if is_reserved_ip(addr_ip):
            return True
        if any(addr_ip in net for net in _local_addresses):
            return True
        return self.blacklist.matches("ip", addr_ip)

    def is_ip_whitelisted(self, addr_ip: str | IPv4Address) -> bool:
        """Check if an IPv4 address passes the whitelist.

        An empty ip whitelist lets every address through.
        """
        if self.whitelist.is_empty("ip"):
            return True
        return self.whitelist.matches("ip", addr_ip)

    def _parse(self, url: str) -> Url:
        try:
            parsed = parse_url(url)
        except LocationParseError:
            self._reject(url, UNPARSABLE)

        if not parsed.host:
            # An authority section that is present but empty is malformed,
            # except for schemes that never name a host.
            scheme = parsed.scheme or ""
            rest = url.strip().split(":", 1)[1] if parsed.scheme else url.strip()
            if rest.startswith("//") and scheme not in _HOSTLESS_SCHEMES:
                self._reject(url, UNPARSABLE)
            self._reject(url, NO_HOST)
        return parsed

    def _check_category(
        self,
        url: str,
        category: str,
        value: str | int,
        not_whitelisted: str,
        blacklisted: str,
    ) -> None:
        if not self.whitelist.is_empty(category) and not self.whitelist.matches(category, value):
            self._reject(url, not_whitelisted)
        if self.blacklist.matches(category, value):
            self._reject(url, blacklisted)

    def _resolve(self, url: str, host: str) -> list[str]:
        if host.startswith("["):
            # IPv6 literal; only IPv4 targets are supported.
            self._reject(url, ADDRESS_BLACKLISTED)

        try:
            return [str(ipaddress.IPv4Address(host))]
        except ValueError:
            pass

        try:
            ips = resolve_ipv4(host)
        except (OSError, UnicodeError) as e:
            logger.debug("Resolving %s failed: %s", host, e)
            ips = []
        if not ips:
            self._reject(url, UNRESOLVABLE_HOST)
        return ips

    def _reject(self, url: str, reason: str) -> NoReturn:
        logger.warning("Rejected URL %r: %s", url, reason)
        raise InvalidURLError(reason)


__all__ = (
    "UrlValidator",
    "ValidatedURL",
    "canonicalize_hostname",
    "default_port",
    "determine_local_addresses",
    "resolve_ipv4",
)
