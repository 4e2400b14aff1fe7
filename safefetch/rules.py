"""
Rule lists for URL validation.

A RuleList holds entries for four categories (scheme, port, host and ip) and
can be handed to the UrlValidator as a whitelist, a blacklist, or both.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable, Mapping
from ipaddress import IPv4Address, IPv4Network
from re import Pattern
from typing import Any

from .exceptions import ConfigError

# Networks that are never acceptable as a connection target. User blacklists
# extend this list; nothing can remove entries from it.
RESERVED_IPV4_NETWORKS: tuple[IPv4Network, ...] = tuple(
    ipaddress.IPv4Network(net)
    for net in (
        "0.0.0.0/8",  # "This" network
        "10.0.0.0/8",  # Private
        "100.64.0.0/10",  # Carrier-grade NAT
        "127.0.0.0/8",  # Loopback
        "169.254.0.0/16",  # Link-local, cloud metadata endpoints
        "172.16.0.0/12",  # Private
        "192.0.0.0/24",  # IETF protocol assignments
        "192.0.2.0/24",  # TEST-NET-1
        "192.88.99.0/24",  # 6to4 relay anycast
        "192.168.0.0/16",  # Private
        "198.18.0.0/15",  # Benchmarking
        "198.51.100.0/24",  # TEST-NET-2
        "203.0.113.0/24",  # TEST-NET-3
        "224.0.0.0/4",  # Multicast
        "240.0.0.0/4",  # Reserved
        "255.255.255.255/32",  # Limited broadcast
    )
)

CATEGORIES: tuple[str, ...] = ("scheme", "port", "host", "ip")

_DICT_KEYS: frozenset[str] = frozenset({"schemes", "ports", "hosts", "ips"})


def is_reserved_ip(addr_ip: str | IPv4Address) -> bool:
    """Check if an IPv4 address falls in one of the reserved networks."""
    if not isinstance(addr_ip, ipaddress.IPv4Address):
        addr_ip = ipaddress.IPv4Address(addr_ip)
    return any(addr_ip in net for net in RESERVED_IPV4_NETWORKS)


def _compile_pattern(pattern: str | Pattern[str]) -> Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return re.compile(pattern.pattern, pattern.flags | re.IGNORECASE)
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ConfigError(f"Invalid pattern {pattern!r}: {e}") from e


def _parse_port(port: Any) -> int:
    # bool is an int subclass but never a meaningful port
    if isinstance(port, bool):
        raise ConfigError(f"Invalid port: {port!r}")
    try:
        port_int = int(port)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid port: {port!r}") from e
    if not 0 <= port_int <= 65535:
        raise ConfigError(f"Port out of range: {port!r}")
    return port_int


def _parse_ip(ip: str | IPv4Address | IPv4Network) -> IPv4Network:
    if isinstance(ip, ipaddress.IPv4Network):
        return ip
    try:
        return ipaddress.IPv4Network(ip, strict=False)
    except ValueError as e:
        raise ConfigError(f"Invalid IPv4 address or network: {ip!r}") from e


class RuleList:
    """Entries for the scheme, port, host and ip rule categories.

    Scheme and host entries are regular expressions that must match the
    whole value, ignoring case. Port entries are integers and ip entries are
    IPv4 addresses or networks; both are exact matches (an address matches a
    network that contains it).

    Example:
        >>> blacklist = RuleList().add_host(r"(.*)\\.internal\\.example\\.com")
        >>> blacklist.matches("host", "db.internal.example.com")
        True
        >>> RuleList(ports=[80, 443]).matches("port", 8080)
        False
    """

    def __init__(
        self,
        schemes: Iterable[str | Pattern[str]] | None = None,
        ports: Iterable[int] | None = None,
        hosts: Iterable[str | Pattern[str]] | None = None,
        ips: Iterable[str | IPv4Address | IPv4Network] | None = None,
    ) -> None:
        self._schemes: list[Pattern[str]] = []
        self._ports: list[int] = []
        self._hosts: list[Pattern[str]] = []
        self._ips: list[IPv4Network] = []
        self.set_schemes(schemes or [])
        self.set_ports(ports or [])
        self.set_hosts(hosts or [])
        self.set_ips(ips or [])

    @classmethod
    def from_dict(cls, config: Mapping[str, Iterable[Any]]) -> RuleList:
        """Build a rule list from a plain mapping.

        Args:
            config: Mapping with any of the keys ``schemes``, ``ports``,
                ``hosts`` and ``ips``.

        Returns:
            A new RuleList.

        Raises:
            ConfigError: If the mapping has an unknown key or an entry is
                invalid.
        """
        unknown = set(config) - _DICT_KEYS
        if unknown:
            raise ConfigError(f"Unknown rule list keys: {sorted(unknown)!r}")
        return cls(**{key: config[key] for key in config})

    def copy(self) -> RuleList:
        new = RuleList()
        new._schemes = list(self._schemes)
        new._ports = list(self._ports)
        new._hosts = list(self._hosts)
        new._ips = list(self._ips)
        return new

    def add_scheme(self, pattern: str | Pattern[str]) -> RuleList:
        self._schemes.append(_compile_pattern(pattern))
        return self

    def add_port(self, port: int) -> RuleList:
        self._ports.append(_parse_port(port))
        return self

    def add_host(self, pattern: str | Pattern[str]) -> RuleList:
        self._hosts.append(_compile_pattern(pattern))
        return self

    def add_ip(self, ip: str | IPv4Address | IPv4Network) -> RuleList:
        self._ips.append(_parse_ip(ip))
        return self

    def set_schemes(self, patterns: Iterable[str | Pattern[str]]) -> RuleList:
        self._schemes = [_compile_pattern(p) for p in patterns]
        return self

    def set_ports(self, ports: Iterable[int]) -> RuleList:
        self._ports = [_parse_port(p) for p in ports]
        return self

    def set_hosts(self, patterns: Iterable[str | Pattern[str]]) -> RuleList:
        self._hosts = [_compile_pattern(p) for p in patterns]
        return self

    def set_ips(self, ips: Iterable[str | IPv4Address | IPv4Network]) -> RuleList:
        self._ips = [_parse_ip(ip) for ip in ips]
        return self

    def get(self, category: str) -> list[Any]:
        """Return a copy of the entries for a category."""
        return list(self._entries(category))

    def is_empty(self, category: str) -> bool:
        return not self._entries(category)

    def matches(self, category: str, value: Any) -> bool:
        """Check if a value matches any entry of a category.

        Args:
            category: One of ``scheme``, ``port``, ``host`` or ``ip``.
            value: The scheme, port, hostname or IPv4 address to check.

        Returns:
            True if at least one entry matches.
        """
        entries = self._entries(category)
        if category in ("scheme", "host"):
            return any(pattern.fullmatch(str(value)) for pattern in entries)
        if category == "port":
            return value in entries
        if not isinstance(value, ipaddress.IPv4Address):
            try:
                value = ipaddress.IPv4Address(value)
            except ValueError:
                return False
        return any(value in net for net in entries)

    def _entries(self, category: str) -> list[Any]:
        if category == "scheme":
            return self._schemes
        if category == "port":
            return self._ports
        if category == "host":
            return self._hosts
        if category == "ip":
            return self._ips
        raise ValueError(f"Unknown rule category: {category!r}")

    def __repr__(self) -> str:
        return (
            f"RuleList(schemes={[p.pattern for p in self._schemes]!r}, "
            f"ports={self._ports!r}, "
            f"hosts={[p.pattern for p in self._hosts]!r}, "
            f"ips={[str(net) for net in self._ips]!r})"
        )


def default_whitelist() -> RuleList:
    """Return the whitelist used when the validator is given none."""
    return RuleList(schemes=["http", "https"], ports=[80, 443])


__all__ = (
    "CATEGORIES",
    "RESERVED_IPV4_NETWORKS",
    "RuleList",
    "default_whitelist",
    "is_reserved_ip",
)
