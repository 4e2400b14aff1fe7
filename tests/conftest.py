"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import socket
from collections.abc import Iterable, Iterator
from typing import Any, NamedTuple
from unittest.mock import patch

import pytest

from safefetch import UrlValidator
from safefetch.transport import Transport, TransportFeature


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-network",
        action="store_true",
        default=False,
        help="run tests that make real network requests",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-network"):
        return
    skip_network = pytest.mark.skip(reason="needs --run-network")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_network)


class FakeResponse(NamedTuple):
    """A canned transport outcome."""

    body: bytes = b""
    status: int = 200
    location: str | None = None
    error_code: int = 0
    error_message: str = ""


class FakeTransport(Transport):
    """Transport double that records configuration and replays responses.

    No network I/O happens; every ``execute`` pops the next FakeResponse.
    """

    def __init__(
        self,
        responses: Iterable[FakeResponse] = (),
        features: Iterable[TransportFeature] = (
            TransportFeature.IPV4_ONLY,
            TransportFeature.PINNING,
        ),
    ) -> None:
        self.responses = list(responses)
        self.features = set(features)
        self.calls: list[tuple[str, Any]] = []
        self.executed: list[dict[str, Any]] = []
        self.url: str | None = None
        self.include_headers = False
        self._pins: dict[tuple[str, int], tuple[str, ...]] = {}
        self._last: FakeResponse | None = None

    def set_url(self, url: str) -> None:
        self.calls.append(("set_url", url))
        self.url = url

    def set_follow_redirects(self, enabled: bool) -> None:
        self.calls.append(("set_follow_redirects", enabled))

    def set_return_body(self, enabled: bool) -> None:
        self.calls.append(("set_return_body", enabled))

    def set_include_headers(self, enabled: bool) -> None:
        self.calls.append(("set_include_headers", enabled))
        self.include_headers = enabled

    def set_ipv4_only(self, enabled: bool) -> None:
        self.calls.append(("set_ipv4_only", enabled))

    def pin_addresses(self, host: str, port: int, ips: Iterable[str]) -> None:
        self.calls.append(("pin_addresses", (host, port, tuple(ips))))
        self._pins[(host, port)] = tuple(ips)

    def supports(self, feature: TransportFeature) -> bool:
        return feature in self.features

    def execute(self) -> bytes | None:
        self.executed.append({"url": self.url, "pins": dict(self._pins)})
        self._pins.clear()
        self._last = self.responses.pop(0)
        if self._last.error_code:
            return None
        return self._last.body

    @property
    def error_code(self) -> int:
        return self._last.error_code if self._last else 0

    @property
    def error_message(self) -> str:
        return self._last.error_message if self._last else ""

    @property
    def status_code(self) -> int:
        return self._last.status if self._last else 0

    @property
    def redirect_url(self) -> str | None:
        return self._last.location if self._last else None


@pytest.fixture
def validator() -> UrlValidator:
    """Create a validator with the default rules."""
    return UrlValidator()


@pytest.fixture
def fake_dns() -> Iterator[dict[str, list[str]]]:
    """Replace name resolution with a mutable hostname -> addresses mapping.

    Unknown names fail the way an NXDOMAIN answer does.
    """
    records: dict[str, list[str]] = {}

    def getaddrinfo(host: str, port: Any, family: int = 0, type: int = 0, *args: Any) -> Any:
        if host not in records:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        return [
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", (ip, port or 0)) for ip in records[host]
        ]

    with patch("socket.getaddrinfo", side_effect=getaddrinfo):
        yield records
