"""
Pinned connection pools for urllib3 2.x.

This module provides connection pool classes whose connections go only to
the addresses pinned for the pool's host and port.
"""

from __future__ import annotations

from urllib3 import HTTPConnectionPool, HTTPSConnectionPool

from .connection import PinnedHTTPConnection, PinnedHTTPSConnection

# Verify the urllib3 API hasn't changed
assert hasattr(HTTPConnectionPool, "ConnectionCls"), "urllib3 API changed: ConnectionCls missing"
assert hasattr(HTTPSConnectionPool, "ConnectionCls"), "urllib3 API changed: ConnectionCls missing"
assert hasattr(HTTPConnectionPool, "scheme"), "urllib3 API changed: scheme missing"
assert hasattr(HTTPSConnectionPool, "scheme"), "urllib3 API changed: scheme missing"


class PinnedHTTPConnectionPool(HTTPConnectionPool):
    """HTTP connection pool using pinned connections.

    The ``pinned_addresses`` keyword is handed through to every
    PinnedHTTPConnection the pool creates.
    """

    scheme = "http"
    ConnectionCls = PinnedHTTPConnection


class PinnedHTTPSConnectionPool(HTTPSConnectionPool):
    """HTTPS connection pool using pinned connections."""

    scheme = "https"
    ConnectionCls = PinnedHTTPSConnection
