"""
Pinning pool manager for urllib3 2.x.

This module provides a PoolManager whose pools connect only to pinned
addresses, and which keeps pools for different pins apart.
"""

from __future__ import annotations

import functools
from collections import namedtuple
from typing import Any

from urllib3 import PoolManager
from urllib3.poolmanager import PoolKey, _default_key_normalizer

from .connectionpool import PinnedHTTPConnectionPool, PinnedHTTPSConnectionPool

# Pool classes indexed by scheme
pool_classes_by_scheme: dict[str, type] = {
    "http": PinnedHTTPConnectionPool,
    "https": PinnedHTTPSConnectionPool,
}

# All fields of the base PoolKey plus the pinned addresses, so a pool opened
# for one set of addresses is never reused for another.
PinnedPoolKey = namedtuple(  # type: ignore[misc]
    "PinnedPoolKey", PoolKey._fields + ("key_pinned_addresses",)
)


def key_normalizer(key_class: type, request_context: dict[str, Any]) -> Any:
    """Normalize request context into a pool key.

    Args:
        key_class: The PoolKey class to instantiate.
        request_context: The request context dictionary.

    Returns:
        A PinnedPoolKey instance.
    """
    request_context = request_context.copy()
    request_context["pinned_addresses"] = tuple(request_context.get("pinned_addresses") or ())
    return _default_key_normalizer(key_class, request_context)  # type: ignore[arg-type]


key_fn_by_scheme: dict[str, functools.partial[Any]] = {
    "http": functools.partial(key_normalizer, PinnedPoolKey),
    "https": functools.partial(key_normalizer, PinnedPoolKey),
}


class PinningPoolManager(PoolManager):
    """Pool manager whose connections go only to pinned addresses.

    Pinned addresses travel in the ``pinned_addresses`` pool keyword, which
    the adapter sets per request.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)

        # Verify the API hasn't changed
        assert hasattr(self, "pool_classes_by_scheme"), "urllib3 API changed"

        # Override pool classes with our pinning versions
        self.pool_classes_by_scheme = pool_classes_by_scheme
        self.key_fn_by_scheme = key_fn_by_scheme.copy()  # type: ignore[assignment]
