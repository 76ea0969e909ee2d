"""Helper function to create Redis clients with SSL support for managed providers."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis

MANAGED_TLS_HOSTS = (".upstash.io",)


def normalize_redis_url(url: str) -> str:
    """Force rediss:// for managed hosts that only accept TLS."""
    if url.startswith("redis://") and any(host in url for host in MANAGED_TLS_HOSTS):
        return url.replace("redis://", "rediss://", 1)
    return url


def uses_tls(url: str) -> bool:
    return normalize_redis_url(url).startswith("rediss://")


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client with proper SSL configuration.

    Args:
        url: Redis connection URL (redis:// or rediss://)
        **kwargs: Additional arguments (decode_responses, socket_connect_timeout, etc.)

    Returns:
        Configured Redis client
    """
    url = normalize_redis_url(url)
    client = Redis.from_url(url, **kwargs)

    if url.startswith("rediss://"):
        # Managed providers present certificates the default store cannot verify
        client.connection_pool.connection_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE

    return client
