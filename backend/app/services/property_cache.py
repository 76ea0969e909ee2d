"""Redis read-through cache for property listings and its tenant-scoped invalidation."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "properties"
DEFAULT_TTL_SECONDS = 300


def generate_cache_key(prefix: str, params: dict[str, Any]) -> str:
    """Encode a parameter set into a reversible, order-independent key.

    ``None`` values are dropped and keys sorted before JSON encoding; the
    payload is URL-safe base64 with padding stripped.
    """
    filtered = {key: params[key] for key in sorted(params) if params[key] is not None}
    encoded = base64.urlsafe_b64encode(
        json.dumps(filtered, separators=(",", ":"), default=str).encode("utf-8")
    ).decode("ascii").rstrip("=")
    return f"{prefix}:{encoded}"


def decode_cache_key(key: str, prefix: str = DEFAULT_PREFIX) -> dict[str, Any] | None:
    """Recover the parameter set embedded in a key, or None if it is not one of ours."""
    marker = f"{prefix}:"
    if not key.startswith(marker):
        return None
    payload = key[len(marker):]
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = base64.urlsafe_b64decode(payload).decode("utf-8")
        params = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return params if isinstance(params, dict) else None


class PropertyCache:
    def __init__(
        self,
        redis: Redis,
        prefix: str = DEFAULT_PREFIX,
        ttl: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.redis = redis
        self.prefix = prefix
        self.ttl = ttl

    def key_for(self, tenant_id: str, filters: dict[str, Any]) -> str:
        return generate_cache_key(self.prefix, {**filters, "tenantId": tenant_id})

    def get(self, key: str) -> Any | None:
        try:
            raw = self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            self.redis.set(key, json.dumps(value, default=str), ex=self.ttl)
        except RedisError as e:
            logger.warning(f"Failed to cache result for {key}: {e}")

    def invalidate_tenant(self, tenant_id: str) -> int:
        """Delete every cached listing whose embedded tenantId matches.

        Keys for other tenants are never touched. Returns the number of keys
        deleted; Redis failures are logged and reported as 0.
        """
        to_delete: list[str] = []
        try:
            for key in self.redis.scan_iter(match=f"{self.prefix}:*", count=500):
                if isinstance(key, bytes):
                    key = key.decode("utf-8")
                params = decode_cache_key(key, self.prefix)
                if params is None:
                    logger.debug(f"Skipping undecodable cache key: {key}")
                    continue
                if params.get("tenantId") == tenant_id:
                    to_delete.append(key)

            if to_delete:
                self.redis.delete(*to_delete)
        except RedisError as e:
            logger.error(f"Failed to invalidate properties cache for tenant {tenant_id}: {e}")
            return 0

        logger.info(f"Invalidated {len(to_delete)} cache keys for tenant {tenant_id}")
        return len(to_delete)
