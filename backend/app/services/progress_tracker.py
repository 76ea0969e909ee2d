"""Shared helpers for publishing job progress snapshots to Redis."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

PROGRESS_PREFIX = "jobs:progress:"
PROGRESS_TTL = timedelta(hours=24)


class ProgressTracker:
    """Poll-based progress store; readers call ``fetch`` from the status endpoint."""

    def __init__(self, redis: Redis, ttl: timedelta = PROGRESS_TTL) -> None:
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{PROGRESS_PREFIX}{job_id}"

    def publish(
        self,
        job_id: str,
        progress: float,
        message: str | None = None,
        *,
        phase: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Persist a progress snapshot (0-1 range)."""
        payload = {
            "job_id": job_id,
            "progress": max(0.0, min(progress, 1.0)),
            "message": message,
            "phase": phase,
            "meta": meta or {},
        }
        try:
            self.redis.set(
                self._key(job_id),
                json.dumps(payload),
                ex=int(self.ttl.total_seconds()),
            )
        except RedisError:
            # Redis availability should not break ingestion.
            pass

    def fetch(self, job_id: str) -> dict[str, Any]:
        """Return the latest snapshot, or an empty dict when none exists."""
        try:
            raw = self.redis.get(self._key(job_id))
        except RedisError:
            return {}
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return {}
