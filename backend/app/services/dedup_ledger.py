"""Redis ledger of import fingerprints and their coarse lifecycle state."""

from __future__ import annotations

import enum
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from redis import Redis
from redis.exceptions import WatchError

logger = logging.getLogger(__name__)

LEDGER_PREFIX = "import:job:"


class LedgerState(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def in_flight(self) -> bool:
        return self in (LedgerState.QUEUED, LedgerState.PROCESSING)


@dataclass
class LedgerRecord:
    job_id: str
    state: LedgerState
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    data: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "state": self.state.value,
                "updated_at": self.updated_at,
                "data": self.data,
                "result": self.result,
                "error": self.error,
            }
        )

    @classmethod
    def from_raw(cls, job_id: str, raw: str) -> LedgerRecord | None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            payload = {"state": raw}
        if isinstance(payload, str):
            payload = {"state": payload}
        if not isinstance(payload, dict):
            return None
        try:
            state = LedgerState(payload.get("state"))
        except ValueError:
            logger.warning(f"Ignoring ledger entry {job_id} with unknown state {payload!r}")
            return None
        return cls(
            job_id=job_id,
            state=state,
            updated_at=payload.get("updated_at") or "",
            data=payload.get("data"),
            result=payload.get("result"),
            error=payload.get("error"),
        )


class DedupLedger:
    """Tracks in-flight fingerprints so the same upload is never queued twice.

    Only ``queued`` and ``processing`` block a resubmission. Completed and
    failed records are kept for ``terminal_ttl`` seconds so status polling can
    tell a finished job from an unknown one.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = LEDGER_PREFIX,
        in_flight_ttl: int | None = 86400,
        terminal_ttl: int = 86400,
    ) -> None:
        self.redis = redis
        self.prefix = prefix
        self.in_flight_ttl = in_flight_ttl
        self.terminal_ttl = terminal_ttl

    def key(self, job_id: str) -> str:
        return f"{self.prefix}{job_id}"

    def get(self, job_id: str) -> LedgerRecord | None:
        raw = self.redis.get(self.key(job_id))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return LedgerRecord.from_raw(job_id, raw)

    def claim(self, job_id: str, data: dict[str, Any] | None = None) -> bool:
        """Atomically record ``queued`` unless the job is already in flight.

        Returns False for a duplicate submission.
        """
        key = self.key(job_id)
        record = LedgerRecord(job_id=job_id, state=LedgerState.QUEUED, data=data)
        with self.redis.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is not None:
                        if isinstance(raw, bytes):
                            raw = raw.decode("utf-8")
                        existing = LedgerRecord.from_raw(job_id, raw)
                        if existing is not None and existing.state.in_flight:
                            pipe.unwatch()
                            logger.info(f"Duplicate job detected: {job_id} ({existing.state.value})")
                            return False
                    pipe.multi()
                    pipe.set(key, record.to_json(), ex=self.in_flight_ttl)
                    pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"Ledger entry {job_id} changed during claim, retrying")
                    continue

    def _transition(
        self,
        job_id: str,
        state: LedgerState,
        *,
        ttl: int | None,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> LedgerRecord:
        previous = self.get(job_id)
        record = LedgerRecord(
            job_id=job_id,
            state=state,
            data=previous.data if previous else None,
            result=result,
            error=error,
        )
        self.redis.set(self.key(job_id), record.to_json(), ex=ttl)
        return record

    def mark_processing(self, job_id: str) -> LedgerRecord:
        return self._transition(job_id, LedgerState.PROCESSING, ttl=self.in_flight_ttl)

    def mark_completed(self, job_id: str, result: dict[str, Any]) -> LedgerRecord:
        return self._transition(
            job_id, LedgerState.COMPLETED, ttl=self.terminal_ttl, result=result
        )

    def mark_failed(
        self, job_id: str, error: str, result: dict[str, Any] | None = None
    ) -> LedgerRecord:
        return self._transition(
            job_id, LedgerState.FAILED, ttl=self.terminal_ttl, result=result, error=error
        )

    def release(self, job_id: str) -> None:
        """Drop the entry entirely, e.g. when the job never reached the queue."""
        self.redis.delete(self.key(job_id))

    def count_by_state(self) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for key in self.redis.scan_iter(match=f"{self.prefix}*", count=500):
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            record = self.get(key[len(self.prefix):])
            if record is not None:
                counts[record.state.value] += 1
        return {state.value: counts.get(state.value, 0) for state in LedgerState}
