"""Job message schema and the broker-facing side of the import queue."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from redis import Redis
from redis.exceptions import RedisError

from app.services.dedup_ledger import DedupLedger
from app.services.errors import QueuePublishError

logger = logging.getLogger(__name__)

IMPORT_TASK_NAME = "app.workers.tasks.import_properties"
DEAD_LETTER_KEY = "imports:dead_letter"


class ImportJobMessage(BaseModel):
    """Queue payload; serialized with camelCase keys on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    filename: str = Field(..., description="Path of the staged CSV file")
    original_filename: str
    tenant_id: str
    user_id: str
    idempotency_key: str
    total_rows: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskSender(Protocol):
    def send_task(self, name: str, *args: Any, **kwargs: Any) -> Any: ...


class ImportJobQueue:
    """Publishes job messages to Celery and keeps a Redis dead-letter list."""

    def __init__(
        self,
        sender: TaskSender,
        redis: Redis,
        *,
        queue_name: str = "imports",
        message_ttl: int = 86400,
        broker_redis: Redis | None = None,
    ) -> None:
        self.sender = sender
        self.redis = redis
        self.queue_name = queue_name
        self.message_ttl = message_ttl
        self.broker_redis = broker_redis if broker_redis is not None else redis

    def publish(self, message: ImportJobMessage) -> None:
        """Hand a job to the broker; undelivered messages expire after ``message_ttl``."""
        try:
            self.sender.send_task(
                IMPORT_TASK_NAME,
                kwargs={"message": message.to_payload()},
                queue=self.queue_name,
                task_id=message.id,
                expires=self.message_ttl,
            )
        except Exception as exc:
            logger.error(f"Failed to publish import job {message.id}: {exc}", exc_info=True)
            raise QueuePublishError(f"Failed to send message to queue: {exc}") from exc
        logger.info(
            f"Import job sent to queue {self.queue_name}: {message.id} "
            f"for tenant: {message.tenant_id}"
        )

    def dead_letter(self, message: ImportJobMessage, reason: str) -> None:
        entry = {
            "message": message.to_payload(),
            "reason": reason,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.redis.lpush(DEAD_LETTER_KEY, json.dumps(entry))
        except RedisError as e:
            logger.error(f"Could not dead-letter job {message.id}: {e}", exc_info=True)
            return
        logger.warning(f"Dead-lettered import job {message.id}: {reason}")

    def dead_letter_count(self) -> int:
        return int(self.redis.llen(DEAD_LETTER_KEY))

    def requeue_dead_letters(self, ledger: DedupLedger) -> dict[str, int]:
        """Re-publish dead-lettered jobs whose staged file still exists.

        Entries whose file is gone are discarded; entries whose fingerprint is
        already in flight again are dropped as duplicates.
        """
        requeued = skipped = 0
        while True:
            raw = self.redis.rpop(DEAD_LETTER_KEY)
            if raw is None:
                break
            try:
                entry = json.loads(raw)
                message = ImportJobMessage.model_validate(entry["message"])
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding malformed dead-letter entry: {e}")
                skipped += 1
                continue

            if not Path(message.filename).exists():
                logger.warning(
                    f"Cannot requeue {message.id}: staged file {message.filename} is gone"
                )
                skipped += 1
                continue
            if not ledger.claim(message.id, data=message.to_payload()):
                skipped += 1
                continue
            try:
                self.publish(message)
            except QueuePublishError:
                ledger.release(message.id)
                self.redis.rpush(DEAD_LETTER_KEY, raw)
                raise
            requeued += 1

        logger.info(f"Requeued {requeued} dead-lettered jobs, skipped {skipped}")
        return {"requeued": requeued, "skipped": skipped}

    def waiting(self) -> int:
        """Messages still sitting in the broker list for the import queue."""
        try:
            return int(self.broker_redis.llen(self.queue_name))
        except RedisError as e:
            logger.error(f"Failed to get queue stats: {e}")
            return 0

    def stats(self, ledger: DedupLedger) -> dict[str, int]:
        counts = ledger.count_by_state()
        return {
            "waiting": self.waiting(),
            "active": counts["processing"],
            "completed": counts["completed"],
            "failed": counts["failed"],
            "dead_lettered": self.dead_letter_count(),
        }
