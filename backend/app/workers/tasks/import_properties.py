"""Celery task for long-running CSV ingestion."""

from __future__ import annotations

import logging
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy.exc import OperationalError

from app.services.errors import ImportAbortedError
from app.services.factory import build_pipeline, build_queue
from app.services.job_queue import IMPORT_TASK_NAME, ImportJobMessage
from app.workers.celery_app import celery_app, get_worker_resources, settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (RedisError, OperationalError, ConnectionError)
RETRY_BASE_SECONDS = 10


@celery_app.task(
    bind=True,
    name=IMPORT_TASK_NAME,
    acks_late=True,
    max_retries=settings.import_max_retries,
)
def import_properties_task(self, message: dict[str, Any]) -> dict[str, Any]:
    """Stream one staged CSV into the property store.

    The broker message is acknowledged only when this returns or raises, so a
    worker crash mid-job leads to redelivery. Transient infrastructure errors
    are retried with backoff; aborted or exhausted jobs go to the dead-letter
    list.
    """
    job = ImportJobMessage.model_validate(message)
    resources = get_worker_resources()
    pipeline = build_pipeline(resources)
    queue = build_queue(resources, celery_app)

    logger.info(f"Processing job: {job.id} (attempt {self.request.retries + 1})")
    try:
        result = pipeline.run(job)
    except ImportAbortedError as exc:
        queue.dead_letter(job, exc.reason)
        raise
    except TRANSIENT_ERRORS as exc:
        if self.request.retries < self.max_retries:
            countdown = RETRY_BASE_SECONDS * 2 ** self.request.retries
            logger.warning(
                f"Transient error in job {job.id}, retrying in {countdown}s: {exc}"
            )
            raise self.retry(exc=exc, countdown=countdown)
        logger.error(f"Job {job.id} failed after {self.request.retries} retries: {exc}")
        _give_up(pipeline, queue, job, f"Retries exhausted: {exc}")
        raise
    except Exception as exc:
        logger.error(f"Unexpected error in job {job.id}: {exc}", exc_info=True)
        _give_up(pipeline, queue, job, str(exc))
        raise

    return result.to_dict()


def _give_up(pipeline, queue, job: ImportJobMessage, reason: str) -> None:
    try:
        pipeline.fail(job, reason)
    except RedisError as e:
        logger.error(f"Could not record failure of job {job.id}: {e}")
    queue.dead_letter(job, reason)
