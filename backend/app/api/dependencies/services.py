"""Service dependencies built from the shared resource handles."""

from fastapi import Depends

from app.api.dependencies.db import get_app_resources
from app.core.resources import Resources
from app.services import factory
from app.services.dedup_ledger import DedupLedger
from app.services.intake import ImportIntake
from app.services.job_queue import ImportJobQueue, TaskSender
from app.services.progress_tracker import ProgressTracker
from app.services.property_cache import PropertyCache


def get_task_sender() -> TaskSender:
    """The Celery app publishing import messages (replaced by a fake in tests)."""
    from app.workers.celery_app import celery_app

    return celery_app


def get_intake(
    resources: Resources = Depends(get_app_resources),
    sender: TaskSender = Depends(get_task_sender),
) -> ImportIntake:
    return factory.build_intake(resources, sender)


def get_job_queue(
    resources: Resources = Depends(get_app_resources),
    sender: TaskSender = Depends(get_task_sender),
) -> ImportJobQueue:
    return factory.build_queue(resources, sender)


def get_ledger(resources: Resources = Depends(get_app_resources)) -> DedupLedger:
    return factory.build_ledger(resources)


def get_progress(resources: Resources = Depends(get_app_resources)) -> ProgressTracker:
    return factory.build_progress(resources)


def get_cache(resources: Resources = Depends(get_app_resources)) -> PropertyCache:
    return factory.build_cache(resources)
