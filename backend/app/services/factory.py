"""Build service objects from the process resource handles."""

from __future__ import annotations

from app.core.resources import Resources
from app.services.dedup_ledger import DedupLedger
from app.services.importer import ImportPipeline
from app.services.intake import ImportIntake
from app.services.job_queue import ImportJobQueue, TaskSender
from app.services.progress_tracker import ProgressTracker
from app.services.property_cache import PropertyCache
from app.utils.memory_monitor import MemoryGuard


def build_ledger(resources: Resources) -> DedupLedger:
    settings = resources.settings
    return DedupLedger(
        resources.redis,
        in_flight_ttl=settings.queue_message_ttl + settings.broker_visibility_timeout,
        terminal_ttl=settings.ledger_terminal_ttl,
    )


def build_cache(resources: Resources) -> PropertyCache:
    return PropertyCache(
        resources.redis,
        prefix=resources.settings.cache_prefix,
        ttl=resources.settings.cache_ttl,
    )


def build_progress(resources: Resources) -> ProgressTracker:
    return ProgressTracker(resources.redis)


def build_queue(resources: Resources, sender: TaskSender) -> ImportJobQueue:
    settings = resources.settings
    return ImportJobQueue(
        sender,
        resources.redis,
        queue_name=settings.import_queue,
        message_ttl=settings.queue_message_ttl,
        broker_redis=resources.broker,
    )


def build_intake(resources: Resources, sender: TaskSender) -> ImportIntake:
    return ImportIntake(
        ledger=build_ledger(resources),
        queue=build_queue(resources, sender),
        uploads_dir=resources.settings.uploads_dir,
        max_upload_bytes=resources.settings.max_upload_bytes,
    )


def build_pipeline(resources: Resources) -> ImportPipeline:
    settings = resources.settings
    return ImportPipeline(
        session_factory=resources.session_factory,
        ledger=build_ledger(resources),
        cache=build_cache(resources),
        progress=build_progress(resources),
        batch_size=settings.import_batch_size,
        error_buffer=settings.import_error_buffer,
        error_report=settings.import_error_report,
        memory_guard=MemoryGuard(settings.memory_baseline, settings.memory_limit),
    )
