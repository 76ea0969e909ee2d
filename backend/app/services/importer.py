"""Streaming import engine: CSV rows in, batched upserts out."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from app.services import csv_ingest
from app.services.dedup_ledger import DedupLedger, LedgerState
from app.services.errors import ImportAbortedError, RowValidationError, SourceFileError
from app.services.job_queue import ImportJobMessage
from app.services.progress_tracker import ProgressTracker
from app.services.property_cache import PropertyCache
from app.services.result_aggregator import (
    BatchOutcome,
    ImportResult,
    ImportResultAggregator,
)
from app.services.row_transform import PropertyDraft, transform_row
from app.services.upsert_engine import commit_batch
from app.storage.uploads import delete_upload
from app.utils.memory_monitor import MemoryGuard

logger = logging.getLogger(__name__)

BatchCommitter = Callable[..., BatchOutcome]


class ImportPhase(str, enum.Enum):
    RECEIVED = "received"
    STREAMING = "streaming"
    BATCHING = "batching"
    COMPLETED = "completed"
    ABORTED = "aborted"


class ImportPipeline:
    """Runs one job at a time: stream, validate, batch, upsert, aggregate.

    A bad row is recorded and skipped; a failed batch is recorded and the
    stream moves on; only a broken source file aborts the job.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker,
        ledger: DedupLedger,
        cache: PropertyCache,
        progress: ProgressTracker,
        batch_size: int = 100,
        error_buffer: int = 1000,
        error_report: int = 100,
        memory_guard: MemoryGuard | None = None,
        committer: BatchCommitter = commit_batch,
    ) -> None:
        self.session_factory = session_factory
        self.ledger = ledger
        self.cache = cache
        self.progress = progress
        self.batch_size = batch_size
        self.error_buffer = error_buffer
        self.error_report = error_report
        self.memory_guard = memory_guard
        self.committer = committer
        self.phase = ImportPhase.RECEIVED

    def _enter(self, job_id: str, phase: ImportPhase) -> None:
        if phase is not self.phase:
            logger.debug(f"Job {job_id}: {self.phase.value} -> {phase.value}")
            self.phase = phase

    def _flush(
        self,
        message: ImportJobMessage,
        batch: Sequence[PropertyDraft],
        aggregator: ImportResultAggregator,
    ) -> None:
        self._enter(message.id, ImportPhase.BATCHING)
        if self.memory_guard is not None and self.memory_guard.exceeded():
            raise ImportAbortedError(message.id, "Memory limit exceeded")

        outcome = self.committer(self.session_factory, batch, job_id=message.id)
        aggregator.fold(outcome)

        total = message.total_rows or aggregator.processed
        self.progress.publish(
            message.id,
            aggregator.processed / total if total else 0.0,
            message=f"Processed {aggregator.processed}/{total} rows",
            phase=ImportPhase.BATCHING.value,
            meta={
                "processed": aggregator.processed,
                "successful": aggregator.successful,
                "failed": aggregator.failed,
                "total": total,
            },
        )
        self._enter(message.id, ImportPhase.STREAMING)

    def run(self, message: ImportJobMessage) -> ImportResult:
        """Process a job message to completion and return its report.

        Raises:
            ImportAbortedError: the source stream failed; batches committed
                before the failure stay committed.
        """
        job_id = message.id
        self.phase = ImportPhase.RECEIVED

        existing = self.ledger.get(job_id)
        if existing is not None and existing.state is LedgerState.COMPLETED:
            # Redelivery of a job that already finished before its ack was lost
            logger.info(f"Job {job_id} already completed, skipping redelivery")
            return ImportResult.from_dict(existing.result or {})

        self.ledger.mark_processing(job_id)
        if self.memory_guard is not None:
            self.memory_guard.log_status(f"Job {job_id} start")
        logger.info(
            f"Starting import process for file: {message.filename}, "
            f"tenant: {message.tenant_id}"
        )

        aggregator = ImportResultAggregator(self.error_buffer, self.error_report)
        batch: list[PropertyDraft] = []
        self._enter(job_id, ImportPhase.STREAMING)
        self.progress.publish(
            job_id, 0.0, message="Import started", phase=ImportPhase.STREAMING.value
        )

        try:
            for row_number, row in csv_ingest.iter_source_rows(Path(message.filename)):
                aggregator.row_seen()
                try:
                    draft = transform_row(
                        row,
                        row_number=row_number,
                        tenant_id=message.tenant_id,
                        user_id=message.user_id,
                    )
                except RowValidationError as e:
                    aggregator.record_row_error(row_number, str(e))
                    continue

                batch.append(draft)
                if len(batch) >= self.batch_size:
                    self._flush(message, batch, aggregator)
                    batch = []

            if batch:
                self._flush(message, batch, aggregator)
        except SourceFileError as e:
            raise self._abort(message, aggregator, str(e)) from e
        except ImportAbortedError as e:
            raise self._abort(message, aggregator, e.reason) from None

        result = aggregator.report()
        self.cache.invalidate_tenant(message.tenant_id)
        self.ledger.mark_completed(job_id, result.to_dict())
        self._enter(job_id, ImportPhase.COMPLETED)
        self.progress.publish(
            job_id,
            1.0,
            message="Import complete",
            phase=ImportPhase.COMPLETED.value,
            meta=result.to_dict(),
        )
        delete_upload(message.filename)
        if self.memory_guard is not None:
            self.memory_guard.collect()
            self.memory_guard.log_status(f"Job {job_id} complete")

        logger.info(
            f"Import completed: {result.successful} successful, {result.failed} failed "
            f"out of {result.processed} total"
        )
        return result

    def _abort(
        self,
        message: ImportJobMessage,
        aggregator: ImportResultAggregator,
        reason: str,
    ) -> ImportAbortedError:
        self._enter(message.id, ImportPhase.ABORTED)
        partial = aggregator.report()
        logger.error(f"Import stream error for job {message.id}: {reason}")
        self.fail(message, reason, partial)
        return ImportAbortedError(message.id, reason, result=partial)

    def fail(
        self,
        message: ImportJobMessage,
        reason: str,
        partial: ImportResult | None = None,
    ) -> None:
        """Record a terminal failure for a job that will not be retried."""
        self.ledger.mark_failed(
            message.id, reason, partial.to_dict() if partial else None
        )
        snapshot = self.progress.fetch(message.id)
        self.progress.publish(
            message.id,
            float(snapshot.get("progress") or 0.0),
            message="Import failed",
            phase=ImportPhase.ABORTED.value,
            meta={**(partial.to_dict() if partial else {}), "error": reason},
        )
