"""Endpoints for CSV import intake, status polling, and queue maintenance."""

from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Response,
    UploadFile,
    status,
)
from redis.exceptions import RedisError

from app.api.dependencies.services import (
    get_intake,
    get_job_queue,
    get_ledger,
    get_progress,
)
from app.api.dependencies.tenant import TenantContext, get_tenant_context
from app.api.routers.job_helpers import serialize_status
from app.api.schemas.imports import (
    ImportJobStatus,
    ImportStarted,
    ProcessWaitingResult,
    QueueStats,
)
from app.services.dedup_ledger import DedupLedger
from app.services.errors import (
    InvalidUploadError,
    QueuePublishError,
    UploadTooLargeError,
)
from app.services.intake import ImportIntake
from app.services.job_queue import ImportJobQueue
from app.services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    summary="Start async CSV import",
    status_code=status.HTTP_201_CREATED,
    response_model=ImportStarted,
    responses={409: {"model": ImportStarted, "description": "Duplicate file"}},
)
def start_import(
    response: Response,
    file: UploadFile | None = File(None),
    tenant: TenantContext = Depends(get_tenant_context),
    intake: ImportIntake = Depends(get_intake),
) -> ImportStarted:
    """Stage the upload and return a job id immediately.

    Resubmitting the same file while its job is still queued or running
    returns the existing job id with 409 instead of enqueuing it again.
    Row-level failures are never reported here; poll the status endpoint.
    """
    try:
        submission = intake.submit(
            file.file if file else None,
            file.filename if file else None,
            file.content_type if file else None,
            tenant_id=tenant.tenant_id,
            user_id=tenant.user_id,
        )
    except UploadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc),
        ) from exc
    except InvalidUploadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except QueuePublishError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start import process",
        ) from exc
    except (RedisError, OSError) as exc:
        logger.error(f"Unexpected error in start_import: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred",
        ) from exc

    if submission.is_duplicate:
        response.status_code = status.HTTP_409_CONFLICT

    return ImportStarted(
        job_id=submission.job_id,
        status=submission.status,
        message=submission.message,
        estimated_rows=submission.estimated_rows,
        status_url=submission.status_url,
    )


@router.get(
    "/status/{job_id}",
    summary="Get import job status",
    response_model=ImportJobStatus,
)
def get_import_status(
    job_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    ledger: DedupLedger = Depends(get_ledger),
    progress: ProgressTracker = Depends(get_progress),
) -> ImportJobStatus:
    """Expose the latest ledger state and progress for polling clients."""
    try:
        record = ledger.get(job_id)
    except RedisError as exc:
        logger.error(f"Redis error fetching job status {job_id}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to retrieve job status",
        ) from exc

    # Jobs belonging to another tenant are indistinguishable from unknown ones
    if record is not None and record.data and record.data.get("tenantId") != tenant.tenant_id:
        record = None

    return serialize_status(job_id, record, progress.fetch(job_id))


@router.get(
    "/queue/stats",
    summary="Get queue statistics",
    response_model=QueueStats,
)
def get_queue_stats(
    tenant: TenantContext = Depends(get_tenant_context),
    queue: ImportJobQueue = Depends(get_job_queue),
    ledger: DedupLedger = Depends(get_ledger),
) -> QueueStats:
    """Waiting, active, finished and dead-lettered job counts."""
    try:
        return QueueStats(**queue.stats(ledger))
    except RedisError as exc:
        logger.error(f"Failed to get queue stats: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to retrieve queue statistics",
        ) from exc


@router.post(
    "/process-waiting",
    summary="Requeue dead-lettered jobs",
    response_model=ProcessWaitingResult,
)
def process_waiting_jobs(
    tenant: TenantContext = Depends(get_tenant_context),
    queue: ImportJobQueue = Depends(get_job_queue),
    ledger: DedupLedger = Depends(get_ledger),
) -> ProcessWaitingResult:
    """Re-publish jobs that failed or were lost, when their staged file survives."""
    try:
        jobs_found = queue.dead_letter_count()
        outcome = queue.requeue_dead_letters(ledger)
    except QueuePublishError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to requeue jobs",
        ) from exc
    except RedisError as exc:
        logger.error(f"Redis error requeueing jobs: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to read dead-letter queue",
        ) from exc

    return ProcessWaitingResult(
        message=f"Requeued {outcome['requeued']} of {jobs_found} dead-lettered jobs",
        jobs_found=jobs_found,
        requeued=outcome["requeued"],
    )
