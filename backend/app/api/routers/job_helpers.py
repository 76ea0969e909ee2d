"""Shared helpers for shaping job responses."""
from __future__ import annotations

from app.api.schemas.imports import ImportJobStatus, ImportResultPayload
from app.services.dedup_ledger import LedgerRecord, LedgerState

STATUS_BY_STATE = {
    LedgerState.QUEUED: "waiting",
    LedgerState.PROCESSING: "active",
    LedgerState.COMPLETED: "completed",
    LedgerState.FAILED: "failed",
}


def serialize_status(
    job_id: str, record: LedgerRecord | None, progress_payload: dict | None
) -> ImportJobStatus:
    """Combine the ledger record + cached progress snapshot into a response schema."""
    if record is None:
        return ImportJobStatus(id=job_id, status="not_found", progress=0)

    progress_payload = progress_payload or {}
    if record.state is LedgerState.COMPLETED:
        progress = 100
    else:
        progress = round(float(progress_payload.get("progress") or 0.0) * 100)

    return ImportJobStatus(
        id=job_id,
        status=STATUS_BY_STATE[record.state],
        progress=progress,
        data=record.data,
        result=ImportResultPayload(**record.result) if record.result else None,
        error=record.error,
    )
