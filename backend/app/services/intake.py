"""Intake gateway: fingerprint an upload, dedupe it, and enqueue the job."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from app.services import csv_ingest
from app.services.dedup_ledger import DedupLedger
from app.services.errors import (
    InvalidUploadError,
    QueuePublishError,
    SourceFileError,
    UploadTooLargeError,
)
from app.services.job_queue import ImportJobMessage, ImportJobQueue
from app.storage.uploads import delete_upload, save_upload

logger = logging.getLogger(__name__)

STATUS_ACCEPTED = "accepted"
STATUS_DUPLICATE = "duplicate"


@dataclass(frozen=True)
class ImportSubmission:
    job_id: str
    status: str
    message: str
    estimated_rows: int

    @property
    def status_url(self) -> str:
        return f"/v1/imports/status/{self.job_id}"

    @property
    def is_duplicate(self) -> bool:
        return self.status == STATUS_DUPLICATE


def compute_fingerprint(filename: str, size: int, tenant_id: str, user_id: str) -> str:
    """Stable job id: the same file submitted by the same actor hashes identically.

    Fields are NUL-separated so adjacent values cannot run together.
    """
    digest = hashlib.md5()
    for part in (filename, str(size), tenant_id, user_id):
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


def is_csv_upload(filename: str, content_type: str | None) -> bool:
    return "csv" in (content_type or "").lower() or filename.lower().endswith(".csv")


def _measure(file_obj: BinaryIO) -> int:
    file_obj.seek(0, os.SEEK_END)
    size = file_obj.tell()
    file_obj.seek(0)
    return size


class ImportIntake:
    def __init__(
        self,
        *,
        ledger: DedupLedger,
        queue: ImportJobQueue,
        uploads_dir: str | Path,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ) -> None:
        self.ledger = ledger
        self.queue = queue
        self.uploads_dir = uploads_dir
        self.max_upload_bytes = max_upload_bytes

    def submit(
        self,
        file_obj: BinaryIO | None,
        filename: str | None,
        content_type: str | None,
        *,
        tenant_id: str,
        user_id: str,
    ) -> ImportSubmission:
        """Accept an upload, or point the caller at the job already in flight.

        Raises:
            InvalidUploadError: no file, not a CSV, or header/encoding problems.
            UploadTooLargeError: the file exceeds ``max_upload_bytes``.
            QueuePublishError: the broker refused the message; nothing is left
                behind in the ledger.
        """
        if file_obj is None or not filename:
            raise InvalidUploadError("CSV file is required")
        if not is_csv_upload(filename, content_type):
            raise InvalidUploadError("Only CSV files are allowed")

        size = _measure(file_obj)
        if size > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"File exceeds the {self.max_upload_bytes} byte upload limit"
            )

        job_id = compute_fingerprint(filename, size, tenant_id, user_id)
        staged_path = save_upload(file_obj, self.uploads_dir, filename)

        try:
            estimated_rows = csv_ingest.count_rows(staged_path)
        except SourceFileError as e:
            delete_upload(staged_path)
            raise InvalidUploadError(str(e)) from e

        message = ImportJobMessage(
            id=job_id,
            filename=str(staged_path),
            original_filename=filename,
            tenant_id=tenant_id,
            user_id=user_id,
            idempotency_key=job_id,
            total_rows=estimated_rows,
        )

        if not self.ledger.claim(job_id, data=message.to_payload()):
            delete_upload(staged_path)
            logger.info(f"Duplicate import {job_id} for tenant {tenant_id}")
            return ImportSubmission(
                job_id=job_id,
                status=STATUS_DUPLICATE,
                message=(
                    "Duplicate file detected - this file is already being processed. "
                    "Use the jobId to check the original import status."
                ),
                estimated_rows=estimated_rows,
            )

        try:
            self.queue.publish(message)
        except QueuePublishError:
            self.ledger.release(job_id)
            delete_upload(staged_path)
            raise

        logger.info(
            f"Created import job {job_id} for file {filename} "
            f"({estimated_rows} rows, tenant {tenant_id})"
        )
        return ImportSubmission(
            job_id=job_id,
            status=STATUS_ACCEPTED,
            message="Import job started successfully. Use the jobId to track progress.",
            estimated_rows=estimated_rows,
        )
