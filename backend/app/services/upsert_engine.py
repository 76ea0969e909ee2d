"""Batched insert-or-update of property drafts keyed on (external_id, tenant_id)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.db.models.property import Property
from app.db.session import get_fresh_session
from app.services.result_aggregator import BatchOutcome
from app.services.row_transform import PropertyDraft

logger = logging.getLogger(__name__)

IMPORT_SOURCE = "csv_import"


def _describe(exc: Exception) -> str:
    # DBAPI errors carry the driver message on .orig; the wrapper repeats the SQL
    return str(getattr(exc, "orig", None) or exc)


def _import_meta(previous: dict | None, job_id: str, now: datetime) -> dict:
    previous = previous or {}
    return {
        **previous,
        "source": IMPORT_SOURCE,
        "csv_batch": job_id,
        "last_csv_update": now.isoformat(),
        "import_history": int(previous.get("import_history") or 0) + 1,
    }


def find_existing(session: Session, external_id: str, tenant_id: str) -> Property | None:
    return session.scalar(
        select(Property).where(
            Property.external_id == external_id,
            Property.tenant_id == tenant_id,
        )
    )


def upsert_draft(
    session: Session, draft: PropertyDraft, job_id: str, now: datetime
) -> bool:
    """Write one draft; returns True when a new row was inserted.

    An existing row is overwritten field by field: columns the CSV left empty
    become NULL/empty rather than keeping their previous values.
    """
    existing = find_existing(session, draft.external_id, draft.tenant_id)
    if existing is not None:
        for column, value in draft.as_columns().items():
            setattr(existing, column, value)
        existing.deleted_at = None
        existing.meta = _import_meta(existing.meta, job_id, now)
        logger.debug(f"Updated property with external_id: {draft.external_id}")
        return False

    session.add(Property(**draft.as_columns(), meta=_import_meta(None, job_id, now)))
    logger.debug(f"Created new property with external_id: {draft.external_id}")
    return True


def commit_batch(
    session_factory: sessionmaker,
    batch: Sequence[PropertyDraft],
    *,
    job_id: str,
) -> BatchOutcome:
    """Persist one batch in a single transaction.

    Each row runs in its own SAVEPOINT, so a failing row is rolled back and
    counted without aborting the others. If the surrounding transaction itself
    fails, every row of the batch is reported as failed.
    """
    outcome = BatchOutcome()
    if not batch:
        return outcome

    now = datetime.now(timezone.utc)
    inserted = 0
    session = None
    try:
        session = get_fresh_session(session_factory)
        with session.begin():
            for draft in batch:
                try:
                    with session.begin_nested():
                        if upsert_draft(session, draft, job_id, now):
                            inserted += 1
                    outcome.successful += 1
                except (SQLAlchemyError, ValueError) as e:
                    outcome.failed += 1
                    outcome.errors.append(f"Row {draft.row_number}: {_describe(e)}")
                    logger.warning(
                        f"Failed to upsert row {draft.row_number} "
                        f"(external_id={draft.external_id}): {_describe(e)}"
                    )
    except SQLAlchemyError as e:
        logger.error(
            f"Batch transaction failed for job {job_id} ({len(batch)} rows): {e}",
            exc_info=True,
        )
        return BatchOutcome(
            successful=0,
            failed=len(batch),
            errors=[f"Batch transaction failed: {_describe(e)}"],
        )
    finally:
        if session is not None:
            session.close()

    logger.info(
        f"Committed batch for job {job_id}: {inserted} inserted, "
        f"{outcome.successful - inserted} updated, {outcome.failed} failed"
    )
    return outcome
