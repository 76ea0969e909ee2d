import json
from pathlib import Path

from app.services.dedup_ledger import LedgerState
from app.services.job_queue import DEAD_LETTER_KEY, ImportJobMessage
from tests.helpers import make_row


def test_message_serializes_with_camel_case_keys(job_message):
    payload = job_message([make_row(1)]).to_payload()

    assert set(payload) == {
        "id",
        "filename",
        "originalFilename",
        "tenantId",
        "userId",
        "idempotencyKey",
        "totalRows",
        "timestamp",
    }
    assert ImportJobMessage.model_validate(payload).tenant_id == "tenant-a"


def test_dead_letters_are_requeued_when_file_survives(job_queue, job_message, ledger, sender):
    message = job_message([make_row(1)])
    ledger.claim(message.id)
    ledger.mark_failed(message.id, "worker lost")
    job_queue.dead_letter(message, "worker lost")

    outcome = job_queue.requeue_dead_letters(ledger)

    assert outcome == {"requeued": 1, "skipped": 0}
    assert job_queue.dead_letter_count() == 0
    assert ledger.get(message.id).state is LedgerState.QUEUED
    assert sender.calls[0]["task_id"] == message.id


def test_dead_letters_without_staged_file_are_discarded(job_queue, job_message, ledger, sender):
    message = job_message([make_row(1)])
    Path(message.filename).unlink()
    job_queue.dead_letter(message, "CSV file not found")

    assert job_queue.requeue_dead_letters(ledger) == {"requeued": 0, "skipped": 1}
    assert sender.calls == []


def test_malformed_dead_letter_entry_is_skipped(job_queue, ledger, redis_client):
    redis_client.lpush(DEAD_LETTER_KEY, json.dumps({"reason": "??"}))
    assert job_queue.requeue_dead_letters(ledger) == {"requeued": 0, "skipped": 1}


def test_stats_combine_broker_ledger_and_dead_letters(job_queue, job_message, ledger, redis_client):
    redis_client.rpush("imports", "m1", "m2")
    ledger.claim("running")
    ledger.mark_processing("running")
    ledger.claim("done")
    ledger.mark_completed("done", {})
    job_queue.dead_letter(job_message([make_row(1)]), "boom")

    assert job_queue.stats(ledger) == {
        "waiting": 2,
        "active": 1,
        "completed": 1,
        "failed": 0,
        "dead_lettered": 1,
    }
