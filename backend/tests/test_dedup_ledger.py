from app.services.dedup_ledger import DedupLedger, LedgerState


def test_first_claim_wins_and_duplicate_is_refused(ledger):
    assert ledger.claim("abc", data={"tenantId": "tenant-a"}) is True
    assert ledger.claim("abc") is False

    record = ledger.get("abc")
    assert record.state is LedgerState.QUEUED
    assert record.data == {"tenantId": "tenant-a"}


def test_processing_job_still_blocks_resubmission(ledger):
    ledger.claim("abc")
    ledger.mark_processing("abc")
    assert ledger.claim("abc") is False


def test_terminal_states_allow_a_new_claim(ledger):
    ledger.claim("done")
    ledger.mark_completed("done", {"processed": 1, "successful": 1, "failed": 0, "errors": []})
    ledger.claim("broken")
    ledger.mark_failed("broken", "CSV file not found")

    assert ledger.claim("done") is True
    assert ledger.claim("broken") is True


def test_transitions_keep_message_data_and_record_outcome(ledger):
    ledger.claim("abc", data={"id": "abc"})
    ledger.mark_failed("abc", "boom", {"processed": 2})

    record = ledger.get("abc")
    assert record.state is LedgerState.FAILED
    assert record.data == {"id": "abc"}
    assert record.error == "boom"
    assert record.result == {"processed": 2}


def test_terminal_records_expire_after_retention(redis_client):
    ledger = DedupLedger(redis_client, in_flight_ttl=None, terminal_ttl=60)
    ledger.claim("abc")
    assert redis_client.ttl(ledger.key("abc")) == -1

    ledger.mark_completed("abc", {})
    assert 0 < redis_client.ttl(ledger.key("abc")) <= 60


def test_release_forgets_the_fingerprint(ledger):
    ledger.claim("abc")
    ledger.release("abc")
    assert ledger.get("abc") is None
    assert ledger.claim("abc") is True


def test_plain_string_state_is_understood(ledger, redis_client):
    redis_client.set(ledger.key("legacy"), "processing")
    assert ledger.get("legacy").state is LedgerState.PROCESSING
    assert ledger.claim("legacy") is False


def test_count_by_state(ledger, redis_client):
    ledger.claim("q1")
    ledger.claim("p1")
    ledger.mark_processing("p1")
    ledger.claim("c1")
    ledger.mark_completed("c1", {})
    redis_client.set(ledger.key("junk"), "nonsense")

    assert ledger.count_by_state() == {
        "queued": 1,
        "processing": 1,
        "completed": 1,
        "failed": 0,
    }
