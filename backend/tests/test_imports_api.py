from app.services import factory
from app.services.dedup_ledger import LedgerState
from app.services.importer import ImportPipeline
from app.services.job_queue import ImportJobMessage
from tests.helpers import make_row, render_csv


def _post(client, headers, rows=None, filename="listings.csv"):
    content = render_csv(rows or [make_row(1), make_row(2), make_row(3)])
    return client.post(
        "/v1/imports",
        files={"file": (filename, content, "text/csv")},
        headers=headers,
    )


def test_upload_returns_job_id_immediately(client, tenant_headers, sender):
    response = _post(client, tenant_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "accepted"
    assert body["estimatedRows"] == 3
    assert body["statusUrl"] == f"/v1/imports/status/{body['jobId']}"
    assert len(sender.calls) == 1


def test_duplicate_upload_returns_conflict_with_same_job(client, tenant_headers, sender):
    first = _post(client, tenant_headers).json()
    response = _post(client, tenant_headers)

    assert response.status_code == 409
    assert response.json()["jobId"] == first["jobId"]
    assert response.json()["status"] == "duplicate"
    assert len(sender.calls) == 1


def test_missing_tenant_is_forbidden(client):
    response = _post(client, {"X-User-ID": "user-1"})
    assert response.status_code == 403


def test_non_csv_upload_is_rejected(client, tenant_headers):
    response = client.post(
        "/v1/imports",
        files={"file": ("photo.png", b"\x89PNG", "image/png")},
        headers=tenant_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Only CSV files are allowed"


def test_missing_file_is_rejected(client, tenant_headers):
    response = client.post("/v1/imports", headers=tenant_headers)
    assert response.status_code == 400


def test_broker_outage_is_reported(client, tenant_headers, sender):
    sender.fail_with = ConnectionError("broker down")
    response = _post(client, tenant_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to start import process"


def test_status_of_unknown_job(client, tenant_headers):
    response = client.get("/v1/imports/status/nope", headers=tenant_headers)

    assert response.status_code == 200
    assert response.json() == {
        "id": "nope",
        "status": "not_found",
        "progress": 0,
        "data": None,
        "result": None,
        "error": None,
    }


def test_status_follows_job_from_waiting_to_completed(client, tenant_headers, sender, resources):
    job_id = _post(client, tenant_headers).json()["jobId"]

    waiting = client.get(f"/v1/imports/status/{job_id}", headers=tenant_headers).json()
    assert waiting["status"] == "waiting"
    assert waiting["data"]["tenantId"] == "tenant-a"

    message = ImportJobMessage.model_validate(sender.calls[0]["kwargs"]["message"])
    pipeline = ImportPipeline(
        session_factory=resources.session_factory,
        ledger=factory.build_ledger(resources),
        cache=factory.build_cache(resources),
        progress=factory.build_progress(resources),
    )
    pipeline.run(message)

    done = client.get(f"/v1/imports/status/{job_id}", headers=tenant_headers).json()
    assert done["status"] == "completed"
    assert done["progress"] == 100
    assert done["result"] == {"processed": 3, "successful": 3, "failed": 0, "errors": []}


def test_status_hides_other_tenants_jobs(client, tenant_headers):
    job_id = _post(client, tenant_headers).json()["jobId"]

    response = client.get(
        f"/v1/imports/status/{job_id}",
        headers={"X-Tenant-ID": "tenant-b", "X-User-ID": "user-9"},
    )
    assert response.json()["status"] == "not_found"


def test_failed_job_status_carries_error(client, tenant_headers, ledger, progress):
    ledger.claim("job-x", data={"tenantId": "tenant-a"})
    progress.publish("job-x", 0.4)
    ledger.mark_failed("job-x", "CSV parsing error: bad quote")

    body = client.get("/v1/imports/status/job-x", headers=tenant_headers).json()

    assert body["status"] == "failed"
    assert body["progress"] == 40
    assert body["error"] == "CSV parsing error: bad quote"


def test_queue_stats(client, tenant_headers, ledger):
    _post(client, tenant_headers)
    ledger.claim("running")
    ledger.mark_processing("running")

    body = client.get("/v1/imports/queue/stats", headers=tenant_headers).json()

    assert body == {"waiting": 0, "active": 1, "completed": 0, "failed": 0, "deadLettered": 0}


def test_process_waiting_requeues_dead_letters(client, tenant_headers, sender, job_queue, ledger):
    job_id = _post(client, tenant_headers).json()["jobId"]
    message = ImportJobMessage.model_validate(sender.calls[0]["kwargs"]["message"])
    ledger.mark_failed(job_id, "worker lost")
    job_queue.dead_letter(message, "worker lost")

    body = client.post("/v1/imports/process-waiting", headers=tenant_headers).json()

    assert body["jobsFound"] == 1
    assert body["requeued"] == 1
    assert ledger.get(job_id).state is LedgerState.QUEUED
    assert len(sender.calls) == 2
