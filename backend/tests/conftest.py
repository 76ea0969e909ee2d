"""Shared fixtures: in-memory SQLite, fakeredis, and a recording task sender."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import fakeredis
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies.db import get_app_resources
from app.api.dependencies.services import get_task_sender
from app.core.config import Settings
from app.core.resources import Resources
from app.db.base import Base
from app.db.session import build_engine, build_session_factory
from app.services import factory
from app.services.importer import ImportPipeline
from app.services.job_queue import ImportJobMessage
from tests.helpers import CSV_HEADERS, RecordingSender, render_csv


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url="sqlite://",
        redis_url="redis://localhost:6379/0",
        celery_broker_url=None,
        celery_result_url=None,
        uploads_dir=str(tmp_path / "uploads"),
        import_batch_size=100,
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def resources(settings, engine, session_factory, redis_client) -> Resources:
    return Resources(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        redis=redis_client,
    )


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def ledger(resources):
    return factory.build_ledger(resources)


@pytest.fixture
def cache(resources):
    return factory.build_cache(resources)


@pytest.fixture
def progress(resources):
    return factory.build_progress(resources)


@pytest.fixture
def job_queue(resources, sender):
    return factory.build_queue(resources, sender)


@pytest.fixture
def intake(resources, sender):
    return factory.build_intake(resources, sender)


@pytest.fixture
def pipeline(session_factory, ledger, cache, progress) -> ImportPipeline:
    return ImportPipeline(
        session_factory=session_factory,
        ledger=ledger,
        cache=cache,
        progress=progress,
        batch_size=100,
    )


@pytest.fixture
def csv_file(tmp_path: Path):
    """Write rows to a CSV file under tmp_path and return its path."""
    counter = {"n": 0}

    def _write(rows: list[dict[str, Any]], headers: list[str] = CSV_HEADERS) -> Path:
        counter["n"] += 1
        path = tmp_path / f"import-{counter['n']}.csv"
        path.write_bytes(render_csv(rows, headers))
        return path

    return _write


@pytest.fixture
def job_message(csv_file):
    """Build a queue message for a freshly written CSV."""

    def _build(
        rows: list[dict[str, Any]],
        *,
        job_id: str = "job-1",
        tenant_id: str = "tenant-a",
        user_id: str = "user-1",
        headers: list[str] = CSV_HEADERS,
    ) -> ImportJobMessage:
        path = csv_file(rows, headers)
        return ImportJobMessage(
            id=job_id,
            filename=str(path),
            original_filename=path.name,
            tenant_id=tenant_id,
            user_id=user_id,
            idempotency_key=job_id,
            total_rows=len(rows),
        )

    return _build


@pytest.fixture
def client(resources, sender):
    from app.main import app

    app.dependency_overrides[get_app_resources] = lambda: resources
    app.dependency_overrides[get_task_sender] = lambda: sender
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_headers() -> dict[str, str]:
    return {"X-Tenant-ID": "tenant-a", "X-User-ID": "user-1"}
