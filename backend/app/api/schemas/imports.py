"""Import intake and status payloads."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportStarted(CamelModel):
    job_id: str = Field(..., description="Unique job identifier used to track progress")
    status: str = Field(..., description="accepted|duplicate")
    message: str
    estimated_rows: int = Field(..., description="Estimated number of rows to be processed")
    status_url: str


class ImportResultPayload(CamelModel):
    processed: int
    successful: int
    failed: int
    errors: list[str] = []


class ImportJobStatus(CamelModel):
    id: str
    status: str = Field(..., description="waiting|active|completed|failed|not_found")
    progress: int = Field(0, description="Progress percentage (0-100)")
    data: dict[str, Any] | None = Field(None, description="Job message, when known")
    result: ImportResultPayload | None = None
    error: str | None = None


class QueueStats(CamelModel):
    waiting: int
    active: int
    completed: int
    failed: int
    dead_lettered: int


class ProcessWaitingResult(CamelModel):
    message: str
    jobs_found: int
    requeued: int
