"""Fold per-row and per-batch outcomes into a job-wide result."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any


@dataclass
class BatchOutcome:
    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ImportResult:
    processed: int
    successful: int
    failed: int
    errors: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ImportResult:
        return cls(
            processed=int(payload.get("processed", 0)),
            successful=int(payload.get("successful", 0)),
            failed=int(payload.get("failed", 0)),
            errors=list(payload.get("errors") or []),
        )


class ImportResultAggregator:
    """Purely additive counters plus a bounded tail of error messages."""

    def __init__(self, error_buffer: int = 1000, error_report: int = 100) -> None:
        self.processed = 0
        self.successful = 0
        self.failed = 0
        self._errors: deque[str] = deque(maxlen=error_buffer)
        self._error_report = error_report

    def row_seen(self) -> None:
        self.processed += 1

    def record_row_error(self, row_number: int, reason: str) -> None:
        self.failed += 1
        self._errors.append(f"Row {row_number}: {reason}")

    def fold(self, outcome: BatchOutcome) -> None:
        self.successful += outcome.successful
        self.failed += outcome.failed
        self._errors.extend(outcome.errors)

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    def report(self) -> ImportResult:
        tail = list(self._errors)[-self._error_report:]
        return ImportResult(
            processed=self.processed,
            successful=self.successful,
            failed=self.failed,
            errors=tail,
        )
