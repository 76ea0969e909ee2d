"""CSV builders and test doubles shared across the suite."""

from __future__ import annotations

import csv
import io
from typing import Any

CSV_HEADERS = [
    "external_id",
    "title",
    "description",
    "address",
    "sector",
    "type",
    "status",
    "price",
    "area",
    "bedrooms",
    "bathrooms",
    "parkingSpaces",
    "latitude",
    "longitude",
    "ownerId",
]


class RecordingSender:
    """Stands in for ``Celery.send_task``; remembers every published call."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None

    def send_task(self, name: str, *args: Any, **kwargs: Any) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append({"name": name, "args": args, **kwargs})


def make_row(index: int = 1, **overrides: Any) -> dict[str, Any]:
    row = {
        "external_id": f"EXT-{index:04d}",
        "title": f"Property {index}",
        "description": "Two floors with garden",
        "address": f"{index} Main Street",
        "sector": "Downtown",
        "type": "apartment",
        "status": "active",
        "price": "250000.50",
        "area": "120.5",
        "bedrooms": "3",
        "bathrooms": "2",
        "parkingSpaces": "1",
        "latitude": "-23.55",
        "longitude": "-46.63",
        "ownerId": "",
    }
    row.update(overrides)
    return row


def render_csv(rows: list[dict[str, Any]], headers: list[str] = CSV_HEADERS) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")
