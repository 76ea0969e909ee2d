"""Streaming readers over staged CSV files."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from app.services.errors import HeaderValidationError, SourceFileError
from app.services.row_transform import validate_headers

logger = logging.getLogger(__name__)


def iter_source_rows(file_path: Path) -> Iterator[tuple[int, dict[str, Any]]]:
    """Yield ``(row_number, row)`` pairs one at a time, in file order.

    Row numbers are 1-based and count data rows only (the header is row 0).
    Memory use is bounded by a single row regardless of file size.

    Raises:
        SourceFileError: the file is missing, unreadable, not UTF-8, or not
            valid CSV. Raised lazily, possibly after rows were yielded.
    """
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            validate_headers(reader.fieldnames)

            for row_number, row in enumerate(reader, start=1):
                yield row_number, row
    except HeaderValidationError:
        raise
    except FileNotFoundError:
        raise SourceFileError(f"CSV file not found: {file_path}") from None
    except PermissionError:
        raise SourceFileError(f"Permission denied reading file: {file_path}") from None
    except UnicodeDecodeError as e:
        raise SourceFileError(f"File encoding error: {str(e)}") from e
    except csv.Error as e:
        raise SourceFileError(f"CSV parsing error: {str(e)}") from e
    except OSError as e:
        logger.error(f"I/O error reading CSV {file_path}: {e}", exc_info=True)
        raise SourceFileError(f"Error reading CSV file: {str(e)}") from e


def count_rows(file_path: Path) -> int:
    """Return the number of data rows in the CSV (excluding headers).

    A second, lightweight pass used only for progress estimation.
    """
    return sum(1 for _ in iter_source_rows(file_path))
