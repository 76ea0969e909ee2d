"""Local staging area for uploaded CSV files shared by API and worker."""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)


def save_upload(
    file_obj: BinaryIO, uploads_dir: str | Path, original_name: str | None = None
) -> Path:
    """Persist an uploaded CSV under a unique name and return the absolute path."""
    directory = Path(uploads_dir).resolve()
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(original_name or "upload.csv").suffix or ".csv"
    target_path = directory / f"{uuid.uuid4()}{suffix}"
    file_obj.seek(0)
    with target_path.open("wb") as destination:
        shutil.copyfileobj(file_obj, destination)
    return target_path


def delete_upload(uri: str | Path) -> None:
    """Cleanup staged files when imports finish."""
    path = Path(uri)
    if not path.is_absolute():
        path = path.resolve()
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        # Leftover files are harmless; the uploads directory can be swept later
        logger.warning(f"Failed to delete staged upload {path}: {e}")
