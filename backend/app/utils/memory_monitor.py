"""Memory monitoring for the import worker."""

import gc
import logging

import psutil

logger = logging.getLogger(__name__)


def get_memory_usage() -> int:
    """Current resident set size of this process, in bytes."""
    try:
        return psutil.Process().memory_info().rss
    except psutil.Error as e:
        logger.warning(f"Could not get memory usage: {e}")
        return 0


def format_bytes(bytes_val: float) -> str:
    """Format bytes to human-readable string."""
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_val < 1024.0:
            return f"{bytes_val:.1f}{unit}"
        bytes_val /= 1024.0
    return f"{bytes_val:.1f}TB"


class MemoryGuard:
    """Compares process RSS against a soft baseline and a hard limit."""

    def __init__(self, baseline: int, limit: int) -> None:
        self.baseline = baseline
        self.limit = limit

    def exceeded(self) -> bool:
        current = get_memory_usage()
        if current >= self.limit:
            logger.error(
                f"Memory limit exceeded: {format_bytes(current)} >= {format_bytes(self.limit)}"
            )
            return True
        if current > self.baseline:
            logger.warning(
                f"Memory pressure detected: {format_bytes(current)} / "
                f"{format_bytes(self.limit)} (baseline: {format_bytes(self.baseline)})"
            )
        return False

    def log_status(self, context: str = "") -> None:
        current = get_memory_usage()
        usage_percent = (current / self.limit * 100) if self.limit > 0 else 0
        context_str = f" [{context}]" if context else ""
        logger.info(
            f"Memory status{context_str}: {format_bytes(current)} / "
            f"{format_bytes(self.limit)} ({usage_percent:.1f}%)"
        )

    @staticmethod
    def collect() -> None:
        collected = gc.collect()
        logger.debug(f"Garbage collection freed {collected} objects")
