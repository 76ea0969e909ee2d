#!/usr/bin/env python3
"""Start the import worker: one process, one message at a time."""

import sys
import warnings

# Suppress the superuser privilege warning in containerized environments
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from app.workers.celery_app import celery_app, settings  # noqa: E402

if __name__ == "__main__":
    celery_app.worker_main(
        [
            "worker",
            f"--loglevel={settings.log_level.lower()}",
            f"--queues={settings.import_queue}",
            "--pool=solo",
            "--concurrency=1",
            "--without-mingle",
            "--without-gossip",
        ]
        + sys.argv[1:]
    )
