"""Celery application factory for async processing."""

from __future__ import annotations

import logging
import ssl

from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown

from app.core.config import Settings, get_settings
from app.core.resources import Resources, build_resources
from app.services.job_queue import IMPORT_TASK_NAME
from app.utils.redis_client import normalize_redis_url, uses_tls

logger = logging.getLogger(__name__)

settings = get_settings()

_worker_resources: Resources | None = None


def _with_ssl_param(url: str) -> str:
    # The Redis result backend reads SSL options from the URL during init
    if "ssl_cert_reqs" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}ssl_cert_reqs=none"


def build_celery_config(settings: Settings) -> dict:
    """Broker/worker settings for one-at-a-time, ack-after-success delivery."""
    config = {
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        "task_default_queue": settings.import_queue,
        "task_routes": {IMPORT_TASK_NAME: {"queue": settings.import_queue}},
        # Ack only after the task returns; a crashed worker's job is redelivered
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "worker_prefetch_multiplier": 1,
        "task_ignore_result": True,
        "broker_connection_retry_on_startup": True,
        "worker_hijack_root_logger": False,
        "broker_transport_options": {
            "visibility_timeout": settings.broker_visibility_timeout,
        },
    }
    if uses_tls(settings.broker_url) or uses_tls(settings.result_backend_url):
        ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
        config["broker_use_ssl"] = ssl_dict
        config["redis_backend_use_ssl"] = ssl_dict
        config["broker_transport_options"] = {
            **config["broker_transport_options"],
            **ssl_dict,
        }
    return config


def create_celery_app(settings: Settings) -> Celery:
    broker_url = normalize_redis_url(settings.broker_url)
    backend_url = normalize_redis_url(settings.result_backend_url)
    if uses_tls(broker_url):
        broker_url = _with_ssl_param(broker_url)
    if uses_tls(backend_url):
        backend_url = _with_ssl_param(backend_url)

    app = Celery("property_importer", broker=broker_url, backend=backend_url)
    app.conf.update(build_celery_config(settings))
    return app


celery_app = create_celery_app(settings)


def get_worker_resources() -> Resources:
    """Handles owned by this worker process, built once per process."""
    global _worker_resources
    if _worker_resources is None:
        _worker_resources = build_resources(settings)
    return _worker_resources


@worker_process_init.connect
def _init_worker_resources(**kwargs) -> None:
    get_worker_resources()


@worker_process_shutdown.connect
def _close_worker_resources(**kwargs) -> None:
    global _worker_resources
    if _worker_resources is not None:
        _worker_resources.close()
        _worker_resources = None


# Register tasks with celery_app
from app.workers.tasks import import_properties  # noqa: E402,F401
