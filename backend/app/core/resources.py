"""Process-wide resource handles built once at start-up and passed to services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from redis import Redis
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings, get_settings
from app.db.session import build_engine, build_session_factory
from app.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)


@dataclass
class Resources:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    redis: Redis
    # Separate Celery broker connection, only when it is not the same Redis
    broker_redis: Redis | None = None

    @property
    def broker(self) -> Redis:
        return self.broker_redis if self.broker_redis is not None else self.redis

    def close(self) -> None:
        try:
            self.redis.close()
            if self.broker_redis is not None:
                self.broker_redis.close()
        finally:
            self.engine.dispose()


def build_resources(settings: Settings | None = None) -> Resources:
    settings = settings or get_settings()
    engine = build_engine(settings.database_url)
    resources = Resources(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
        redis=create_redis_client(settings.redis_url, decode_responses=True),
    )
    if settings.broker_url != settings.redis_url:
        resources.broker_redis = create_redis_client(
            settings.broker_url, decode_responses=True
        )
    logger.info("Initialized database engine and Redis client")
    return resources


@lru_cache
def get_resources() -> Resources:
    """Lazily build the handles shared by the API process."""
    return build_resources()
