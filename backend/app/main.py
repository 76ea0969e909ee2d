"""FastAPI application bootstrap with router wiring."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routers import health, imports, properties
from app.core.config import get_settings
from app.core.resources import get_resources

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_resources.cache_info().currsize:
        get_resources().close()
        get_resources.cache_clear()
        logger.info("Closed database engine and Redis client")


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    app.include_router(health.router)
    app.include_router(imports.router, prefix="/v1/imports", tags=["imports"])
    app.include_router(properties.router, prefix="/v1/properties", tags=["properties"])

    return app


app = create_app()
