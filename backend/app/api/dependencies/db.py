"""Database session and resource dependencies."""

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.resources import Resources, get_resources
from app.db.session import session_scope


def get_app_resources() -> Resources:
    """FastAPI dependency exposing the process-wide handles (overridable in tests)."""
    return get_resources()


def get_session(
    resources: Resources = Depends(get_app_resources),
) -> Generator[Session, None, None]:
    """FastAPI dependency that yields a managed SQLAlchemy session."""
    yield from session_scope(resources.session_factory)
