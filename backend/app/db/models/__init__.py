"""Database models package."""
from app.db.models.property import Property, PropertyStatus, PropertyType

__all__ = ["Property", "PropertyStatus", "PropertyType"]
