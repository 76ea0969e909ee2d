"""Pydantic models describing Property payloads."""

from datetime import datetime

from pydantic import BaseModel

from app.db.models.property import PropertyStatus, PropertyType


class PropertyRead(BaseModel):
    id: str
    external_id: str
    title: str
    description: str
    address: str
    sector: str
    type: PropertyType
    status: PropertyStatus
    price: float
    area: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    parking_spaces: int | None = None
    latitude: float
    longitude: float
    tenant_id: str
    owner_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class PropertyUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    address: str | None = None
    sector: str | None = None
    type: PropertyType | None = None
    status: PropertyStatus | None = None
    price: float | None = None
    area: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    parking_spaces: int | None = None


class PropertyListResponse(BaseModel):
    items: list[PropertyRead]
    total: int
    page: int
    page_size: int
