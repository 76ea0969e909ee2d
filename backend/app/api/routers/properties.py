"""Tenant-scoped property listing and direct record mutations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.dependencies.db import get_session
from app.api.dependencies.services import get_cache
from app.api.dependencies.tenant import TenantContext, get_tenant_context
from app.api.schemas.property import (
    PropertyListResponse,
    PropertyRead,
    PropertyUpdate,
)
from app.db.models.property import Property, PropertyStatus, PropertyType
from app.services.property_cache import PropertyCache

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_owned(db: Session, property_id: str, tenant_id: str) -> Property:
    prop = db.scalar(
        select(Property).where(
            Property.id == property_id,
            Property.tenant_id == tenant_id,
            Property.deleted_at.is_(None),
        )
    )
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@router.get(
    "",
    summary="List properties with filters and pagination",
    response_model=PropertyListResponse,
)
def list_properties(
    sector: str | None = Query(None, description="Filter by sector (partial match)"),
    type: PropertyType | None = Query(None, description="Filter by property type"),
    status_filter: PropertyStatus | None = Query(None, alias="status"),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize"),
    tenant: TenantContext = Depends(get_tenant_context),
    cache: PropertyCache = Depends(get_cache),
    db: Session = Depends(get_session),
) -> PropertyListResponse:
    """Return one page of the tenant's properties, read through the Redis cache."""
    filters = {
        "sector": sector,
        "type": type.value if type else None,
        "status": status_filter.value if status_filter else None,
        "minPrice": min_price,
        "maxPrice": max_price,
        "page": page,
        "pageSize": page_size,
    }
    cache_key = cache.key_for(tenant.tenant_id, filters)
    cached = cache.get(cache_key)
    if cached:
        logger.debug(f"Cache hit for key: {cache_key}")
        return PropertyListResponse.model_validate(cached)

    conditions = [
        Property.tenant_id == tenant.tenant_id,
        Property.deleted_at.is_(None),
    ]
    if sector:
        conditions.append(func.lower(Property.sector).contains(sector.lower()))
    if type:
        conditions.append(Property.type == type)
    if status_filter:
        conditions.append(Property.status == status_filter)
    if min_price is not None:
        conditions.append(Property.price >= min_price)
    if max_price is not None:
        conditions.append(Property.price <= max_price)

    try:
        total = db.scalar(select(func.count(Property.id)).where(*conditions)) or 0
        rows = db.scalars(
            select(Property)
            .where(*conditions)
            .order_by(Property.created_at.desc(), Property.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Database error listing properties: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve properties",
        ) from e

    result = PropertyListResponse(
        items=[PropertyRead.model_validate(p) for p in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
    cache.set(cache_key, result.model_dump(mode="json"))
    return result


@router.put(
    "/{property_id}",
    summary="Update existing property",
    response_model=PropertyRead,
)
def update_property(
    property_id: str,
    payload: PropertyUpdate,
    tenant: TenantContext = Depends(get_tenant_context),
    cache: PropertyCache = Depends(get_cache),
    db: Session = Depends(get_session),
) -> PropertyRead:
    """Apply a partial update and evict the tenant's cached listings."""
    prop = _get_owned(db, property_id, tenant.tenant_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if field in ("title", "address", "sector", "type", "status", "price") and value is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be empty",
            )
        setattr(prop, field, value)

    try:
        db.commit()
        db.refresh(prop)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error updating property {property_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update property",
        ) from e

    cache.invalidate_tenant(tenant.tenant_id)
    logger.info(f"Updated property {property_id}")
    return PropertyRead.model_validate(prop)


@router.delete(
    "/{property_id}",
    summary="Delete property (soft delete)",
)
def delete_property(
    property_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    cache: PropertyCache = Depends(get_cache),
    db: Session = Depends(get_session),
) -> Response:
    """Soft delete a property; a later import of the same external_id restores it."""
    prop = _get_owned(db, property_id, tenant.tenant_id)
    prop.deleted_at = datetime.now(timezone.utc)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error deleting property {property_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete property",
        ) from e

    cache.invalidate_tenant(tenant.tenant_id)
    logger.info(f"Soft deleted property {property_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
