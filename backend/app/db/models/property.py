"""SQLAlchemy model for tenant-scoped property records."""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import (
    JSON,
    Column,
    Enum,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.types import DateTime

from app.db.base import Base


class PropertyType(str, enum.Enum):
    HOUSE = "house"
    APARTMENT = "apartment"
    COMMERCIAL = "commercial"
    LAND = "land"
    WAREHOUSE = "warehouse"

    @classmethod
    def default(cls) -> PropertyType:
        return cls.HOUSE

    @classmethod
    def parse(cls, raw: str | None) -> PropertyType:
        """Map any raw CSV value to a member; unknown or blank values yield HOUSE."""
        if raw is None:
            return cls.default()
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.default()


class PropertyStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD = "sold"
    RENTED = "rented"

    @classmethod
    def default(cls) -> PropertyStatus:
        return cls.ACTIVE

    @classmethod
    def parse(cls, raw: str | None) -> PropertyStatus:
        """Map any raw CSV value to a member; unknown or blank values yield ACTIVE."""
        if raw is None:
            return cls.default()
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.default()


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    external_id = Column(String(128), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    address = Column(String(255), nullable=False)
    sector = Column(String(128), nullable=False, index=True)
    type = Column(
        Enum(
            PropertyType,
            name="property_type",
            values_callable=_enum_values,
            native_enum=False,
        ),
        nullable=False,
        default=PropertyType.HOUSE,
    )
    status = Column(
        Enum(
            PropertyStatus,
            name="property_status",
            values_callable=_enum_values,
            native_enum=False,
        ),
        nullable=False,
        default=PropertyStatus.ACTIVE,
    )
    price = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    area = Column(Numeric(10, 2, asdecimal=False))
    bedrooms = Column(Integer)
    bathrooms = Column(Integer)
    parking_spaces = Column(Integer)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    valuation = Column(Numeric(12, 2, asdecimal=False))
    tenant_id = Column(String(64), nullable=False, index=True)
    owner_id = Column(String(64), nullable=False)
    meta = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint(
            "external_id", "tenant_id", name="uq_properties_external_id_tenant"
        ),
    )
