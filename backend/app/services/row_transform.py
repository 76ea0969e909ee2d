"""Validate CSV headers and turn raw rows into property drafts."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from app.db.models.property import PropertyStatus, PropertyType
from app.services.errors import HeaderValidationError, RowValidationError

REQUIRED_HEADERS = [
    "external_id",
    "title",
    "address",
    "sector",
    "price",
    "latitude",
    "longitude",
]
OPTIONAL_HEADERS = [
    "description",
    "type",
    "status",
    "area",
    "bedrooms",
    "bathrooms",
    "parkingSpaces",
    "ownerId",
]


@dataclass(frozen=True)
class PropertyDraft:
    """A validated row, ready for the upsert engine."""

    row_number: int
    external_id: str
    tenant_id: str
    owner_id: str
    title: str
    description: str
    address: str
    sector: str
    type: PropertyType
    status: PropertyStatus
    price: float
    area: float | None
    bedrooms: int | None
    bathrooms: int | None
    parking_spaces: int | None
    latitude: float
    longitude: float

    def as_columns(self) -> dict[str, Any]:
        """Mapped column values; every field is written on insert and on merge."""
        columns = asdict(self)
        columns.pop("row_number")
        return columns


def validate_headers(headers: list[str] | None) -> None:
    """Ensure CSV contains the required columns before processing."""
    if not headers:
        raise HeaderValidationError(
            f"CSV requires a header row with {','.join(REQUIRED_HEADERS)} columns"
        )
    normalized = {header.strip() for header in headers if header}
    missing = [field for field in REQUIRED_HEADERS if field not in normalized]
    if missing:
        raise HeaderValidationError(
            f"Missing required column(s): {', '.join(missing)}"
        )


def _clean(row: Mapping[str, Any], key: str) -> str | None:
    value = row.get(key)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _parse_float(raw: str, field: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise RowValidationError(f"Invalid {field}: {raw!r}") from None
    if not math.isfinite(value):
        raise RowValidationError(f"Invalid {field}: {raw!r}")
    return value


def _optional_float(row: Mapping[str, Any], key: str) -> float | None:
    raw = _clean(row, key)
    return _parse_float(raw, key) if raw is not None else None


def _optional_int(row: Mapping[str, Any], key: str) -> int | None:
    raw = _clean(row, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        # Accept "3.0" style values exported by spreadsheets
        number = _parse_float(raw, key)
        if not number.is_integer():
            raise RowValidationError(f"Invalid {key}: {raw!r}") from None
        return int(number)


def transform_row(
    row: Mapping[str, Any],
    *,
    row_number: int,
    tenant_id: str,
    user_id: str,
) -> PropertyDraft:
    """Validate one CSV record and scope it to the importing tenant.

    Unknown ``type``/``status`` values fall back to their defaults instead of
    failing the row.
    """
    missing = [field for field in REQUIRED_HEADERS if _clean(row, field) is None]
    if missing:
        raise RowValidationError(f"Missing required fields: {', '.join(missing)}")

    lat_raw = _clean(row, "latitude")
    lon_raw = _clean(row, "longitude")
    try:
        latitude = float(lat_raw)
        longitude = float(lon_raw)
    except ValueError:
        raise RowValidationError(
            f"Invalid coordinates - lat: {lat_raw}, lon: {lon_raw}"
        ) from None
    if not (-90 <= latitude <= 90) or not (-180 <= longitude <= 180):
        raise RowValidationError(
            f"Invalid coordinates - lat: {lat_raw}, lon: {lon_raw}"
        )

    return PropertyDraft(
        row_number=row_number,
        external_id=_clean(row, "external_id"),
        tenant_id=tenant_id,
        owner_id=_clean(row, "ownerId") or user_id,
        title=_clean(row, "title"),
        description=_clean(row, "description") or "",
        address=_clean(row, "address"),
        sector=_clean(row, "sector"),
        type=PropertyType.parse(row.get("type")),
        status=PropertyStatus.parse(row.get("status")),
        price=_parse_float(_clean(row, "price"), "price"),
        area=_optional_float(row, "area"),
        bedrooms=_optional_int(row, "bedrooms"),
        bathrooms=_optional_int(row, "bathrooms"),
        parking_spaces=_optional_int(row, "parkingSpaces"),
        latitude=latitude,
        longitude=longitude,
    )
