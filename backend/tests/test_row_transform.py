import pytest

from app.db.models.property import PropertyStatus, PropertyType
from app.services.errors import HeaderValidationError, RowValidationError
from app.services.row_transform import REQUIRED_HEADERS, transform_row, validate_headers
from tests.helpers import make_row


def _transform(row, row_number=1):
    return transform_row(row, row_number=row_number, tenant_id="tenant-a", user_id="user-1")


def test_valid_row_becomes_tenant_scoped_draft():
    draft = _transform(make_row(7))

    assert draft.external_id == "EXT-0007"
    assert draft.tenant_id == "tenant-a"
    assert draft.owner_id == "user-1"
    assert draft.type is PropertyType.APARTMENT
    assert draft.status is PropertyStatus.ACTIVE
    assert draft.price == 250000.5
    assert draft.area == 120.5
    assert draft.bedrooms == 3
    assert draft.parking_spaces == 1
    assert draft.latitude == -23.55


def test_owner_id_from_row_wins_over_importing_user():
    draft = _transform(make_row(ownerId="owner-9"))
    assert draft.owner_id == "owner-9"


@pytest.mark.parametrize("field", ["external_id", "title", "price", "latitude"])
def test_missing_required_field_is_rejected(field):
    with pytest.raises(RowValidationError) as excinfo:
        _transform(make_row(**{field: "  "}))
    assert str(excinfo.value) == f"Missing required fields: {field}"


def test_all_missing_fields_are_listed_in_order():
    with pytest.raises(RowValidationError) as excinfo:
        _transform(make_row(title="", sector=""))
    assert str(excinfo.value) == "Missing required fields: title, sector"


@pytest.mark.parametrize(
    "latitude,longitude",
    [("95", "10"), ("-90.5", "0"), ("0", "180.1"), ("north", "10")],
)
def test_out_of_range_or_garbage_coordinates_are_rejected(latitude, longitude):
    with pytest.raises(RowValidationError) as excinfo:
        _transform(make_row(latitude=latitude, longitude=longitude))
    assert str(excinfo.value) == f"Invalid coordinates - lat: {latitude}, lon: {longitude}"


@pytest.mark.parametrize("latitude,longitude", [("90", "180"), ("-90", "-180")])
def test_coordinate_bounds_are_inclusive(latitude, longitude):
    draft = _transform(make_row(latitude=latitude, longitude=longitude))
    assert (draft.latitude, draft.longitude) == (float(latitude), float(longitude))


def test_unknown_type_and_status_fall_back_to_defaults():
    draft = _transform(make_row(type="castle", status="demolished"))
    assert draft.type is PropertyType.HOUSE
    assert draft.status is PropertyStatus.ACTIVE


def test_enum_values_are_case_insensitive():
    draft = _transform(make_row(type=" Apartment ", status="SOLD"))
    assert draft.type is PropertyType.APARTMENT
    assert draft.status is PropertyStatus.SOLD


def test_blank_optional_fields_become_none_and_description_empty():
    draft = _transform(make_row(area="", bedrooms="", description=""))
    assert draft.area is None
    assert draft.bedrooms is None
    assert draft.description == ""


def test_spreadsheet_style_integers_are_accepted():
    assert _transform(make_row(bedrooms="4.0")).bedrooms == 4


@pytest.mark.parametrize("overrides", [{"price": "cheap"}, {"bedrooms": "2.5"}, {"area": "nan"}])
def test_malformed_numbers_are_rejected(overrides):
    with pytest.raises(RowValidationError):
        _transform(make_row(**overrides))


def test_draft_columns_exclude_row_number():
    columns = _transform(make_row(), row_number=42).as_columns()
    assert "row_number" not in columns
    assert columns["external_id"] == "EXT-0001"


def test_validate_headers_accepts_required_set():
    validate_headers(list(REQUIRED_HEADERS) + ["extra"])


def test_validate_headers_reports_missing_columns():
    with pytest.raises(HeaderValidationError) as excinfo:
        validate_headers(["external_id", "title"])
    assert "address" in str(excinfo.value)


def test_validate_headers_requires_a_header_row():
    with pytest.raises(HeaderValidationError):
        validate_headers(None)
