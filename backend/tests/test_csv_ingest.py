import pytest

from app.services.csv_ingest import count_rows, iter_source_rows
from app.services.errors import HeaderValidationError, SourceFileError
from tests.helpers import make_row


def test_rows_are_numbered_from_one_in_file_order(csv_file):
    path = csv_file([make_row(1), make_row(2), make_row(3)])

    rows = list(iter_source_rows(path))

    assert [number for number, _ in rows] == [1, 2, 3]
    assert rows[2][1]["external_id"] == "EXT-0003"


def test_byte_order_mark_is_ignored(tmp_path):
    path = tmp_path / "bom.csv"
    path.write_bytes(
        "\ufeffexternal_id,title,address,sector,price,latitude,longitude\n"
        "A1,Loft,1 Road,Centro,10,0,0\n".encode("utf-8")
    )

    [(number, row)] = list(iter_source_rows(path))

    assert number == 1
    assert row["external_id"] == "A1"


def test_count_rows_excludes_header(csv_file):
    assert count_rows(csv_file([make_row(i) for i in range(5)])) == 5


def test_missing_file_raises_source_error(tmp_path):
    with pytest.raises(SourceFileError) as excinfo:
        list(iter_source_rows(tmp_path / "gone.csv"))
    assert "not found" in str(excinfo.value)


def test_missing_required_columns_raise_header_error(csv_file):
    path = csv_file([{"external_id": "A1", "title": "Loft"}], headers=["external_id", "title"])
    with pytest.raises(HeaderValidationError):
        list(iter_source_rows(path))


def test_invalid_encoding_raises_source_error(tmp_path):
    path = tmp_path / "latin1.csv"
    path.write_bytes(
        b"external_id,title,address,sector,price,latitude,longitude\n"
        b"A1,Caf\xe9,1 Road,Centro,10,0,0\n"
    )
    with pytest.raises(SourceFileError) as excinfo:
        list(iter_source_rows(path))
    assert "encoding" in str(excinfo.value)
